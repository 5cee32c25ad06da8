"""
config.py
Shared constants for the subgenre random-forest analysis.

Every stage script imports from here so that a run is reproducible from a
single place: seed, per-genre sample size, bootstrap count, forest size,
audio feature list and the output directory.
"""

import os

import matplotlib.pyplot as plt
import seaborn as sns

# ---------------------------------------------------------------------
RANDOM_STATE = 42
SAMPLE_PER_GENRE = 10
N_BOOTSTRAPS = 25
N_TREES = 1000
CONFIDENCE = 0.95
# ---------------------------------------------------------------------

# =========================================================
# GENRE GUIDE (scraping)
# =========================================================
GUIDE_URL = "https://www.musicgenreguide.com/subgenres"
GENRE_SELECTOR = ".genre-title"
PLAYLIST_SELECTOR = ".genre-playlist a"

# =========================================================
# COLUMNS
# =========================================================
LABEL_COL = "genre"

# Numeric descriptors returned by the Spotify audio-features endpoint
AUDIO_FEATURES = [
    "danceability",
    "energy",
    "key",
    "loudness",
    "mode",
    "speechiness",
    "acousticness",
    "instrumentalness",
    "liveness",
    "valence",
    "tempo",
    "duration_ms",
    "time_signature",
]

META_COLUMNS = [
    "genre",
    "playlist_id",
    "playlist_name",
    "track_id",
    "track_name",
    "artist_names",
]

TRACK_COLUMNS = META_COLUMNS + AUDIO_FEATURES

# =========================================================
# OUTPUTS
# =========================================================
OUTPUT_ROOT = os.environ.get("GENRE_RF_OUTPUT", os.path.join(os.getcwd(), "outputs"))
CACHE_CSV = os.path.join(OUTPUT_ROOT, "guide_tracks.csv")


def out(path):
    os.makedirs(OUTPUT_ROOT, exist_ok=True)
    return os.path.join(OUTPUT_ROOT, path)


def apply_plot_style():
    plt.rcParams["figure.dpi"] = 140
    sns.set()
