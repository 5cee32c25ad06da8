import sys
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

# Add the repo root to sys.path so the stage modules can be imported
ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

FEATURES = ["danceability", "energy", "loudness", "valence", "tempo"]

# genre -> centre of every feature; B and C share a distribution
CENTRES = {"A": 10.0, "B": 0.0, "C": 0.0, "D": 3.0, "E": -3.0}


def make_tracks(per_genre=10, centres=CENTRES, noise=0.3, seed=0):
    """Synthetic track table: `per_genre` rows per genre around each centre."""
    rng = np.random.default_rng(seed)
    rows = []
    for genre, centre in centres.items():
        for i in range(per_genre):
            row = {
                "genre": genre,
                "playlist_id": f"pl{genre}",
                "playlist_name": f"{genre} examples",
                "track_id": f"{genre}{i:03d}",
                "track_name": f"{genre} song {i}",
                "artist_names": "Someone",
            }
            for f in FEATURES:
                row[f] = centre + rng.normal(0.0, noise)
            rows.append(row)
    return pd.DataFrame(rows)


@pytest.fixture
def tracks():
    return make_tracks()


@pytest.fixture
def output_dir(tmp_path, monkeypatch):
    import config

    monkeypatch.setattr(config, "OUTPUT_ROOT", str(tmp_path))
    return tmp_path
