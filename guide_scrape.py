"""
guide_scrape.py
Builds the track table from a genre guide page + the Spotify Web API.

1. fetch the guide page and pair each genre heading with its example playlist
2. pull every playlist's tracks and their audio features
3. cache the result as CSV; later runs re-read the CSV instead of scraping

Cached CSV format:
---------------------------------------------------------
genre          playlist_id     playlist_name
track_id       track_name      artist_names
danceability ... time_signature   (audio features)
---------------------------------------------------------
"""

import os
import re
from dataclasses import dataclass

import pandas as pd
import requests
import spotipy
from bs4 import BeautifulSoup
from dotenv import dotenv_values, find_dotenv
from spotipy.exceptions import SpotifyException
from spotipy.oauth2 import SpotifyClientCredentials
from tqdm import tqdm

from config import (
    AUDIO_FEATURES,
    CACHE_CSV,
    GENRE_SELECTOR,
    GUIDE_URL,
    PLAYLIST_SELECTOR,
    TRACK_COLUMNS,
)

PLAYLIST_ID_RE = re.compile(r"playlist[/:]([A-Za-z0-9]+)")
FEATURE_BATCH = 100


class AcquisitionError(RuntimeError):
    """Guide page or Spotify data could not be retrieved."""


# ------------------------------------------------------------
# Configuration
# ------------------------------------------------------------
@dataclass
class GuideConfig:
    url: str = GUIDE_URL
    genre_selector: str = GENRE_SELECTOR
    playlist_selector: str = PLAYLIST_SELECTOR
    timeout: float = 30.0


@dataclass
class SpotifyCredentials:
    client_id: str
    client_secret: str

    @classmethod
    def from_env(cls, dotenv_path=None):
        """
        Reads SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET from a .env file.
        Variables already set in the environment take precedence, as with
        python-dotenv's default (override=False).
        """
        path = dotenv_path or find_dotenv(usecwd=True)
        values = {}
        if path:
            values.update({k: v for k, v in dotenv_values(path).items() if v is not None})
        values.update({k: v for k, v in os.environ.items() if v})

        client_id = values.get("SPOTIFY_CLIENT_ID")
        client_secret = values.get("SPOTIFY_CLIENT_SECRET")
        if not client_id or not client_secret:
            raise AcquisitionError(
                "[ERROR] SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET must be set (.env or environment)."
            )
        return cls(client_id=client_id, client_secret=client_secret)


# ------------------------------------------------------------
# Guide page
# ------------------------------------------------------------
def playlist_id_from(text):
    if not text:
        return None
    m = PLAYLIST_ID_RE.search(text)
    return m.group(1) if m else None


def parse_guide(html, genre_selector=GENRE_SELECTOR, playlist_selector=PLAYLIST_SELECTOR):
    """Genre names and playlist ids, paired by position on the page."""
    soup = BeautifulSoup(html, "html.parser")

    genres = [node.get_text(strip=True) for node in soup.select(genre_selector)]
    links = soup.select(playlist_selector)

    if len(genres) != len(links):
        raise AcquisitionError(
            f"[ERROR] Guide page has {len(genres)} genres but {len(links)} playlist links."
        )

    records = []
    for genre, link in zip(genres, links):
        playlist_id = playlist_id_from(link.get("href")) or playlist_id_from(link.get_text())
        if playlist_id is None:
            raise AcquisitionError(f"[ERROR] No playlist id for genre '{genre}'.")
        records.append([genre, playlist_id])

    df = pd.DataFrame(records, columns=["genre", "playlist_id"]).drop_duplicates(ignore_index=True)
    print(f"[GUIDE] {len(df)} genre playlists")
    return df


def fetch_guide(config):
    try:
        response = requests.get(config.url, timeout=config.timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise AcquisitionError(f"[ERROR] Could not fetch {config.url}: {e}") from e
    return response.text


# ------------------------------------------------------------
# Spotify
# ------------------------------------------------------------
def make_spotify(credentials):
    manager = SpotifyClientCredentials(
        client_id=credentials.client_id,
        client_secret=credentials.client_secret,
    )
    return spotipy.Spotify(client_credentials_manager=manager)


def playlist_tracks(sp, playlist_id):
    results = sp.playlist_tracks(playlist_id)
    items = list(results["items"])

    while results["next"]:
        results = sp.next(results)
        items.extend(results["items"])

    return items


def audio_features(sp, track_ids):
    features = []
    for i in range(0, len(track_ids), FEATURE_BATCH):
        features.extend(sp.audio_features(track_ids[i:i + FEATURE_BATCH]))
    return features


def playlist_frame(sp, genre, playlist_id):
    playlist_name = sp.playlist(playlist_id, fields="name")["name"]

    tracks = [item["track"] for item in playlist_tracks(sp, playlist_id)]
    tracks = [t for t in tracks if t and t.get("id")]  # removed / local tracks

    feats = audio_features(sp, [t["id"] for t in tracks])
    by_id = {f["id"]: f for f in feats if f}

    records = []
    for t in tracks:
        f = by_id.get(t["id"])
        if f is None:
            print(f"[WARN] {genre}: no audio features for {t['id']}")
            continue

        records.append(
            [genre, playlist_id, playlist_name, t["id"], t["name"],
             ", ".join(a["name"] for a in t["artists"])]
            + [f.get(name) for name in AUDIO_FEATURES]
        )

    return pd.DataFrame(records, columns=TRACK_COLUMNS)


def collect_tracks(sp, playlists):
    frames = []
    for row in tqdm(playlists.itertuples(index=False), total=len(playlists)):
        try:
            frames.append(playlist_frame(sp, row.genre, row.playlist_id))
        except SpotifyException as e:
            raise AcquisitionError(f"[ERROR] {row.genre} ({row.playlist_id}): {e}") from e

    if not frames:
        return pd.DataFrame(columns=TRACK_COLUMNS)
    return pd.concat(frames, ignore_index=True)


# ------------------------------------------------------------
# Cache
# ------------------------------------------------------------
def read_tracks(csv_path):
    return pd.read_csv(csv_path, encoding="utf-8-sig", dtype={"track_id": str, "playlist_id": str})


def load_or_scrape(cache_csv=CACHE_CSV, guide=None, credentials=None, refresh=False, sp=None):
    if os.path.exists(cache_csv) and not refresh:
        print(f"[LOAD] {cache_csv}")
        return read_tracks(cache_csv)

    guide = guide or GuideConfig()
    playlists = parse_guide(fetch_guide(guide), guide.genre_selector, guide.playlist_selector)

    if sp is None:
        sp = make_spotify(credentials or SpotifyCredentials.from_env())
    df = collect_tracks(sp, playlists)

    os.makedirs(os.path.dirname(os.path.abspath(cache_csv)), exist_ok=True)
    df.to_csv(cache_csv, index=False, encoding="utf-8-sig")
    print(f"[SAVE] {len(df)} tracks → {cache_csv}")

    return read_tracks(cache_csv)
