import numpy as np
import pandas as pd
import pytest

from conftest import FEATURES, make_tracks
from stratify import (
    InsufficientSamplesError,
    balanced_sample,
    genre_counts,
    to_long,
    validate_input_df,
)


def test_every_genre_has_exactly_k_rows():
    df = make_tracks(per_genre=25)
    balanced = balanced_sample(df, 10, np.random.default_rng(1))
    counts = balanced["genre"].value_counts()
    assert set(counts.index) == {"A", "B", "C", "D", "E"}
    assert (counts == 10).all()
    # drawn without replacement
    assert balanced["track_id"].is_unique


def test_same_seed_same_sample():
    df = make_tracks(per_genre=25)
    first = balanced_sample(df, 10, np.random.default_rng(7))
    second = balanced_sample(df, 10, np.random.default_rng(7))
    other = balanced_sample(df, 10, np.random.default_rng(8))
    assert first["track_id"].tolist() == second["track_id"].tolist()
    assert first["track_id"].tolist() != other["track_id"].tolist()


def test_short_genre_is_dropped_by_default():
    df = make_tracks(per_genre=12)
    df = df[~((df["genre"] == "E") & (df["track_id"] > "E004"))]
    balanced = balanced_sample(df, 10, np.random.default_rng(0))
    assert "E" not in set(balanced["genre"])
    assert len(balanced) == 40


def test_short_genre_raises_when_asked():
    df = make_tracks(per_genre=5)
    with pytest.raises(InsufficientSamplesError):
        balanced_sample(df, 10, np.random.default_rng(0), on_shortfall="error")


def test_unknown_shortfall_policy():
    with pytest.raises(ValueError):
        balanced_sample(make_tracks(), 10, np.random.default_rng(0), on_shortfall="pad")


def test_all_genres_short_gives_empty_table():
    balanced = balanced_sample(make_tracks(per_genre=3), 10, np.random.default_rng(0))
    assert balanced.empty
    assert list(balanced.columns) == list(make_tracks(per_genre=3).columns)


def test_to_long_one_row_per_track_feature(tracks):
    long_df = to_long(tracks, FEATURES)
    assert list(long_df.columns) == ["genre", "track_id", "feature", "value"]
    assert len(long_df) == len(tracks) * len(FEATURES)

    row = tracks.iloc[3]
    value = long_df[(long_df["track_id"] == row["track_id"]) & (long_df["feature"] == "tempo")]["value"]
    assert value.iloc[0] == pytest.approx(row["tempo"])


def test_to_long_defaults_to_audio_features_present(tracks):
    long_df = to_long(tracks)
    assert set(long_df["feature"]) == set(FEATURES)


def test_validate_input_df_names_missing_column():
    with pytest.raises(ValueError, match="track_id"):
        validate_input_df(pd.DataFrame({"genre": ["A"]}), "tracks")


def test_genre_counts(tracks):
    counts = genre_counts(tracks)
    assert counts.to_dict() == {g: 10 for g in "ABCDE"}
