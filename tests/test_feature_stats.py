import numpy as np
import pandas as pd
import pytest
from scipy import stats

from feature_stats import feature_intervals, mean_interval, rank_genres


def long_frame(groups):
    rows = []
    for (genre, feature), values in groups.items():
        for i, v in enumerate(values):
            rows.append([genre, f"{genre}{i}", feature, float(v)])
    return pd.DataFrame(rows, columns=["genre", "track_id", "feature", "value"])


def test_t_interval_matches_textbook_formula():
    values = [1, 2, 3, 4, 5]
    n, mean, se, low, high = mean_interval(values, 0.95)

    expected_se = np.std(values, ddof=1) / np.sqrt(5)
    half = stats.t.ppf(0.975, df=4) * expected_se
    assert n == 5
    assert mean == pytest.approx(3.0)
    assert se == pytest.approx(expected_se)
    assert low == pytest.approx(3.0 - half)
    assert high == pytest.approx(3.0 + half)


def test_wider_confidence_gives_wider_interval():
    values = [0.2, 0.5, 0.4, 0.9, 0.3]
    _, _, _, low95, high95 = mean_interval(values, 0.95)
    _, _, _, low99, high99 = mean_interval(values, 0.99)
    assert low99 < low95 < high95 < high99


def test_constant_group_collapses_to_mean():
    n, mean, se, low, high = mean_interval([0.5] * 4)
    assert (mean, se, low, high) == (0.5, 0.0, 0.5, 0.5)


def test_single_value_has_no_interval():
    n, mean, se, low, high = mean_interval([2.0])
    assert n == 1 and mean == 2.0
    assert np.isnan(se) and np.isnan(low) and np.isnan(high)


def test_one_row_per_genre_feature():
    long_df = long_frame({
        ("A", "energy"): [0.9, 0.8, 0.85],
        ("B", "energy"): [0.1, 0.2, 0.15],
        ("A", "tempo"): [120, 125, 130],
        ("B", "tempo"): [170, 172, 168],
    })
    intervals = feature_intervals(long_df)
    assert list(intervals.columns) == ["genre", "feature", "n", "mean", "std_error", "low", "high"]
    assert len(intervals) == 4
    assert (intervals["n"] == 3).all()
    assert (intervals["low"] <= intervals["mean"]).all()
    assert (intervals["mean"] <= intervals["high"]).all()


def test_rank_genres_by_mean():
    long_df = long_frame({
        ("A", "tempo"): [120, 125, 130],
        ("B", "tempo"): [170, 172, 168],
        ("C", "tempo"): [90, 95, 93],
    })
    intervals = feature_intervals(long_df)
    assert rank_genres(intervals, "tempo") == ["B", "A", "C"]
