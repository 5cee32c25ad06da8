"""
feature_stats.py
Descriptive statistics of audio features per genre.

For every (genre, feature) group:
    mean, standard error, two-sided t confidence interval (default 95%)

The interval comes from a one-sample t-test against 0; only the interval
is kept, the p-value is not used. Genre order inside each feature plot
follows the estimated mean.
"""

import numpy as np
import pandas as pd
import seaborn as sns
import matplotlib.pyplot as plt
from scipy import stats

from config import CONFIDENCE, LABEL_COL, out


INTERVAL_COLUMNS = [LABEL_COL, "feature", "n", "mean", "std_error", "low", "high"]


# =========================================================
# 1) CONFIDENCE INTERVALS
# =========================================================
def mean_interval(values, confidence=CONFIDENCE):
    values = np.asarray(values, dtype=float)
    n = len(values)
    mean = float(values.mean()) if n else np.nan

    if n < 2:
        return n, mean, np.nan, np.nan, np.nan

    std_error = float(stats.sem(values))
    if std_error == 0:
        # constant group: the interval collapses onto the mean
        return n, mean, 0.0, mean, mean

    ci = stats.ttest_1samp(values, popmean=0).confidence_interval(confidence_level=confidence)
    return n, mean, std_error, float(ci.low), float(ci.high)


def feature_intervals(long_df, confidence=CONFIDENCE, label_col=LABEL_COL):
    rows = []
    for (genre, feature), group in long_df.groupby([label_col, "feature"], sort=True):
        n, mean, se, low, high = mean_interval(group["value"].values, confidence)
        rows.append([genre, feature, n, mean, se, low, high])

    return pd.DataFrame(rows, columns=[label_col] + INTERVAL_COLUMNS[1:])


def rank_genres(intervals, feature, label_col=LABEL_COL):
    """Genres for one feature, highest estimated mean first."""
    sub = intervals[intervals["feature"] == feature]
    return sub.sort_values("mean", ascending=False)[label_col].tolist()


# =========================================================
# 2) PLOTS
# =========================================================
def plot_feature_intervals(intervals, save_prefix="features", label_col=LABEL_COL):
    features = sorted(intervals["feature"].unique())
    ncols = 3
    nrows = int(np.ceil(len(features) / ncols))

    fig, axes = plt.subplots(nrows, ncols, figsize=(5 * ncols, 3.5 * nrows), squeeze=False)
    for ax, feature in zip(axes.ravel(), features):
        order = rank_genres(intervals, feature, label_col)
        sub = intervals[intervals["feature"] == feature].set_index(label_col).loc[order]

        y = np.arange(len(order))
        ax.errorbar(
            sub["mean"], y,
            xerr=[sub["mean"] - sub["low"], sub["high"] - sub["mean"]],
            fmt="o", capsize=3,
        )
        ax.set_yticks(y)
        ax.set_yticklabels(order)
        ax.invert_yaxis()
        ax.set_title(feature)

    for ax in axes.ravel()[len(features):]:
        ax.set_visible(False)

    plt.tight_layout()
    path = out(f"{save_prefix}_intervals.png")
    plt.savefig(path)
    plt.close(fig)
    return path


def plot_feature_histograms(long_df, save_prefix="features"):
    g = sns.FacetGrid(long_df, col="feature", col_wrap=4, sharex=False, sharey=False)
    g.map_dataframe(sns.histplot, x="value", bins=15)
    g.set_titles("{col_name}")
    g.tight_layout()

    path = out(f"{save_prefix}_histograms.png")
    g.savefig(path)
    plt.close(g.figure)
    return path
