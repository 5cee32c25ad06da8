"""
stratify.py
Balances the scraped track table to a fixed number of tracks per genre and
reshapes the audio features into long form.

Outputs:
    balanced table   -> exactly K rows per genre (K = SAMPLE_PER_GENRE)
    long table       -> genre, track_id, feature, value
"""

import numpy as np
import pandas as pd

from config import AUDIO_FEATURES, LABEL_COL


class InsufficientSamplesError(ValueError):
    """A genre has fewer tracks than the requested per-genre sample size."""


LONG_COLUMNS = [LABEL_COL, "track_id", "feature", "value"]


# ============================================================
# Helper: Validate essential columns before sampling
# ============================================================
def validate_input_df(df, name, required=(LABEL_COL, "track_id")):
    for col in required:
        if col not in df.columns:
            raise ValueError(f"[ERROR] Column '{col}' missing in {name} dataframe.")

    print(f"[OK] {name}: Columns validated.")


def genre_counts(df, label_col=LABEL_COL):
    counts = df[label_col].value_counts().sort_index()
    print("=== GENRE COUNTS ===")
    print(counts, "\n")
    return counts


# ============================================================
# Utility: K tracks per genre
# ============================================================
def balanced_sample(df, per_genre, rng, label_col=LABEL_COL, on_shortfall="drop"):
    """
    Returns a table with exactly `per_genre` rows for every kept genre.

    Rows are drawn without replacement from `rng` (a numpy Generator), so the
    same seed always selects the same tracks. Genres with fewer rows than
    `per_genre` are dropped (on_shortfall="drop") or raise
    InsufficientSamplesError (on_shortfall="error").
    """
    if on_shortfall not in ("drop", "error"):
        raise ValueError(f"[ERROR] Unknown shortfall policy: {on_shortfall}")
    assert per_genre > 0, "per_genre must be positive"

    parts = []
    for genre, group in df.groupby(label_col, sort=True):
        if len(group) < per_genre:
            if on_shortfall == "error":
                raise InsufficientSamplesError(
                    f"Genre '{genre}' has {len(group)} tracks, need {per_genre}."
                )
            print(f"[SKIP] {genre}: only {len(group)} tracks (< {per_genre})")
            continue

        picked = rng.choice(len(group), size=per_genre, replace=False)
        parts.append(group.iloc[np.sort(picked)])

    if not parts:
        return df.iloc[0:0].reset_index(drop=True)

    balanced = pd.concat(parts, ignore_index=True)
    print(f"[SAMPLE] {balanced[label_col].nunique()} genres x {per_genre} tracks = {len(balanced)} rows")
    return balanced


# ============================================================
# Utility: wide -> long
# ============================================================
def to_long(df, features=None, label_col=LABEL_COL):
    if features is None:
        features = [c for c in AUDIO_FEATURES if c in df.columns]

    long_df = df.melt(
        id_vars=[label_col, "track_id"],
        value_vars=list(features),
        var_name="feature",
        value_name="value",
    )
    long_df["value"] = long_df["value"].astype(float)
    return long_df[[label_col, "track_id", "feature", "value"]]
