"""
feature_importance.py
Which audio features drive the genre forest.

- permutation importance (accuracy drop when one feature is shuffled)
- SHAP global + per-genre mean |SHAP| from a TreeExplainer
"""

import numpy as np
import pandas as pd
import shap
import seaborn as sns
import matplotlib.pyplot as plt
from sklearn.inspection import permutation_importance

from config import RANDOM_STATE, out


# =========================================================
# 1) PERMUTATION IMPORTANCE
# =========================================================
def permutation_table(model, X, y, feature_names, n_repeats=10, random_state=RANDOM_STATE):
    perm = permutation_importance(
        model, X, y,
        n_repeats=n_repeats,
        random_state=random_state,
    )
    return pd.DataFrame({
        "feature": feature_names,
        "importance": perm.importances_mean,
        "importance_std": perm.importances_std,
    }).sort_values("importance", ascending=False, ignore_index=True)


def summarize_resample_importance(importance):
    """Mean and standard error of per-resample permutation importance."""
    values = importance.drop(columns=["resample_id"])
    n = values.notna().sum()
    return pd.DataFrame({
        "feature": values.columns,
        "importance": values.mean().values,
        "importance_std": (values.std(ddof=1) / np.sqrt(n)).values,
    }).sort_values("importance", ascending=False, ignore_index=True)


# =========================================================
# 2) SHAP
# =========================================================
def split_shap_by_class(raw, num_classes):
    """
    TreeExplainer output varies with the shap version:
    list of (N,F), or an array shaped (C,N,F), (N,C,F) or (N,F,C).
    Returns a list of C arrays shaped (N,F).
    """
    if isinstance(raw, list):
        return [np.asarray(sv) for sv in raw]

    raw = np.asarray(raw)
    if raw.ndim == 3 and raw.shape[2] == num_classes:
        return [raw[:, :, ci] for ci in range(num_classes)]
    if raw.ndim == 3 and raw.shape[0] == num_classes:
        return [raw[ci] for ci in range(num_classes)]
    if raw.ndim == 3 and raw.shape[1] == num_classes:
        return [raw[:, ci, :] for ci in range(num_classes)]

    raise ValueError(f"[SHAP] Unrecognized SHAP output shape: {raw.shape}")


def shap_per_class(model, X, y, feature_names):
    """
    Mean |SHAP| per genre: for each genre, the SHAP values of that genre's
    output averaged over the rows whose true label is that genre.
    """
    explainer = shap.TreeExplainer(model)
    per_class = split_shap_by_class(explainer.shap_values(X), len(model.classes_))

    y = np.asarray(y)
    result = {}
    for ci, c in enumerate(model.classes_):
        mask = (y == c)
        if mask.sum() == 0:
            continue
        result[c] = np.abs(per_class[ci][mask]).mean(axis=0)

    return pd.DataFrame.from_dict(result, orient="index", columns=feature_names)


# =========================================================
# 3) PLOTS
# =========================================================
def plot_importance(table, save_prefix="rf", top=20):
    top_rows = table.head(top)

    plt.figure(figsize=(6, 8))
    plt.barh(range(len(top_rows)), top_rows["importance"].values[::-1],
             xerr=top_rows["importance_std"].values[::-1])
    plt.yticks(range(len(top_rows)), top_rows["feature"].values[::-1])
    plt.xlabel("Mean accuracy drop")
    plt.title("Permutation Feature Importance")
    plt.tight_layout()
    path = out(f"{save_prefix}_importance.png")
    plt.savefig(path)
    plt.close()
    return path


def plot_shap_heatmap(shap_df, save_prefix="rf"):
    plt.figure(figsize=(12, 6))
    sns.heatmap(shap_df, cmap="magma", xticklabels=True, yticklabels=True)

    plt.xlabel("Audio Features", fontsize=12)
    plt.ylabel("Genre", fontsize=12)
    plt.title("Per-Genre Mean |SHAP| (RandomForest)", fontsize=14)

    plt.xticks(rotation=90)
    plt.tight_layout()
    path = out(f"{save_prefix}_shap_per_class.png")
    plt.savefig(path)
    plt.close()
    return path
