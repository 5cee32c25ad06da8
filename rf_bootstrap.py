"""
rf_bootstrap.py
Random forest genre classifier evaluated over bootstrap resamples.

- B bootstrap resamples of the balanced table (draw with replacement, size n)
- one RandomForest (1000 trees, library defaults otherwise) per resample
- predictions on the out-of-bag rows pooled across resamples
- per-resample accuracy / ROC-AUC / sensitivity / specificity + summary
- pooled ROC curves and confusion matrix

Prediction table:
---------------------------------------------------------
resample_id    row    truth    predicted    prob_<genre> ...
---------------------------------------------------------
"""

import json
from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np
import pandas as pd
import seaborn as sns
import matplotlib.pyplot as plt
from joblib import Parallel, delayed
from pandas.api.types import is_numeric_dtype
from sklearn.ensemble import RandomForestClassifier
from sklearn.metrics import accuracy_score, confusion_matrix, roc_auc_score, roc_curve

from config import AUDIO_FEATURES, LABEL_COL, N_BOOTSTRAPS, N_TREES, RANDOM_STATE, out
from feature_importance import permutation_table

METRICS = ["accuracy", "roc_auc", "sensitivity", "specificity"]

# never used as predictors even when numeric
EXCLUDED_COLUMNS = {"track_name", "track_id", "playlist_id", "playlist_name", "artist_names", LABEL_COL}


def prob_col(genre):
    return f"prob_{genre}"


# =========================================================
# 1) RESAMPLES
# =========================================================
@dataclass
class Resample:
    resample_id: str
    analysis: np.ndarray      # positions drawn with replacement (training rows)
    assessment: np.ndarray    # positions never drawn (held-out rows)


@dataclass
class ResampleFit:
    resample_id: str
    predictions: pd.DataFrame
    missing_classes: List[str] = field(default_factory=list)
    importance: Dict[str, float] = field(default_factory=dict)

    @property
    def degenerate(self):
        return bool(self.missing_classes)


@dataclass
class BootstrapResult:
    classes: List[str]
    resamples: List[Resample]
    predictions: pd.DataFrame
    metrics: pd.DataFrame
    summary: pd.DataFrame
    importance: pd.DataFrame


def bootstraps(n, times=N_BOOTSTRAPS, rng=None):
    """
    `times` bootstrap resamples over n rows.
    The assessment set of each resample is exactly the rows not drawn.
    """
    if rng is None:
        rng = np.random.default_rng(RANDOM_STATE)
    if n <= 0:
        raise ValueError("[ERROR] Cannot resample an empty table (no genre had enough tracks?).")

    width = max(2, len(str(times)))
    everything = np.arange(n)

    resamples = []
    for i in range(times):
        draw = rng.integers(0, n, size=n)
        assessment = np.setdiff1d(everything, draw)
        resamples.append(Resample(f"Bootstrap{i + 1:0{width}d}", draw, assessment))

    return resamples


# =========================================================
# 2) MODEL
# =========================================================
def make_rf(n_estimators=N_TREES, random_state=RANDOM_STATE, n_jobs=None):
    return RandomForestClassifier(
        n_estimators=n_estimators,
        random_state=random_state,
        n_jobs=n_jobs,
    )


def predictor_columns(df):
    """All numeric audio-feature columns; track name and identifiers are never predictors."""
    return [
        c for c in AUDIO_FEATURES
        if c in df.columns and c not in EXCLUDED_COLUMNS and is_numeric_dtype(df[c])
    ]


def fit_resample(df, resample, features, classes, n_estimators=N_TREES,
                 random_state=RANDOM_STATE, label_col=LABEL_COL, importance_repeats=0):
    train = df.iloc[resample.analysis]
    test = df.iloc[resample.assessment]

    seen = set(train[label_col].astype(str))
    missing = [c for c in classes if c not in seen]

    columns = ["resample_id", "row", "truth", "predicted"] + [prob_col(c) for c in classes]
    if len(test) == 0:
        return ResampleFit(resample.resample_id, pd.DataFrame(columns=columns), missing)

    model = make_rf(n_estimators=n_estimators, random_state=random_state)
    model.fit(train[features].values, train[label_col].astype(str).values)

    X_test = test[features].values
    proba = model.predict_proba(X_test)

    # classes absent from the training fold keep probability 0
    full = np.zeros((len(test), len(classes)))
    for j, c in enumerate(model.classes_):
        full[:, classes.index(c)] = proba[:, j]

    pred = pd.DataFrame(full, columns=[prob_col(c) for c in classes])
    pred.insert(0, "predicted", model.predict(X_test))
    pred.insert(0, "truth", test[label_col].astype(str).values)
    pred.insert(0, "row", resample.assessment)
    pred.insert(0, "resample_id", resample.resample_id)

    scores = {}
    if importance_repeats > 0:
        perm = permutation_table(
            model, X_test, test[label_col].astype(str).values, features,
            n_repeats=importance_repeats,
            random_state=random_state,
        )
        scores = perm.set_index("feature")["importance"].reindex(features).astype(float).to_dict()

    return ResampleFit(resample.resample_id, pred[columns], missing, scores)


def fit_bootstraps(df, features=None, times=N_BOOTSTRAPS, rng=None, n_jobs=1,
                   n_estimators=N_TREES, label_col=LABEL_COL, importance_repeats=0):
    """
    Fits one forest per bootstrap resample and pools the held-out predictions.
    Resamples are independent; `n_jobs` fans them out with joblib.
    """
    if rng is None:
        rng = np.random.default_rng(RANDOM_STATE)
    if features is None:
        features = predictor_columns(df)

    df = df.reset_index(drop=True)
    classes = sorted(df[label_col].astype(str).unique())
    resamples = bootstraps(len(df), times, rng)
    seeds = rng.integers(0, 2**31 - 1, size=len(resamples))

    print(f"[FIT] {len(resamples)} resamples x {n_estimators} trees | "
          f"{len(features)} features | {len(classes)} genres")

    fits = Parallel(n_jobs=n_jobs)(
        delayed(fit_resample)(
            df, r, features, classes,
            n_estimators=n_estimators,
            random_state=int(seed),
            label_col=label_col,
            importance_repeats=importance_repeats,
        )
        for r, seed in zip(resamples, seeds)
    )

    metric_rows = []
    for fit in fits:
        if fit.degenerate:
            print(f"[WARN] {fit.resample_id}: no training rows for {fit.missing_classes}")
        row = resample_metrics(fit.predictions, classes, exclude=fit.missing_classes)
        row["resample_id"] = fit.resample_id
        row["degenerate"] = fit.degenerate
        metric_rows.append(row)

    predictions = pd.concat([f.predictions for f in fits], ignore_index=True)
    metrics = pd.DataFrame(metric_rows, columns=["resample_id"] + METRICS + ["degenerate"])
    summary = summarize_metrics(metrics)

    importance = pd.DataFrame(
        [dict(resample_id=f.resample_id, **f.importance) for f in fits if f.importance]
    )

    print("[METRICS]")
    print(summary.to_string(index=False))

    return BootstrapResult(classes, resamples, predictions, metrics, summary, importance)


def fit_final_model(df, features, n_estimators=N_TREES, random_state=RANDOM_STATE,
                    label_col=LABEL_COL, n_jobs=-1):
    model = make_rf(n_estimators=n_estimators, random_state=random_state, n_jobs=n_jobs)
    model.fit(df[features].values, df[label_col].astype(str).values)
    return model


# =========================================================
# 3) METRICS
# =========================================================
def class_rates(truth, predicted, classes):
    """Per-class sensitivity and specificity (one-vs-rest) from a confusion matrix."""
    cm = confusion_matrix(truth, predicted, labels=classes)
    total = cm.sum()

    rates = {}
    for i, c in enumerate(classes):
        tp = cm[i, i]
        fn = cm[i, :].sum() - tp
        fp = cm[:, i].sum() - tp
        tn = total - tp - fn - fp
        sens = tp / (tp + fn) if tp + fn > 0 else np.nan
        spec = tn / (tn + fp) if tn + fp > 0 else np.nan
        rates[c] = (sens, spec)
    return rates


def resample_metrics(pred, classes, exclude=()):
    """
    Metrics for one resample's held-out predictions.

    Genres in `exclude` (no training rows in this resample) are dropped with
    their held-out rows before any metric is computed.
    ROC-AUC is computed one-vs-rest per class and averaged; classes with no
    positive or no negative held-out rows are left out.
    Sensitivity / specificity are macro averages over classes present in truth.
    """
    if len(pred) > 0 and len(exclude) > 0:
        pred = pred[~pred["truth"].astype(str).isin(list(exclude))]
    if len(pred) == 0:
        return {m: np.nan for m in METRICS}

    classes = [c for c in classes if c not in exclude]
    truth = pred["truth"].astype(str).values
    predicted = pred["predicted"].astype(str).values

    aucs = []
    for c in classes:
        y_bin = truth == c
        if y_bin.all() or not y_bin.any():
            continue
        aucs.append(roc_auc_score(y_bin, pred[prob_col(c)].values))

    present = [c for c in classes if c in set(truth)]
    rates = class_rates(truth, predicted, classes)
    sens = [rates[c][0] for c in present]
    spec = [rates[c][1] for c in present if not np.isnan(rates[c][1])]

    return {
        "accuracy": accuracy_score(truth, predicted),
        "roc_auc": float(np.mean(aucs)) if aucs else np.nan,
        "sensitivity": float(np.mean(sens)) if sens else np.nan,
        "specificity": float(np.mean(spec)) if spec else np.nan,
    }


def summarize_metrics(metrics):
    rows = []
    for m in METRICS:
        values = metrics[m].dropna().astype(float).values
        n = len(values)
        mean = values.mean() if n else np.nan
        std_err = values.std(ddof=1) / np.sqrt(n) if n > 1 else np.nan
        rows.append([m, mean, std_err, n])
    return pd.DataFrame(rows, columns=["metric", "mean", "std_err", "n"])


def per_class_sensitivity(pred, classes):
    truth = pred["truth"].astype(str).values
    predicted = pred["predicted"].astype(str).values
    rates = class_rates(truth, predicted, classes)
    return pd.Series({c: rates[c][0] for c in classes}, name="sensitivity")


# =========================================================
# 4) POOLED ROC + CONFUSION
# =========================================================
def roc_table(pred, classes):
    """One-vs-rest ROC points per genre over the pooled predictions."""
    truth = pred["truth"].astype(str).values
    frames = []
    for c in classes:
        y_bin = truth == c
        if y_bin.all() or not y_bin.any():
            continue
        fpr, tpr, thr = roc_curve(y_bin, pred[prob_col(c)].values)
        frames.append(pd.DataFrame({LABEL_COL: c, "fpr": fpr, "tpr": tpr, "threshold": thr}))

    if not frames:
        return pd.DataFrame(columns=[LABEL_COL, "fpr", "tpr", "threshold"])
    return pd.concat(frames, ignore_index=True)


def pooled_auc(pred, classes):
    truth = pred["truth"].astype(str).values
    aucs = {}
    for c in classes:
        y_bin = truth == c
        if y_bin.all() or not y_bin.any():
            continue
        aucs[c] = roc_auc_score(y_bin, pred[prob_col(c)].values)
    return pd.Series(aucs, name="roc_auc")


def confusion_table(pred, classes):
    cm = confusion_matrix(
        pred["truth"].astype(str).values,
        pred["predicted"].astype(str).values,
        labels=classes,
    )
    table = pd.DataFrame(cm, index=classes, columns=classes)
    table.index.name = "truth"
    table.columns.name = "predicted"
    return table


def confusion_percent(table):
    """Row-normalized confusion table (row = true genre)."""
    totals = table.sum(axis=1).replace(0, np.nan)
    return table.div(totals, axis=0).fillna(0.0)


# =========================================================
# 5) PLOTS + EXPORTS
# =========================================================
def plot_roc_curves(roc, aucs, save_prefix="rf"):
    plt.figure(figsize=(7, 6))
    for genre, sub in roc.groupby(LABEL_COL, sort=True):
        plt.plot(sub["fpr"], sub["tpr"], label=f"{genre} (AUC = {aucs.get(genre, np.nan):.2f})")
    plt.plot([0, 1], [0, 1], "k--", lw=1)
    plt.xlabel("False Positive Rate")
    plt.ylabel("True Positive Rate")
    plt.title(f"{save_prefix} – One-vs-Rest ROC (pooled resamples)")
    plt.legend(fontsize=7, loc="lower right")
    plt.tight_layout()
    path = out(f"{save_prefix}_roc.png")
    plt.savefig(path)
    plt.close()
    return path


def plot_confusion(table, save_prefix="rf"):
    # ----- Raw counts -----
    with open(out(save_prefix + "_confusion.json"), "w") as f:
        json.dump({
            "labels": list(table.index),
            "counts": table.values.tolist(),
        }, f, indent=4)

    # ----- Plot -----
    cm_norm = confusion_percent(table)
    plt.figure(figsize=(8, 6))
    sns.heatmap(cm_norm, annot=True, fmt=".2f",
                xticklabels=table.columns, yticklabels=table.index)
    plt.xlabel("Predicted")
    plt.ylabel("True")
    plt.title(f"{save_prefix} – Normalized Confusion Matrix")
    plt.tight_layout()
    path = out(save_prefix + "_cm.png")
    plt.savefig(path)
    plt.close()
    return path


def save_result(result, save_prefix="rf"):
    result.predictions.to_csv(out(save_prefix + "_predictions.csv"), index=False)
    result.metrics.to_csv(out(save_prefix + "_metrics.csv"), index=False)
    result.summary.to_csv(out(save_prefix + "_summary.csv"), index=False)
    if not result.importance.empty:
        result.importance.to_csv(out(save_prefix + "_resample_importance.csv"), index=False)
    print(f"[SAVE] {save_prefix} predictions / metrics / summary")
