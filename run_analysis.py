"""
run_analysis.py
End-to-end subgenre analysis:

    guide page + Spotify  ->  track table (cached CSV)
    K tracks per genre    ->  per-genre feature intervals
    bootstrap resamples   ->  RandomForest per resample, pooled predictions
    pooled predictions    ->  ROC curves, confusion matrix, confusion network
    full balanced sample  ->  SHAP per genre

All tables and figures land in OUTPUT_ROOT.
"""

import argparse

import numpy as np

from config import (
    CACHE_CSV,
    CONFIDENCE,
    LABEL_COL,
    N_BOOTSTRAPS,
    N_TREES,
    RANDOM_STATE,
    SAMPLE_PER_GENRE,
    apply_plot_style,
    out,
)
from confusion_graph import build_confusion_graph, graph_table, plot_confusion_graph
from feature_importance import (
    plot_importance,
    plot_shap_heatmap,
    shap_per_class,
    summarize_resample_importance,
)
from feature_stats import feature_intervals, plot_feature_histograms, plot_feature_intervals
from guide_scrape import load_or_scrape
from rf_bootstrap import (
    confusion_percent,
    confusion_table,
    fit_bootstraps,
    fit_final_model,
    per_class_sensitivity,
    plot_confusion,
    plot_roc_curves,
    pooled_auc,
    predictor_columns,
    roc_table,
    save_result,
)
from stratify import (
    InsufficientSamplesError,
    balanced_sample,
    genre_counts,
    to_long,
    validate_input_df,
)


def run_genre_rf(cache_csv=CACHE_CSV, refresh=False, n_jobs=-1, per_genre=SAMPLE_PER_GENRE,
                 times=N_BOOTSTRAPS, n_estimators=N_TREES, edge_policy="mean",
                 on_shortfall="drop", importance_repeats=5, seed=RANDOM_STATE):
    apply_plot_style()

    # sampling and resampling draw from independent streams
    sample_seq, boot_seq = np.random.SeedSequence(seed).spawn(2)
    sample_rng = np.random.default_rng(sample_seq)
    boot_rng = np.random.default_rng(boot_seq)

    # =====================================================
    # 1) Data
    # =====================================================
    tracks = load_or_scrape(cache_csv, refresh=refresh)
    validate_input_df(tracks, "tracks", required=[LABEL_COL, "track_id", "track_name"])
    genre_counts(tracks)

    balanced = balanced_sample(tracks, per_genre, sample_rng, on_shortfall=on_shortfall)
    if balanced.empty:
        raise InsufficientSamplesError(f"No genre has at least {per_genre} tracks; nothing to model.")
    balanced.to_csv(out("balanced_tracks.csv"), index=False, encoding="utf-8-sig")
    features = predictor_columns(balanced)

    # =====================================================
    # 2) Descriptive statistics
    # =====================================================
    long_df = to_long(balanced, features)
    intervals = feature_intervals(long_df, confidence=CONFIDENCE)
    intervals.to_csv(out("features_intervals.csv"), index=False)
    plot_feature_histograms(long_df)
    plot_feature_intervals(intervals)

    # =====================================================
    # 3) Bootstrap RandomForest
    # =====================================================
    result = fit_bootstraps(
        balanced, features,
        times=times,
        rng=boot_rng,
        n_jobs=n_jobs,
        n_estimators=n_estimators,
        importance_repeats=importance_repeats,
    )
    save_result(result, save_prefix="rf")

    sens = per_class_sensitivity(result.predictions, result.classes)
    print("\n===== Pooled sensitivity per genre =====")
    print(sens.sort_values(ascending=False).to_string())

    # =====================================================
    # 4) ROC + confusion
    # =====================================================
    roc = roc_table(result.predictions, result.classes)
    aucs = pooled_auc(result.predictions, result.classes)
    roc.to_csv(out("rf_roc.csv"), index=False)
    plot_roc_curves(roc, aucs, save_prefix="rf")

    table = confusion_table(result.predictions, result.classes)
    plot_confusion(table, save_prefix="rf")

    G = build_confusion_graph(confusion_percent(table), policy=edge_policy)
    graph_table(G).to_csv(out("rf_confusion_edges.csv"), index=False)
    plot_confusion_graph(G, save_prefix="rf")

    # =====================================================
    # 5) Feature importance
    # =====================================================
    if not result.importance.empty:
        importance = summarize_resample_importance(result.importance)
        importance.to_csv(out("rf_importance.csv"), index=False)
        plot_importance(importance, save_prefix="rf")

    final = fit_final_model(balanced, features, n_estimators=n_estimators, random_state=seed)
    shap_df = shap_per_class(final, balanced[features].values, balanced[LABEL_COL].astype(str).values, features)
    shap_df.to_csv(out("rf_shap_per_class.csv"))
    plot_shap_heatmap(shap_df, save_prefix="rf")

    print(f"\n[DONE] {len(result.classes)} genres, {len(result.resamples)} resamples.")
    return result


def main():
    parser = argparse.ArgumentParser(description="Subgenre random forest over bootstrap resamples")
    parser.add_argument("--cache", default=CACHE_CSV, help="Track table CSV (written after scraping)")
    parser.add_argument("--refresh", action="store_true", help="Scrape again even if the cache exists")
    parser.add_argument("--jobs", type=int, default=-1, help="Parallel resample fits (joblib n_jobs)")
    parser.add_argument("--per-genre", type=int, default=SAMPLE_PER_GENRE)
    parser.add_argument("--times", type=int, default=N_BOOTSTRAPS)
    parser.add_argument("--trees", type=int, default=N_TREES)
    parser.add_argument("--edge-policy", choices=["mean", "max", "sum"], default="mean")
    parser.add_argument("--on-shortfall", choices=["drop", "error"], default="drop")
    parser.add_argument("--seed", type=int, default=RANDOM_STATE)
    args = parser.parse_args()

    run_genre_rf(
        cache_csv=args.cache,
        refresh=args.refresh,
        n_jobs=args.jobs,
        per_genre=args.per_genre,
        times=args.times,
        n_estimators=args.trees,
        edge_policy=args.edge_policy,
        on_shortfall=args.on_shortfall,
        seed=args.seed,
    )


if __name__ == "__main__":
    main()
    print("\n=== ALL DONE ===")
