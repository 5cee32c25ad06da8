import numpy as np
import pandas as pd
import pytest

from conftest import FEATURES
from feature_importance import (
    permutation_table,
    plot_importance,
    shap_per_class,
    split_shap_by_class,
    summarize_resample_importance,
)
from rf_bootstrap import make_rf


@pytest.fixture
def fitted(tracks):
    model = make_rf(n_estimators=30, random_state=0)
    X = tracks[FEATURES].values
    y = tracks["genre"].values
    model.fit(X, y)
    return model, X, y


@pytest.mark.parametrize("shape", [(5, 4, 3), (5, 3, 4), (3, 5, 4)])
def test_split_shap_by_class_layouts(shape):
    # N=5 rows, F=4 features, C=3 classes in every layout
    raw = np.zeros(shape)
    parts = split_shap_by_class(raw, 3)
    assert len(parts) == 3
    assert all(p.shape == (5, 4) for p in parts)


def test_split_shap_by_class_list():
    parts = split_shap_by_class([np.ones((5, 4))] * 2, 2)
    assert [p.shape for p in parts] == [(5, 4), (5, 4)]


def test_split_shap_by_class_rejects_unknown_shape():
    with pytest.raises(ValueError):
        split_shap_by_class(np.zeros((5, 4)), 3)


def test_permutation_table_sorted(fitted):
    model, X, y = fitted
    table = permutation_table(model, X, y, FEATURES, n_repeats=3)
    assert list(table.columns) == ["feature", "importance", "importance_std"]
    assert set(table["feature"]) == set(FEATURES)
    assert table["importance"].is_monotonic_decreasing


def test_summarize_resample_importance():
    importance = pd.DataFrame({
        "resample_id": ["Bootstrap01", "Bootstrap02"],
        "energy": [0.2, 0.4],
        "tempo": [0.0, 0.0],
    })
    summary = summarize_resample_importance(importance)
    assert summary["feature"].tolist() == ["energy", "tempo"]
    assert summary.loc[0, "importance"] == pytest.approx(0.3)


def test_shap_per_class(fitted):
    model, X, y = fitted
    shap_df = shap_per_class(model, X, y, FEATURES)
    assert sorted(shap_df.index) == ["A", "B", "C", "D", "E"]
    assert list(shap_df.columns) == FEATURES
    assert (shap_df.values >= 0).all()


def test_plot_importance(fitted, output_dir):
    model, X, y = fitted
    plot_importance(permutation_table(model, X, y, FEATURES, n_repeats=2), save_prefix="unit")
    assert (output_dir / "unit_importance.png").exists()
