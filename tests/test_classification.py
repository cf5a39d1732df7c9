import json

import numpy as np
import pandas as pd
import pytest
import yaml

import main
from class_model.classification import rf_importance, run_classification
from class_model.feature_utils import DEFAULT_SVM_FEATURES, feature_block, svm_features
from class_model.model_utils import (
    best_params,
    fit_model,
    make_model_factory,
    make_random_forest,
    make_svm_search,
    predict_classes,
    y_scramble_auc,
)

FAST_MODELS = {
    "engines": ["RandomForest", "SVM"],
    "random_forest": {"n_estimators": 50},
    "svm": {"cv_folds": 3, "grid": {"C": [0.5, 1.0], "gamma": ["scale"]}},
}


def test_svm_formula_has_eighteen_descriptors():
    assert len(DEFAULT_SVM_FEATURES) == 18
    assert svm_features({}) == DEFAULT_SVM_FEATURES
    assert svm_features({"Models": {"svm": {"features": ["MW", "ALogP", "MW"]}}}) == ["MW", "ALogP"]


def test_feature_block_missing_column_raises(synthetic):
    with pytest.raises(KeyError):
        feature_block(synthetic, ["MW", "NotADescriptor"])


def test_model_factory_rejects_unknown_engine():
    with pytest.raises(ValueError):
        make_model_factory({}, seed=0)("GBM")


def test_random_forest_predicts_string_classes(synthetic):
    X = feature_block(synthetic)
    y = synthetic["Target"].to_numpy()
    model = fit_model(make_random_forest({"n_estimators": 30}, seed=0), X, y)
    labels, proba = predict_classes(model, X)
    assert set(labels) <= {"0", "1"}
    assert list(proba.columns) == ["0", "1"]
    assert np.allclose(proba.sum(axis=1), 1.0)
    imp = rf_importance(model)
    assert len(imp) == X.shape[1]
    assert imp["importance"].sum() == pytest.approx(1.0)


def test_random_forest_tolerates_missing_values(synthetic):
    X = feature_block(synthetic)
    X.iloc[::7, 0] = np.nan
    model = fit_model(make_random_forest({"n_estimators": 20}, seed=0), X, synthetic["Target"])
    labels, _ = predict_classes(model, X)
    assert len(labels) == len(X)


def test_svm_grid_search_reports_winner(synthetic):
    X = feature_block(synthetic, DEFAULT_SVM_FEATURES)
    model = fit_model(make_svm_search(FAST_MODELS["svm"], seed=0), X, synthetic["Target"])
    params = best_params(model)
    assert set(params) == {"C", "gamma"}
    assert params["C"] in (0.5, 1.0)
    assert len(model.cv_results_["params"]) == 2


def test_y_scramble_is_near_chance(synthetic):
    df = synthetic.sample(frac=1.0, random_state=0)
    X = feature_block(df, DEFAULT_SVM_FEATURES)
    y = df["Target"].to_numpy()
    make = make_model_factory(FAST_MODELS, seed=0)
    mean, std = y_scramble_auc(lambda: make("RandomForest"), X.iloc[:140], y[:140],
                               X.iloc[140:], y[140:], n=5, seed=0)
    assert 0.2 < mean < 0.8
    assert std >= 0.0


def test_run_classification_end_to_end(tmp_path, synthetic, log):
    cfg = {
        "Split": {"validation_fraction": 0.3, "random_state": 42},
        "Models": FAST_MODELS,
        "Extras": {"enable": True, "bootstrap_n": 50, "yscramble_n": 2},
        "Plots": {"enable": True},
    }
    rows = run_classification(synthetic, "antibacterial", cfg, tmp_path, log)
    assert [r["model"] for r in rows] == ["RandomForest", "SVM"]
    for r in rows:
        assert r["TP"] + r["FP"] + r["TN"] + r["FN"] == r["n_validation"] == 60
        assert 0.0 <= r["AUROC"] <= 1.0
        assert r["AUROC"] > 0.8
        assert "Yscramble_AUROC_mean" in r
    assert rows[0]["n_features"] == 27
    assert rows[1]["n_features"] == 18

    run_dir = tmp_path / "antibacterial_vs_other"
    val_ids = pd.read_csv(run_dir / "validation_ids.csv")["ID"]
    assert len(val_ids) == 60 and val_ids.is_unique
    preds = pd.read_csv(run_dir / "predictions" / "predictions_SVM.csv", dtype={"Target": str, "Predicted": str})
    assert set(preds["ID"]) == set(val_ids)
    assert {"P_0", "P_1"} <= set(preds.columns)
    with open(run_dir / "metrics_RandomForest.json") as fh:
        assert json.load(fh)["n"] == 60
    assert (run_dir / "models" / "SVM.joblib").exists()
    assert (run_dir / "rf_importance.csv").exists()
    assert (run_dir / "plots" / "roc.png").exists()
    assert (run_dir / "plots" / "fourfold_RandomForest.png").exists()


def test_pipeline_main(tmp_path, small_config):
    config_path = tmp_path / "config.yml"
    with open(config_path, "w") as fh:
        yaml.safe_dump(small_config, fh)
    main.main(str(config_path))

    results = tmp_path / "results"
    summary = pd.read_csv(results / "classification" / "metrics_summary.csv")
    assert len(summary) == 4
    assert set(summary["dataset"]) == {"antibacterial_vs_other", "antiviral_vs_other"}
    assert (summary["n"] == summary["n_validation"]).all()
    assert (summary["n_validation"] == 6).all()
    assert (results / "datasets" / "antiviral_vs_other.csv").exists()
    clusters = pd.read_csv(results / "similarity" / "clusters.csv")
    assert len(clusters) == 30
