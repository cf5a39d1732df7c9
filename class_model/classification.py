"""
Drug-class classification module.

For one positive-vs-other dataset this module draws the seeded validation
split, trains the random forest (full descriptor block) and the
cross-validated RBF SVM (descriptor formula), predicts the validation rows,
and evaluates each model with confusion counts, ROC curves and AUROC.
"""

from __future__ import annotations

import json
import logging
import os
import pathlib
import random
from typing import Dict, List, Mapping

import joblib
import numpy as np
import pandas as pd

from class_model.data_splitting import DEFAULT_RANDOM_STATE, DEFAULT_VALIDATION_FRACTION, train_validation_split
from class_model.feature_utils import feature_block, full_descriptor_features, svm_features, target_vector
from class_model.metrics_plots import (
    bootstrap_auc,
    confusion_counts,
    ensure_dir,
    evaluate_predictions,
    plot_confusion,
    plot_fourfold,
    plot_roc,
    print_summary,
    roc_points,
    smooth_roc,
)
from class_model.model_utils import (
    best_params,
    fit_model,
    log_class_balance,
    make_model_factory,
    predict_classes,
    y_scramble_auc,
)

DEFAULT_MODELS = ["RandomForest", "SVM"]
POSITIVE, NEGATIVE = "0", "1"


def seed_everything(seed: int):
    """Set random seeds for reproducibility."""
    random.seed(seed)
    np.random.seed(seed)
    os.environ["PYTHONHASHSEED"] = str(seed)


def _model_features(name: str, df: pd.DataFrame, cfg: Mapping) -> List[str]:
    """RF uses the full descriptor block, SVM the configured formula."""
    if name == "SVM":
        return svm_features(cfg)
    return full_descriptor_features(df, cfg.get("Descriptors", {}).get("families"))


def rf_importance(model) -> pd.DataFrame:
    """Impurity-based importance of a fitted random forest pipeline."""
    names = model.named_steps["impute"].get_feature_names_out()
    imp = model.named_steps["rf"].feature_importances_
    out = pd.DataFrame({"feature": names, "importance": imp})
    return out.sort_values("importance", ascending=False).reset_index(drop=True)


def run_classification(
        dataset: pd.DataFrame,
        positive: str,
        cfg: Mapping,
        out_dir: pathlib.Path,
        log: logging.Logger,
        negative: str = "other",
) -> List[Dict]:
    """
    Train and evaluate every configured model on one binary dataset.

    Args:
        dataset: Binary dataset with ID, descriptor columns and Target
        positive: Name of the positive drug class
        cfg: Configuration dictionary
        out_dir: Root directory for this run's artifacts
        log: Logger instance
        negative: Name of the negative class

    Returns:
        List of metric rows, one per model
    """
    split_cfg = cfg.get("Split", {})
    models_cfg = cfg.get("Models", {})
    extras_cfg = cfg.get("Extras", {})
    plots_enabled = bool(cfg.get("Plots", {}).get("enable", True))

    seed = int(split_cfg.get("random_state", DEFAULT_RANDOM_STATE))
    fraction = float(split_cfg.get("validation_fraction", DEFAULT_VALIDATION_FRACTION))
    seed_everything(seed)

    tag = f"{positive}_vs_{negative}"
    RR = pathlib.Path(out_dir) / tag
    models_dir, pred_dir, plots_dir = RR / "models", RR / "predictions", RR / "plots"
    for d in (models_dir, pred_dir, plots_dir):
        ensure_dir(d)

    # ==================== Split ====================
    train_df, val_df = train_validation_split(dataset, fraction=fraction, seed=seed)
    y_tr, y_val = target_vector(train_df), target_vector(val_df)
    log_class_balance(f"{tag} train", y_tr, log, positive=POSITIVE)
    log_class_balance(f"{tag} validation", y_val, log, positive=POSITIVE)
    pd.DataFrame({"ID": val_df["ID"]}).to_csv(RR / "validation_ids.csv", index=False)

    make_model = make_model_factory(models_cfg, seed)
    engines = models_cfg.get("engines") or DEFAULT_MODELS
    rows, curves = [], {}

    # ==================== Per-model loop ====================
    for name in engines:
        print(f"  Training {name} on {tag}...")
        feats = _model_features(name, dataset, cfg)
        X_tr, X_val = feature_block(train_df, feats), feature_block(val_df, feats)

        model = fit_model(make_model(name), X_tr, y_tr)
        labels, proba = predict_classes(model, X_val)
        score = proba[POSITIVE].to_numpy() if POSITIVE in proba.columns else np.zeros(len(labels))

        ev = evaluate_predictions(y_val, labels, score, POSITIVE, NEGATIVE)
        ev.update({"dataset": tag, "model": name, "n_features": len(feats),
                   "n_train": len(train_df), "n_validation": len(val_df)})
        params = best_params(model)
        if params:
            ev["best_params"] = json.dumps(params)
            log.info(f"[{name}] Best grid parameters: {params}")

        # ---- extras: bootstrap CI and y-scrambling baseline ----
        if bool(extras_cfg.get("enable", True)):
            try:
                b_med, b_lo, b_hi = bootstrap_auc(y_val, score, positive=POSITIVE,
                                                  n=int(extras_cfg.get("bootstrap_n", 1000)), seed=seed)
                ev.update({"AUROC_boot_median": b_med, "AUROC_CI_lower": b_lo, "AUROC_CI_upper": b_hi})
                ys_n = int(extras_cfg.get("yscramble_n", 0))
                if ys_n > 0:
                    ys_mean, ys_std = y_scramble_auc(lambda: make_model(name), X_tr, y_tr, X_val, y_val,
                                                     n=ys_n, seed=seed, positive=POSITIVE)
                    ev.update({"Yscramble_AUROC_mean": ys_mean, "Yscramble_AUROC_std": ys_std})
            except Exception as e:
                log.warning(f"[EXTRAS] Failed for {tag}/{name}: {e}")

        print_summary(f"{name} | {tag}", ev, positive_name=positive, negative_name=negative)
        rows.append(ev)

        # ---- persist ----
        joblib.dump(model, models_dir / f"{name}.joblib")
        pred = pd.DataFrame({"ID": val_df["ID"].to_numpy(), "Target": y_val, "Predicted": labels})
        for c in proba.columns:
            pred[f"P_{c}"] = proba[c].to_numpy()
        pred.to_csv(pred_dir / f"predictions_{name}.csv", index=False)
        with open(RR / f"metrics_{name}.json", "w") as fh:
            json.dump(ev, fh, indent=2, default=float)

        if name == "RandomForest":
            rf_importance(model).to_csv(RR / "rf_importance.csv", index=False)

        curves[name] = {"roc": roc_points(y_val, score, POSITIVE),
                        "smooth": smooth_roc(y_val, score, POSITIVE),
                        "auc": ev["AUROC"]}
        if plots_enabled:
            try:
                counts = confusion_counts(y_val, labels, POSITIVE, NEGATIVE)
                plot_fourfold(counts, plots_dir / f"fourfold_{name}.png",
                              classes=(positive, negative), title=f"{name}: {tag}")
                plot_confusion(counts, plots_dir / f"confusion_{name}.png", classes=(positive, negative))
            except Exception as e:
                log.warning(f"[Plots] Confusion plots failed for {tag}/{name}: {e}")

    if plots_enabled and curves:
        try:
            plot_roc(curves, plots_dir / "roc.png", title=tag)
        except Exception as e:
            log.warning(f"[Plots] ROC plot failed for {tag}: {e}")

    return rows
