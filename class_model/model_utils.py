"""
Utility functions for drug-class model training.

Includes the random forest and SVM grid-search factories, model fitting and
prediction helpers, and the y-scrambling randomisation test.
"""

from __future__ import annotations

import logging
from typing import Callable, Mapping, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestClassifier
from sklearn.impute import SimpleImputer
from sklearn.model_selection import GridSearchCV, StratifiedKFold
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler
from sklearn.svm import SVC

from class_model.metrics_plots import auc_score, positive_proba

DEFAULT_RANDOM_STATE = 42
DEFAULT_SVM_GRID = {"C": [0.25, 0.5, 1.0], "gamma": ["scale", 0.01, 0.1]}


def make_random_forest(params: Optional[Mapping] = None, seed: int = DEFAULT_RANDOM_STATE) -> Pipeline:
    """
    Random forest over the full descriptor block.

    Median imputation is fitted on the training rows only.

    Args:
        params: Optional overrides (n_estimators, max_features, min_samples_leaf)
        seed: Random seed

    Returns:
        Unfitted sklearn Pipeline
    """
    params = dict(params or {})
    rf = RandomForestClassifier(
        n_estimators=int(params.get("n_estimators", 500)),
        max_features=params.get("max_features", "sqrt"),
        min_samples_leaf=int(params.get("min_samples_leaf", 1)),
        n_jobs=int(params.get("n_jobs", 1)),
        random_state=seed,
    )
    return Pipeline([("impute", SimpleImputer(strategy="median")), ("rf", rf)])


def make_svm_search(params: Optional[Mapping] = None, seed: int = DEFAULT_RANDOM_STATE) -> GridSearchCV:
    """
    RBF-kernel SVM tuned by k-fold cross-validated grid search.

    Features are median-imputed, then centered and scaled inside each fold.

    Args:
        params: Optional overrides (cv_folds, scoring, grid: {C: [...], gamma: [...]})
        seed: Random seed for the SVM and the fold assignment

    Returns:
        Unfitted GridSearchCV
    """
    params = dict(params or {})
    grid = params.get("grid") or DEFAULT_SVM_GRID
    pipe = Pipeline([
        ("impute", SimpleImputer(strategy="median")),
        ("scale", StandardScaler()),
        ("svm", SVC(kernel="rbf", probability=True, random_state=seed)),
    ])
    param_grid = {f"svm__{k}": list(v) for k, v in grid.items()}
    cv = StratifiedKFold(n_splits=int(params.get("cv_folds", 5)), shuffle=True, random_state=seed)
    return GridSearchCV(pipe, param_grid, cv=cv, scoring=params.get("scoring", "accuracy"), refit=True)


def make_model_factory(models_cfg: Optional[Mapping], seed: int) -> Callable[[str], object]:
    """Return a factory building "RandomForest" or "SVM" from the Models config."""
    models_cfg = models_cfg or {}

    def make_model(name: str):
        name = name.strip()
        if name == "RandomForest":
            return make_random_forest(models_cfg.get("random_forest", {}), seed)
        if name == "SVM":
            return make_svm_search(models_cfg.get("svm", {}), seed)
        raise ValueError(f"Unknown model in config: {name}")
    return make_model


def fit_model(model, X, y):
    """Fit on a feature block and string targets; errors propagate."""
    X_df = X if isinstance(X, pd.DataFrame) else pd.DataFrame(np.asarray(X, dtype=float))
    return model.fit(X_df, np.asarray(y).astype(str))


def predict_classes(model, X) -> Tuple[np.ndarray, pd.DataFrame]:
    """
    Predict per-class probabilities and the argmax class.

    Returns:
        Tuple of (predicted_labels, probability DataFrame with one column per class)
    """
    proba = np.asarray(model.predict_proba(X))
    classes = np.asarray(model.classes_).astype(str)
    proba_df = pd.DataFrame(proba, columns=classes)
    labels = classes[np.argmax(proba, axis=1)]
    return labels, proba_df


def best_params(model) -> dict:
    """Grid-search winner parameters (empty for non-search models)."""
    bp = getattr(model, "best_params_", None)
    if not bp:
        return {}
    return {k.replace("svm__", ""): v for k, v in bp.items()}


def y_scramble_auc(model_factory, X_tr, y_tr, X_val, y_val, n=10, seed=42, positive="0"):
    """
    Y-scrambling sanity check: fit on permuted training labels, score AUROC
    against the true validation labels.

    The expected mean is about 0.5, the null baseline for the real models.

    Args:
        model_factory: Function that returns a new model instance
        X_tr: Training feature matrix
        y_tr: Training labels (permuted n times)
        X_val: Validation feature matrix
        y_val: Validation labels
        n: Number of permutations
        seed: Random seed
        positive: Label treated as the positive class

    Returns:
        Tuple of (mean_auc, std_auc)
    """
    rng = np.random.default_rng(seed)
    X_tr = pd.DataFrame(np.asarray(X_tr, dtype=float))
    X_val = pd.DataFrame(np.asarray(X_val, dtype=float))
    y_tr = np.asarray(y_tr).astype(str)
    scores = []
    for _ in range(int(n)):
        y_perm = rng.permutation(y_tr)
        try:
            mdl = fit_model(model_factory(), X_tr, y_perm)
            p = positive_proba(mdl, X_val, positive=positive)
            scores.append(auc_score(y_val, p, positive=positive))
        except ValueError:
            # degenerate permutation (single class in a fold)
            continue
    scores = [s for s in scores if np.isfinite(s)]
    if not scores:
        return float("nan"), float("nan")
    return float(np.mean(scores)), float(np.std(scores))


def log_class_balance(name: str, y, log: logging.Logger, positive: str = "0"):
    y = np.asarray(y).astype(str)
    share = float(np.mean(y == positive)) if len(y) else float("nan")
    log.info(f"[Split] {name}: {len(y)} rows, {share:.1%} positive class")
