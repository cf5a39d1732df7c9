"""
Feature Utilities Module for Drug-Class Modeling

This module selects the feature blocks fed to the classifiers:
- the full descriptor block (random forest)
- the hand-picked SVM descriptor formula, read from config
"""

from __future__ import annotations

from typing import List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from class_model.descriptor_backbone import descriptor_names

# Default 18-descriptor SVM formula; override with Models.svm.features
DEFAULT_SVM_FEATURES = [
    "MW", "ALogP", "AMR", "TopoPSA", "LabuteASA",
    "nHBDon", "nHBAcc", "nRotB", "nHeavyAtom", "nHeteroAtom",
    "FractionCSP3", "naAromAtom", "nAromRing", "nRing",
    "Kappa1", "Kappa2", "Chi1v", "BertzCT",
]


def svm_features(cfg: Optional[Mapping] = None) -> List[str]:
    """SVM feature formula from config, falling back to the default 18 descriptors."""
    cfg = cfg or {}
    feats = cfg.get("Models", {}).get("svm", {}).get("features") or DEFAULT_SVM_FEATURES
    # dedup, keep order
    seen = set()
    return [str(f) for f in feats if not (f in seen or seen.add(f))]


def full_descriptor_features(df: pd.DataFrame, families=None) -> List[str]:
    """Every descriptor column present in df, in canonical order."""
    return [c for c in descriptor_names(families) if c in df.columns]


def feature_block(df: pd.DataFrame, features: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Return the numeric feature block for the given columns.

    Args:
        df: Dataset
        features: Columns to select; None selects the full descriptor block

    Raises:
        KeyError: If a requested feature is absent from df
    """
    cols = list(features) if features is not None else full_descriptor_features(df)
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise KeyError(f"Feature columns not in dataset: {missing}")
    return df[cols].apply(pd.to_numeric, errors="coerce").astype(np.float64)


def target_vector(df: pd.DataFrame, target_col: str = "Target") -> np.ndarray:
    return df[target_col].astype(str).to_numpy()
