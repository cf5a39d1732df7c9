"""
Data Splitting Module for Drug-Class Modeling

Seeded, unstratified train/validation split by identifier. A fixed fraction
of rows is drawn without replacement for validation; every remaining
identifier goes to training. Class balance in each part is incidental.
"""

from __future__ import annotations

from typing import Tuple

import pandas as pd

DEFAULT_VALIDATION_FRACTION = 0.3
DEFAULT_RANDOM_STATE = 42


def validation_size(n_rows: int, fraction: float) -> int:
    """Number of validation rows for a dataset of n_rows."""
    return int(round(float(fraction) * int(n_rows)))


def train_validation_split(
        df: pd.DataFrame,
        fraction: float = DEFAULT_VALIDATION_FRACTION,
        seed: int = DEFAULT_RANDOM_STATE,
        id_col: str = "ID",
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Split a dataset into training and validation parts.

    Args:
        df: Dataset with a unique identifier column
        fraction: Share of rows drawn for validation (default: 0.3)
        seed: Random seed for the draw
        id_col: Identifier column name

    Returns:
        Tuple of (train_df, validation_df)

    Raises:
        ValueError: If fraction is not in (0, 1) or identifiers are not unique
    """
    fraction = float(fraction)
    if not 0.0 < fraction < 1.0:
        raise ValueError(f"Validation fraction must be in (0, 1), got {fraction}")
    if df[id_col].duplicated().any():
        raise ValueError(f"Duplicate identifiers in column '{id_col}'")

    n_val = validation_size(len(df), fraction)
    val_df = df.sample(n=n_val, replace=False, random_state=int(seed))
    val_ids = set(val_df[id_col])
    train_df = df[~df[id_col].isin(val_ids)]
    return train_df, val_df
