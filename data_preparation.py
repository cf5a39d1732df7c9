"""
Dataset preparation utilities for drug-class descriptor modeling.

Functions in this module load structure files and metadata tables per drug
class, attach one identifier to each structure/metadata pair, compute the
descriptor table, and assemble the positive-vs-other binary datasets used by
the classifiers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from rdkit import Chem
from rdkit.Chem import Descriptors

from class_model.descriptor_backbone import compute_descriptors

DEFAULT_POSITIVE = ("antibacterial", "antiviral")
DEFAULT_NEGATIVE = "other"
DEFAULT_REQUIRED = ("MW", "ALogP")
POSITIVE_TARGET = "0"
NEGATIVE_TARGET = "1"


@dataclass(frozen=True)
class MoleculeRecord:
    """One structure and its metadata row, sharing a single identifier."""
    ID: int
    mol: Optional[Chem.Mol]
    class_name: str
    metadata: Mapping = field(default_factory=dict)


# =============================================================================
# Loading
# =============================================================================

def load_structures(path) -> List[Optional[Chem.Mol]]:
    """
    Read every entry of an SDF file in file order.

    Unparseable entries are kept as None so positions stay aligned with the
    metadata table.

    Args:
        path: Path to the SDF file

    Returns:
        List of RDKit molecules (None for entries RDKit could not read)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Structure file not found: {path}")
    suppl = Chem.SDMolSupplier(str(path))
    return [mol for mol in suppl]


def load_metadata(path) -> pd.DataFrame:
    """Read a metadata table and normalise its column names."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Metadata file not found: {path}")
    df = pd.read_csv(path, on_bad_lines="skip")
    return df.rename(columns=lambda c: str(c).strip().replace(" ", "_"))


def _check_alignment(
        records: Sequence[MoleculeRecord],
        mw_column: str,
        tolerance: float,
        log: logging.Logger,
) -> int:
    """Warn about records whose tabulated weight disagrees with the structure."""
    mismatched = []
    for rec in records:
        if rec.mol is None or mw_column not in rec.metadata:
            continue
        tab_mw = pd.to_numeric(rec.metadata[mw_column], errors="coerce")
        if pd.isna(tab_mw):
            continue
        if abs(Descriptors.MolWt(rec.mol) - float(tab_mw)) > tolerance:
            mismatched.append(rec.ID)
    if mismatched:
        log.warning(f"[Loader] {len(mismatched)} records of '{records[0].class_name}' have a "
                    f"{mw_column} differing from the structure by > {tolerance} "
                    f"(first IDs: {mismatched[:5]})")
    return len(mismatched)


def load_class(
        structure_path,
        metadata_path,
        class_name: str,
        log: logging.Logger,
        mw_column: Optional[str] = None,
        mw_tolerance: float = 1.0,
) -> List[MoleculeRecord]:
    """
    Load one drug class into MoleculeRecords.

    Structure i is paired with metadata row i and both receive ID = i + 1.

    Args:
        structure_path: Path to the SDF file
        metadata_path: Path to the metadata CSV
        class_name: Drug-class label for these records
        log: Logger instance
        mw_column: Metadata column holding molecular weight, used for an
            alignment check (optional)
        mw_tolerance: Allowed |MW difference| before a record is reported

    Returns:
        List of MoleculeRecord in load order

    Raises:
        ValueError: If structure and metadata counts differ
    """
    mols = load_structures(structure_path)
    meta = load_metadata(metadata_path)
    if len(mols) != len(meta):
        log.error(f"[Loader] {class_name}: {len(mols)} structures vs {len(meta)} metadata rows")
        raise ValueError(
            f"{class_name}: {len(mols)} structures in {structure_path} but "
            f"{len(meta)} rows in {metadata_path}"
        )

    records = [
        MoleculeRecord(ID=i + 1, mol=mol, class_name=class_name, metadata=row)
        for i, (mol, row) in enumerate(zip(mols, meta.to_dict(orient="records")))
    ]
    n_bad = sum(1 for r in records if r.mol is None)
    log.info(f"[Loader] {class_name}: {len(records)} records ({n_bad} unparseable structures)")

    if mw_column and mw_column in meta.columns:
        _check_alignment(records, mw_column, mw_tolerance, log)
    return records


def records_to_frames(records: Sequence[MoleculeRecord]) -> Tuple[List, pd.DataFrame]:
    """Split records into a molecule list and a metadata table keyed by ID."""
    mols = [r.mol for r in records]
    meta = pd.DataFrame([dict(r.metadata) for r in records])
    meta.insert(0, "ID", [r.ID for r in records])
    return mols, meta


def load_all_classes(cfg: Mapping, log: logging.Logger) -> Dict[str, List[MoleculeRecord]]:
    """Load every configured class from the data directory."""
    paths = cfg.get("Paths", {})
    data_dir = Path(paths.get("data_dir", "data"))
    classes_cfg = cfg.get("Classes", {})
    files = classes_cfg.get("files", {})
    loader_cfg = cfg.get("Loader", {})

    names = list(classes_cfg.get("positive", DEFAULT_POSITIVE)) + [classes_cfg.get("negative", DEFAULT_NEGATIVE)]
    out = {}
    for name in names:
        class_files = files.get(name, {})
        out[name] = load_class(
            data_dir / class_files.get("structures", f"{name}.sdf"),
            data_dir / class_files.get("metadata", f"{name}.csv"),
            class_name=name,
            log=log,
            mw_column=loader_cfg.get("mw_column"),
            mw_tolerance=float(loader_cfg.get("mw_tolerance", 1.0)),
        )
    return out


# =============================================================================
# Dataset assembly
# =============================================================================

def join_descriptors(metadata: pd.DataFrame, descriptors: pd.DataFrame) -> pd.DataFrame:
    """
    Join metadata to descriptors on ID (exact match, one-to-one).

    Metadata columns whose names clash with a descriptor get a "_meta" suffix.
    """
    return pd.merge(metadata, descriptors, on="ID", how="inner",
                    suffixes=("_meta", ""), validate="one_to_one")


def stamp_class(df: pd.DataFrame, class_name: str) -> pd.DataFrame:
    df = df.copy()
    df["Class"] = class_name
    return df


def combine_classes(pos_df: pd.DataFrame, neg_df: pd.DataFrame) -> pd.DataFrame:
    """Concatenate two class tables and renumber ID as 1..n."""
    df = pd.concat([pos_df, neg_df], ignore_index=True)
    df["ID"] = np.arange(1, len(df) + 1)
    return df


def map_binary_target(
        labels: pd.Series,
        positive_class: str,
        negative_class: str = DEFAULT_NEGATIVE,
) -> pd.Series:
    """
    Map class labels to the binary target by string substitution.

    positive_class -> "0", negative_class -> "1".

    Raises:
        ValueError: If a label is neither the positive nor the negative class
    """
    labels = pd.Series(labels).astype(str)
    unknown = sorted(set(labels) - {positive_class, negative_class})
    if unknown:
        raise ValueError(f"Unexpected class labels {unknown}; expected "
                         f"'{positive_class}' or '{negative_class}'")
    return labels.replace({positive_class: POSITIVE_TARGET, negative_class: NEGATIVE_TARGET})


def drop_missing_descriptors(
        df: pd.DataFrame,
        required: Sequence[str] = DEFAULT_REQUIRED,
        log: Optional[logging.Logger] = None,
) -> pd.DataFrame:
    """Drop rows missing any of the required descriptor columns."""
    required = list(required)
    missing_cols = [c for c in required if c not in df.columns]
    if missing_cols:
        raise KeyError(f"Required descriptor columns not in dataset: {missing_cols}")
    out = df.dropna(subset=required)
    if log is not None and len(out) < len(df):
        log.info(f"[Assembler] Dropped {len(df) - len(out)} rows missing {required}")
    return out


def build_class_table(
        records: Sequence[MoleculeRecord],
        families=None,
        log: Optional[logging.Logger] = None,
) -> pd.DataFrame:
    """Descriptors + metadata + class label for one class."""
    if not records:
        raise ValueError("No records to build a class table from")
    mols, meta = records_to_frames(records)
    desc = compute_descriptors(mols, families=families, ids=meta["ID"].tolist(), log=log)
    return stamp_class(join_descriptors(meta, desc), records[0].class_name)


def build_binary_dataset(
        pos_table: pd.DataFrame,
        neg_table: pd.DataFrame,
        positive: str,
        negative: str = DEFAULT_NEGATIVE,
        required: Sequence[str] = DEFAULT_REQUIRED,
        log: Optional[logging.Logger] = None,
) -> pd.DataFrame:
    """
    Assemble one positive-vs-negative dataset.

    Steps: concatenate and renumber IDs, map the binary target, then drop
    rows missing any required descriptor.
    """
    df = combine_classes(pos_table, neg_table)
    df["Target"] = map_binary_target(df["Class"], positive, negative)
    df = drop_missing_descriptors(df, required, log=log)
    if log is not None:
        counts = df["Target"].value_counts().to_dict()
        log.info(f"[Assembler] {positive} vs {negative}: {len(df)} rows "
                 f"({counts.get(POSITIVE_TARGET, 0)} {positive}, {counts.get(NEGATIVE_TARGET, 0)} {negative})")
    return df.reset_index(drop=True)


def build_class_tables(
        records_by_class: Mapping[str, Sequence[MoleculeRecord]],
        cfg: Mapping,
        log: logging.Logger,
) -> Dict[str, pd.DataFrame]:
    """Compute the descriptor-joined table of every loaded class."""
    families = cfg.get("Descriptors", {}).get("families")
    tables = {}
    for name, records in records_by_class.items():
        log.info(f"[Descriptors] Computing descriptors for {name}...")
        tables[name] = build_class_table(records, families=families, log=log)
    return tables


def create_binary_datasets(
        class_tables: Mapping[str, pd.DataFrame],
        cfg: Mapping,
        log: logging.Logger,
) -> Dict[str, pd.DataFrame]:
    """
    Build every positive-vs-negative dataset and save it as CSV.

    Args:
        class_tables: Class name -> table from build_class_tables
        cfg: Configuration dictionary
        log: Logger instance

    Returns:
        Dictionary positive class -> binary dataset
    """
    classes_cfg = cfg.get("Classes", {})
    negative = classes_cfg.get("negative", DEFAULT_NEGATIVE)
    positives = list(classes_cfg.get("positive", DEFAULT_POSITIVE))
    required = cfg.get("Descriptors", {}).get("required", list(DEFAULT_REQUIRED))

    out_dir = Path(cfg.get("Paths", {}).get("results_root", "results")) / "datasets"
    out_dir.mkdir(parents=True, exist_ok=True)

    datasets = {}
    for positive in positives:
        df = build_binary_dataset(class_tables[positive], class_tables[negative],
                                  positive, negative, required, log=log)
        out_csv = out_dir / f"{positive}_vs_{negative}.csv"
        df.to_csv(out_csv, index=False)
        log.info(f"[Assembler] Saved {out_csv}")
        datasets[positive] = df
    return datasets
