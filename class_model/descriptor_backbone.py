"""
Descriptor Backbone Module for Drug-Class Modeling

This module computes the fixed panel of RDKit 2D descriptors used by the
drug-class classifiers. Descriptors are organised in families; each family is
a single function that turns one molecule into one or more named columns.

Families:
- molecular_weight: MW, ExactMW
- alogp: ALogP, ALogp2, AMR
- polar_surface: TopoPSA, LabuteASA
- hbond_donors / hbond_acceptors: nHBDon, nHBAcc
- rotatable_bonds: nRotB
- atom_count: nAtom, nHeavyAtom, nHeteroAtom, FractionCSP3
- aromaticity: naAromAtom, nAromBond, nAromRing
- rings: nRing, nAliphaticRing
- rule_of_five: LipinskiFailures
- kappa_shape: Kappa1, Kappa2, Kappa3
- connectivity: Chi0v, Chi1v, BalabanJ, BertzCT

A family that fails on a molecule leaves NaN in its columns; the batch is
never aborted and numeric warnings are suppressed.
"""

from __future__ import annotations

import logging
import warnings
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd
from rdkit import Chem, RDLogger
from rdkit.Chem import Crippen, Descriptors, rdMolDescriptors
from tqdm import tqdm

RDLogger.DisableLog("rdApp.*")


def _molecular_weight(mol) -> Dict[str, float]:
    return {"MW": Descriptors.MolWt(mol), "ExactMW": Descriptors.ExactMolWt(mol)}


def _alogp(mol) -> Dict[str, float]:
    logp = Crippen.MolLogP(mol)
    return {"ALogP": logp, "ALogp2": logp ** 2, "AMR": Crippen.MolMR(mol)}


def _polar_surface(mol) -> Dict[str, float]:
    return {
        "TopoPSA": rdMolDescriptors.CalcTPSA(mol),
        "LabuteASA": rdMolDescriptors.CalcLabuteASA(mol),
    }


def _hbond_donors(mol) -> Dict[str, float]:
    return {"nHBDon": rdMolDescriptors.CalcNumHBD(mol)}


def _hbond_acceptors(mol) -> Dict[str, float]:
    return {"nHBAcc": rdMolDescriptors.CalcNumHBA(mol)}


def _rotatable_bonds(mol) -> Dict[str, float]:
    return {"nRotB": rdMolDescriptors.CalcNumRotatableBonds(mol)}


def _atom_count(mol) -> Dict[str, float]:
    return {
        "nAtom": Chem.AddHs(mol).GetNumAtoms(),
        "nHeavyAtom": mol.GetNumHeavyAtoms(),
        "nHeteroAtom": rdMolDescriptors.CalcNumHeteroatoms(mol),
        "FractionCSP3": rdMolDescriptors.CalcFractionCSP3(mol),
    }


def _aromaticity(mol) -> Dict[str, float]:
    return {
        "naAromAtom": sum(1 for a in mol.GetAtoms() if a.GetIsAromatic()),
        "nAromBond": sum(1 for b in mol.GetBonds() if b.GetIsAromatic()),
        "nAromRing": rdMolDescriptors.CalcNumAromaticRings(mol),
    }


def _rings(mol) -> Dict[str, float]:
    return {
        "nRing": rdMolDescriptors.CalcNumRings(mol),
        "nAliphaticRing": rdMolDescriptors.CalcNumAliphaticRings(mol),
    }


def _rule_of_five(mol) -> Dict[str, float]:
    """Count Lipinski rule-of-five violations (MW, logP, donors, acceptors)."""
    failures = sum([
        Descriptors.MolWt(mol) > 500,
        Crippen.MolLogP(mol) > 5,
        rdMolDescriptors.CalcNumHBD(mol) > 5,
        rdMolDescriptors.CalcNumHBA(mol) > 10,
    ])
    return {"LipinskiFailures": failures}


def _kappa_shape(mol) -> Dict[str, float]:
    return {
        "Kappa1": Descriptors.Kappa1(mol),
        "Kappa2": Descriptors.Kappa2(mol),
        "Kappa3": Descriptors.Kappa3(mol),
    }


def _connectivity(mol) -> Dict[str, float]:
    return {
        "Chi0v": Descriptors.Chi0v(mol),
        "Chi1v": Descriptors.Chi1v(mol),
        "BalabanJ": Descriptors.BalabanJ(mol),
        "BertzCT": Descriptors.BertzCT(mol),
    }


# Family name -> (function, produced columns); order defines column order
DESCRIPTOR_FAMILIES: Dict[str, tuple] = {
    "molecular_weight": (_molecular_weight, ["MW", "ExactMW"]),
    "alogp": (_alogp, ["ALogP", "ALogp2", "AMR"]),
    "polar_surface": (_polar_surface, ["TopoPSA", "LabuteASA"]),
    "hbond_donors": (_hbond_donors, ["nHBDon"]),
    "hbond_acceptors": (_hbond_acceptors, ["nHBAcc"]),
    "rotatable_bonds": (_rotatable_bonds, ["nRotB"]),
    "atom_count": (_atom_count, ["nAtom", "nHeavyAtom", "nHeteroAtom", "FractionCSP3"]),
    "aromaticity": (_aromaticity, ["naAromAtom", "nAromBond", "nAromRing"]),
    "rings": (_rings, ["nRing", "nAliphaticRing"]),
    "rule_of_five": (_rule_of_five, ["LipinskiFailures"]),
    "kappa_shape": (_kappa_shape, ["Kappa1", "Kappa2", "Kappa3"]),
    "connectivity": (_connectivity, ["Chi0v", "Chi1v", "BalabanJ", "BertzCT"]),
}


def _resolve_families(families: Optional[Iterable[str]]) -> List[str]:
    """Validate requested family names; None means all families in canonical order."""
    if families is None:
        return list(DESCRIPTOR_FAMILIES)
    names = [str(f).strip() for f in families]
    unknown = [f for f in names if f not in DESCRIPTOR_FAMILIES]
    if unknown:
        raise ValueError(f"Unknown descriptor families: {unknown}")
    return names


def descriptor_names(families: Optional[Iterable[str]] = None) -> List[str]:
    """Return the descriptor columns produced by the given families."""
    cols: List[str] = []
    for fam in _resolve_families(families):
        cols.extend(DESCRIPTOR_FAMILIES[fam][1])
    return cols


def _compute_family(func: Callable, columns: List[str], mol) -> List[float]:
    """Run one family on one molecule; any failure yields NaN for its columns."""
    if mol is None:
        return [np.nan] * len(columns)
    try:
        with warnings.catch_warnings(), np.errstate(all="ignore"):
            warnings.simplefilter("ignore")
            values = func(mol)
        return [float(values[c]) for c in columns]
    except Exception:
        return [np.nan] * len(columns)


def compute_descriptors(
        mols: Sequence,
        families: Optional[Iterable[str]] = None,
        ids: Optional[Sequence[int]] = None,
        log: Optional[logging.Logger] = None,
        progress: bool = False,
) -> pd.DataFrame:
    """
    Compute the descriptor table for a sequence of molecules.

    Exactly one row is produced per input molecule, in input order. Molecules
    that are None (unparseable structures) produce an all-NaN row.

    Args:
        mols: Sequence of RDKit molecules (None allowed)
        families: Descriptor family names (default: all twelve)
        ids: Row identifiers; defaults to 1..n in input order
        log: Logger instance (optional)
        progress: Show a tqdm progress bar

    Returns:
        DataFrame with an "ID" column followed by the descriptor columns
    """
    fams = _resolve_families(families)
    mols = list(mols)
    if ids is None:
        ids = range(1, len(mols) + 1)
    ids = list(ids)
    if len(ids) != len(mols):
        raise ValueError(f"Length mismatch: {len(mols)} molecules, {len(ids)} identifiers")

    columns = descriptor_names(fams)
    X = np.full((len(mols), len(columns)), np.nan, dtype=np.float64)
    for i, mol in enumerate(tqdm(mols, desc="Descriptors", disable=not progress)):
        row = []
        for fam in fams:
            func, cols = DESCRIPTOR_FAMILIES[fam]
            row.extend(_compute_family(func, cols, mol))
        X[i, :] = np.array(row, dtype=np.float64)

    df = pd.DataFrame(X, columns=columns)
    df.insert(0, "ID", ids)

    if log is not None:
        n_missing = int(df[columns].isna().any(axis=1).sum())
        log.info(f"[Descriptors] {len(df)} molecules x {len(columns)} descriptors "
                 f"({n_missing} rows with missing values)")
    return df
