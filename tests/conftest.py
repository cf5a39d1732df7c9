import logging
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest
from rdkit import Chem
from rdkit.Chem import Descriptors

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from class_model.descriptor_backbone import descriptor_names  # noqa: E402

SMILES = {
    "antibacterial": [
        ("ciprofloxacin", "OC(=O)C1=CN(C2CC2)c2cc(N3CCNCC3)c(F)cc2C1=O"),
        ("amoxicillin", "CC1(C)SC2C(NC(=O)C(N)c3ccc(O)cc3)C(=O)N2C1C(=O)O"),
        ("sulfamethoxazole", "Cc1cc(NS(=O)(=O)c2ccc(N)cc2)no1"),
        ("trimethoprim", "COc1cc(Cc2cnc(N)nc2N)cc(OC)c1OC"),
        ("chloramphenicol", "OCC(NC(=O)C(Cl)Cl)C(O)c1ccc(cc1)[N+](=O)[O-]"),
        ("metronidazole", "Cc1ncc([N+](=O)[O-])n1CCO"),
        ("nitrofurantoin", "O=C1CN(/N=C/c2ccc(o2)[N+](=O)[O-])C(=O)N1"),
        ("isoniazid", "NNC(=O)c1ccncc1"),
        ("linezolid", "CC(=O)NCC1CN(c2ccc(N3CCOCC3)c(F)c2)C(=O)O1"),
        ("benzylpenicillin", "CC1(C)SC2C(NC(=O)Cc3ccccc3)C(=O)N2C1C(=O)O"),
    ],
    "antiviral": [
        ("acyclovir", "Nc1nc2n(COCCO)cnc2c(=O)[nH]1"),
        ("zidovudine", "Cc1cn(C2CC(N=[N+]=[N-])C(CO)O2)c(=O)[nH]c1=O"),
        ("lamivudine", "Nc1ccn(C2CSC(CO)O2)c(=O)n1"),
        ("ribavirin", "NC(=O)c1ncn(n1)C1OC(CO)C(O)C1O"),
        ("oseltamivir", "CCOC(=O)C1=CC(OC(CC)CC)C(NC(C)=O)C(N)C1"),
        ("amantadine", "NC12CC3CC(CC(C3)C1)C2"),
        ("stavudine", "Cc1cn(C2C=CC(CO)O2)c(=O)[nH]c1=O"),
        ("ganciclovir", "Nc1nc2n(COC(CO)CO)cnc2c(=O)[nH]1"),
        ("rimantadine", "CC(N)C12CC3CC(CC(C3)C1)C2"),
        ("favipiravir", "NC(=O)c1nc(F)c[nH]c1=O"),
    ],
    "other": [
        ("aspirin", "CC(=O)Oc1ccccc1C(=O)O"),
        ("ibuprofen", "CC(C)Cc1ccc(cc1)C(C)C(=O)O"),
        ("caffeine", "Cn1cnc2c1c(=O)n(C)c(=O)n2C"),
        ("paracetamol", "CC(=O)Nc1ccc(O)cc1"),
        ("diazepam", "CN1C(=O)CN=C(c2ccccc2)c2cc(Cl)ccc21"),
        ("metformin", "CN(C)C(=N)NC(=N)N"),
        ("atenolol", "CC(C)NCC(O)COc1ccc(CC(N)=O)cc1"),
        ("omeprazole", "COc1ccc2[nH]c(S(=O)Cc3ncc(C)c(OC)c3C)nc2c1"),
        ("naproxen", "COc1ccc2cc(ccc2c1)C(C)C(=O)O"),
        ("fluoxetine", "CNCCC(Oc1ccc(cc1)C(F)(F)F)c1ccccc1"),
    ],
}


def write_class_files(data_dir: Path, class_name: str, entries, shuffle_metadata: bool = False):
    """Write <class>.sdf and <class>.csv for (name, smiles) entries."""
    data_dir.mkdir(parents=True, exist_ok=True)
    writer = Chem.SDWriter(str(data_dir / f"{class_name}.sdf"))
    rows = []
    for name, smi in entries:
        mol = Chem.MolFromSmiles(smi)
        mol.SetProp("_Name", name)
        writer.write(mol)
        rows.append({"Name": name, "Molecular Weight": round(Descriptors.MolWt(mol), 2)})
    writer.close()
    meta = pd.DataFrame(rows)
    if shuffle_metadata:
        meta = meta.iloc[::-1].reset_index(drop=True)
    meta.to_csv(data_dir / f"{class_name}.csv", index=False)


@pytest.fixture
def log():
    return logging.getLogger("drug_class_tests")


@pytest.fixture
def data_dir(tmp_path):
    d = tmp_path / "data"
    for name, entries in SMILES.items():
        write_class_files(d, name, entries)
    return d


@pytest.fixture
def small_config(tmp_path, data_dir):
    return {
        "Paths": {"data_dir": str(data_dir), "results_root": str(tmp_path / "results")},
        "Classes": {"positive": ["antibacterial", "antiviral"], "negative": "other"},
        "Loader": {"name_column": "Name", "mw_column": "Molecular_Weight", "mw_tolerance": 1.0},
        "Descriptors": {"required": ["MW", "ALogP"]},
        "Split": {"validation_fraction": 0.3, "random_state": 7},
        "Models": {
            "engines": ["RandomForest", "SVM"],
            "random_forest": {"n_estimators": 50},
            "svm": {"cv_folds": 2, "grid": {"C": [1.0], "gamma": ["scale"]}},
        },
        "Similarity": {"enable": True, "max_molecules": 30},
        "Extras": {"enable": True, "bootstrap_n": 50, "yscramble_n": 0},
        "Plots": {"enable": False},
    }


def synthetic_dataset(n_pos: int = 100, n_neg: int = 100, shift: float = 1.5, seed: int = 0) -> pd.DataFrame:
    """Descriptor-shaped table where the positive class is shifted on every column."""
    rng = np.random.default_rng(seed)
    cols = descriptor_names()
    pos = rng.normal(loc=shift, scale=1.0, size=(n_pos, len(cols)))
    neg = rng.normal(loc=0.0, scale=1.0, size=(n_neg, len(cols)))
    df = pd.DataFrame(np.vstack([pos, neg]), columns=cols)
    df.insert(0, "ID", np.arange(1, n_pos + n_neg + 1))
    df["Class"] = ["antibacterial"] * n_pos + ["other"] * n_neg
    df["Target"] = ["0"] * n_pos + ["1"] * n_neg
    return df


@pytest.fixture
def synthetic():
    return synthetic_dataset()
