import numpy as np
import pandas as pd
import pytest
from rdkit import Chem

from conftest import SMILES
from data_preparation import build_class_tables, load_all_classes
from similarity_analysis.descriptor_plots import plot_descriptor_boxplots, run_descriptor_plots
from similarity_analysis.similarity_clustering import (
    cluster_similarity,
    compute_fingerprints,
    plot_dendrogram,
    run_similarity_analysis,
    similarity_matrix,
)


@pytest.fixture
def mols():
    entries = SMILES["antibacterial"][:4] + SMILES["antiviral"][:4]
    return [Chem.MolFromSmiles(s) for _, s in entries]


def test_similarity_matrix_is_symmetric_with_unit_diagonal(mols):
    sim = similarity_matrix(compute_fingerprints(mols))
    assert sim.shape == (8, 8)
    assert np.allclose(sim, sim.T)
    assert np.allclose(np.diag(sim), 1.0)
    assert ((sim >= 0.0) & (sim <= 1.0)).all()


def test_identical_molecules_have_similarity_one():
    sim = similarity_matrix(compute_fingerprints([Chem.MolFromSmiles("CCO"), Chem.MolFromSmiles("OCC")]))
    assert sim[0, 1] == pytest.approx(1.0)


def test_missing_molecule_gives_nan_and_blocks_clustering(mols):
    sim = similarity_matrix(compute_fingerprints(mols[:3] + [None]))
    assert np.isnan(sim[0, 3])
    with pytest.raises(ValueError):
        cluster_similarity(sim)


def test_cluster_labels_cover_every_molecule(mols):
    result = cluster_similarity(similarity_matrix(compute_fingerprints(mols)), threshold=0.7)
    assert len(result["clusters"]) == len(mols)
    assert result["linkage"].shape == (len(mols) - 1, 4)
    # threshold of 0 keeps distinct structures apart
    strict = cluster_similarity(similarity_matrix(compute_fingerprints(mols)), threshold=0.0)
    assert len(set(strict["clusters"])) == len(mols)


def test_cluster_needs_two_molecules():
    with pytest.raises(ValueError):
        cluster_similarity(np.ones((1, 1)))


def test_dendrograms_are_drawn(tmp_path, mols):
    Z = cluster_similarity(similarity_matrix(compute_fingerprints(mols)))["linkage"]
    names = [f"m{i}" for i in range(len(mols))]
    classes = ["antibacterial"] * 4 + ["antiviral"] * 4
    plot_dendrogram(Z, names, classes, str(tmp_path / "tree.png"))
    plot_dendrogram(Z, names, classes, str(tmp_path / "fan.png"), fan=True)
    assert (tmp_path / "tree.png").exists()
    assert (tmp_path / "fan.png").exists()


def test_run_similarity_analysis_caps_and_skips_missing(tmp_path, mols, log):
    config = {"Similarity": {"max_molecules": 5}, "Plots": {"enable": False}}
    all_mols = mols + [None]
    names = [f"m{i}" for i in range(len(all_mols))]
    classes = ["antibacterial"] * 4 + ["antiviral"] * 5
    out = run_similarity_analysis(all_mols, classes, names, str(tmp_path), config, log)
    assert len(out) == 5
    assert "m8" not in set(out["name"])
    matrix = pd.read_csv(tmp_path / "similarity_matrix.csv", index_col=0)
    assert matrix.shape == (5, 5)
    assert (tmp_path / "clusters.csv").exists()


def test_descriptor_plots(tmp_path, small_config, log):
    tables = build_class_tables(load_all_classes(small_config, log), small_config, log)
    config = {"Plots": {"descriptors": ["MW", "ALogP", "Unknown"]}}
    run_descriptor_plots(tables, str(tmp_path / "plots"), config, log)
    assert (tmp_path / "plots" / "descriptor_boxplots.png").exists()
    assert (tmp_path / "plots" / "ridge_MW.png").exists()
    assert not (tmp_path / "plots" / "ridge_Unknown.png").exists()
    with pytest.raises(ValueError):
        plot_descriptor_boxplots(tables["other"], ["Unknown"], str(tmp_path / "none.png"))
