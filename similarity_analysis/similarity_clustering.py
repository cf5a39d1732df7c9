"""
Fingerprint similarity and hierarchical clustering of drug molecules.

This module computes Morgan (ECFP) fingerprints, the pairwise Tanimoto
similarity matrix, and an agglomerative clustering of 1 - similarity. The
results are diagnostic only: they are saved under
`results/similarity/` and drawn as tree and fan dendrograms.
"""

import logging
import os
from typing import Dict, List, Optional, Sequence

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from rdkit import DataStructs
from rdkit.Chem import rdFingerprintGenerator
from scipy.cluster.hierarchy import dendrogram, fcluster, linkage
from scipy.spatial.distance import squareform

CLASS_COLORS = {
    "antibacterial": "#1f78b4",
    "antiviral": "#e31a1c",
    "other": "#7f7f7f",
}

# Morgan (ECFP) generator cache
_MORGAN_GEN_CACHE = {}


def get_morgan_generator(radius: int = 2, n_bits: int = 2048):
    """Get or create a cached Morgan fingerprint generator."""
    key = (int(radius), int(n_bits))
    gen = _MORGAN_GEN_CACHE.get(key)
    if gen is None:
        gen = rdFingerprintGenerator.GetMorganGenerator(radius=int(radius), fpSize=int(n_bits))
        _MORGAN_GEN_CACHE[key] = gen
    return gen


# ======================================================
# Fingerprints and similarity
# ======================================================

def compute_fingerprints(mols: Sequence, radius: int = 2, n_bits: int = 2048) -> list:
    """
    Generate ECFP (Morgan) fingerprints for all molecules.

    Args:
        mols: RDKit molecules (None allowed)
        radius: Fingerprint radius (default: 2, equivalent to ECFP4)
        n_bits: Number of bits in fingerprint (default: 2048)

    Returns:
        List of bit vectors, None where the molecule is missing
    """
    gen = get_morgan_generator(radius=radius, n_bits=n_bits)
    return [gen.GetFingerprint(m) if m is not None else None for m in mols]


def similarity_matrix(fps: Sequence) -> np.ndarray:
    """
    Pairwise Tanimoto similarity matrix.

    Symmetric with a unit diagonal; pairs involving a missing fingerprint are
    NaN.
    """
    n = len(fps)
    sim = np.eye(n, dtype=np.float64)
    for i in range(n):
        for j in range(i + 1, n):
            if fps[i] is not None and fps[j] is not None:
                s = DataStructs.TanimotoSimilarity(fps[i], fps[j])
            else:
                s = np.nan
            sim[i, j] = sim[j, i] = s
    return sim


def cluster_similarity(sim: np.ndarray, method: str = "average", threshold: float = 0.7) -> Dict:
    """
    Hierarchical clustering on Tanimoto distance (1 - similarity).

    Args:
        sim: Square similarity matrix without NaN
        method: SciPy linkage method (default: "average")
        threshold: Distance at which flat clusters are cut

    Returns:
        Dictionary with "linkage" matrix and flat "clusters" labels
    """
    sim = np.asarray(sim, dtype=np.float64)
    if sim.shape[0] < 2:
        raise ValueError("At least two molecules are needed for clustering")
    if not np.all(np.isfinite(sim)):
        raise ValueError("Similarity matrix contains missing values")
    dist = np.clip(1.0 - sim, 0.0, 1.0)
    np.fill_diagonal(dist, 0.0)
    Z = linkage(squareform(dist, checks=False), method=method)
    clusters = fcluster(Z, t=float(threshold), criterion="distance")
    return {"linkage": Z, "clusters": clusters}


# ======================================================
# Visualization functions
# ======================================================

def _leaf_colors(labels: Sequence[str]) -> List[str]:
    return [CLASS_COLORS.get(str(lab), "#333333") for lab in labels]


def plot_dendrogram(
    Z: np.ndarray,
    leaf_names: Sequence[str],
    leaf_classes: Sequence[str],
    outpath: str,
    fan: bool = False,
) -> None:
    """
    Draw the clustering as a rectangular tree or a circular fan dendrogram.

    Leaf labels are colored by drug class.

    Args:
        Z: Linkage matrix
        leaf_names: Label for each molecule (original order)
        leaf_classes: Drug class for each molecule (original order)
        outpath: Output path for plot (PNG)
        fan: Draw a circular (fan) layout instead of a tree
    """
    colors = _leaf_colors(leaf_classes)
    n = len(leaf_names)

    if not fan:
        fig, ax = plt.subplots(figsize=(8, max(4, 0.18 * n)))
        dn = dendrogram(Z, labels=list(leaf_names), orientation="left", ax=ax,
                        color_threshold=0, above_threshold_color="#555555", leaf_font_size=7)
        for lbl, leaf in zip(ax.get_ymajorticklabels(), dn["leaves"]):
            lbl.set_color(colors[leaf])
        ax.set_xlabel("Tanimoto distance")
        plt.tight_layout()
        plt.savefig(outpath, dpi=300)
        plt.close(fig)
        return

    dn = dendrogram(Z, no_plot=True)
    max_d = max(max(d) for d in dn["dcoord"]) or 1.0

    def theta(x):
        return 2 * np.pi * (x - 5.0) / (10.0 * n)

    fig = plt.figure(figsize=(8, 8))
    ax = fig.add_subplot(111, projection="polar")
    for xs, ds in zip(dn["icoord"], dn["dcoord"]):
        r = [max_d - d for d in ds]
        ax.plot([theta(xs[0])] * 2, [r[0], r[1]], color="#555555", linewidth=0.7)
        ax.plot([theta(xs[3])] * 2, [r[3], r[2]], color="#555555", linewidth=0.7)
        arc = np.linspace(theta(xs[1]), theta(xs[2]), 30)
        ax.plot(arc, [r[1]] * len(arc), color="#555555", linewidth=0.7)

    for pos, leaf in enumerate(dn["leaves"]):
        t = theta(5.0 + 10.0 * pos)
        deg = np.degrees(t)
        rot = deg if deg <= 90 or deg >= 270 else deg + 180
        ax.text(t, max_d * 1.03, str(leaf_names[leaf]), color=colors[leaf], fontsize=6,
                rotation=rot, rotation_mode="anchor",
                ha="left" if deg <= 90 or deg >= 270 else "right", va="center")

    ax.set_ylim(0, max_d * 1.25)
    ax.axis("off")
    plt.tight_layout()
    plt.savefig(outpath, dpi=300)
    plt.close(fig)


# ======================================================
# Main function for pipeline integration
# ======================================================

def run_similarity_analysis(
    mols: Sequence,
    leaf_classes: Sequence[str],
    leaf_names: Sequence[str],
    results_dir: str,
    config: dict,
    log: Optional[logging.Logger] = None,
) -> pd.DataFrame:
    """
    Main function for the similarity/clustering diagnostic.

    Orchestrates the workflow:
    1. Drop missing molecules and cap the set size (random, seeded)
    2. Compute fingerprints and the Tanimoto matrix
    3. Cluster and save matrix + cluster assignments to CSV
    4. Draw tree and fan dendrograms (if plots are enabled)

    Args:
        mols: RDKit molecules
        leaf_classes: Drug class per molecule
        leaf_names: Display name per molecule
        results_dir: Directory to save results
        config: Configuration dictionary
        log: Logger instance

    Returns:
        DataFrame of cluster assignments (name, class, cluster)
    """
    log = log or logging.getLogger(__name__)
    os.makedirs(results_dir, exist_ok=True)
    sim_cfg = config.get("Similarity", {})
    plots_enabled = bool(config.get("Plots", {}).get("enable", True))

    keep = [i for i, m in enumerate(mols) if m is not None]
    max_n = int(sim_cfg.get("max_molecules", 300))
    if len(keep) > max_n:
        rng = np.random.default_rng(int(config.get("Split", {}).get("random_state", 42)))
        keep = sorted(rng.choice(keep, size=max_n, replace=False).tolist())
        log.info(f"[Similarity] Capped to {max_n} molecules")
    mols_k = [mols[i] for i in keep]
    classes_k = [str(leaf_classes[i]) for i in keep]
    names_k = [str(leaf_names[i]) for i in keep]

    log.info(f"[Similarity] Computing {len(mols_k)}x{len(mols_k)} Tanimoto matrix...")
    fps = compute_fingerprints(mols_k, radius=int(sim_cfg.get("radius", 2)),
                               n_bits=int(sim_cfg.get("n_bits", 2048)))
    sim = similarity_matrix(fps)
    pd.DataFrame(sim, index=names_k, columns=names_k).to_csv(
        os.path.join(results_dir, "similarity_matrix.csv"))

    result = cluster_similarity(sim, method=sim_cfg.get("linkage", "average"),
                                threshold=float(sim_cfg.get("distance_threshold", 0.7)))
    clusters_df = pd.DataFrame({"name": names_k, "Class": classes_k, "cluster": result["clusters"]})
    clusters_df.to_csv(os.path.join(results_dir, "clusters.csv"), index=False)
    log.info(f"[Similarity] {clusters_df['cluster'].nunique()} clusters at distance "
             f"{sim_cfg.get('distance_threshold', 0.7)}")

    if plots_enabled:
        try:
            plot_dendrogram(result["linkage"], names_k, classes_k,
                            os.path.join(results_dir, "dendrogram_tree.png"), fan=False)
            plot_dendrogram(result["linkage"], names_k, classes_k,
                            os.path.join(results_dir, "dendrogram_fan.png"), fan=True)
        except Exception as e:
            log.warning(f"[Similarity] Dendrogram plotting failed: {e}")
    return clusters_df
