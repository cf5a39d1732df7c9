"""
Descriptor distribution plots by drug class.

Box plots of several descriptors side by side and ridge (stacked density)
plots of one descriptor per class. Results are saved in
`results/descriptor_plots/`.
"""

import logging
import os
from typing import Optional, Sequence

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from similarity_analysis.similarity_clustering import CLASS_COLORS


def _class_palette(classes: Sequence[str]) -> dict:
    return {c: CLASS_COLORS.get(c, "#999999") for c in classes}


def plot_descriptor_boxplots(
    df: pd.DataFrame,
    descriptors: Sequence[str],
    outpath: str,
    class_col: str = "Class",
    ncols: int = 3,
) -> None:
    """
    Grid of box plots, one panel per descriptor, boxes grouped by class.

    Args:
        df: Table with descriptor columns and a class column
        descriptors: Descriptors to plot
        outpath: Output path for plot (PNG)
        class_col: Name of the class column
        ncols: Panels per row
    """
    descriptors = [d for d in descriptors if d in df.columns]
    if not descriptors:
        raise ValueError("None of the requested descriptors are in the table")
    classes = list(pd.unique(df[class_col]))
    nrows = int(np.ceil(len(descriptors) / ncols))

    fig, axes = plt.subplots(nrows, ncols, figsize=(4 * ncols, 3.2 * nrows), squeeze=False)
    for ax, desc in zip(axes.ravel(), descriptors):
        sns.boxplot(data=df, x=class_col, y=desc, hue=class_col, order=classes,
                    palette=_class_palette(classes), legend=False, fliersize=2, ax=ax)
        ax.set_xlabel("")
        ax.set_title(desc, fontsize=11)
        ax.tick_params(axis="x", rotation=20)
    for ax in axes.ravel()[len(descriptors):]:
        ax.set_visible(False)
    plt.tight_layout()
    plt.savefig(outpath, dpi=300)
    plt.close(fig)


def plot_ridge_densities(
    df: pd.DataFrame,
    descriptor: str,
    outpath: str,
    class_col: str = "Class",
) -> None:
    """
    Ridge plot: one kernel density per class, stacked vertically.

    Args:
        df: Table with the descriptor and a class column
        descriptor: Descriptor to plot
        outpath: Output path for plot (PNG)
        class_col: Name of the class column
    """
    data = df[[class_col, descriptor]].dropna()
    classes = list(pd.unique(data[class_col]))
    sns.set_theme(style="white", rc={"axes.facecolor": (0, 0, 0, 0)})
    g = sns.FacetGrid(data, row=class_col, hue=class_col, row_order=classes, hue_order=classes,
                      palette=_class_palette(classes), aspect=5, height=1.1)
    g.map(sns.kdeplot, descriptor, fill=True, alpha=0.7, linewidth=1.2, warn_singular=False)
    g.map(sns.kdeplot, descriptor, color="white", linewidth=1.5, warn_singular=False)
    g.refline(y=0, linewidth=1, linestyle="-", clip_on=False)

    def _label(x, color, label):
        ax = plt.gca()
        ax.text(0, 0.2, label, fontweight="bold", color=color, ha="left", va="center",
                transform=ax.transAxes)

    g.map(_label, descriptor)
    g.figure.subplots_adjust(hspace=-0.3)
    g.set_titles("")
    g.set(yticks=[], ylabel="")
    g.despine(bottom=True, left=True)
    g.savefig(outpath, dpi=300)
    plt.close(g.figure)
    sns.set_theme(style="white")


def run_descriptor_plots(
    class_tables: dict,
    results_dir: str,
    config: dict,
    log: Optional[logging.Logger] = None,
) -> None:
    """
    Box plots and ridge plots for the configured descriptors across all classes.

    Args:
        class_tables: Class name -> descriptor table
        results_dir: Directory to save plots
        config: Configuration dictionary
        log: Logger instance
    """
    log = log or logging.getLogger(__name__)
    os.makedirs(results_dir, exist_ok=True)
    plots_cfg = config.get("Plots", {})
    descriptors = plots_cfg.get("descriptors", ["MW", "ALogP", "TopoPSA", "nHBDon", "nHBAcc", "nRotB"])

    combined = pd.concat(list(class_tables.values()), ignore_index=True)
    plot_descriptor_boxplots(combined, descriptors, os.path.join(results_dir, "descriptor_boxplots.png"))
    for desc in descriptors:
        if desc not in combined.columns:
            log.warning(f"[Plots] Descriptor {desc} not found; skipping ridge plot")
            continue
        plot_ridge_densities(combined, desc, os.path.join(results_dir, f"ridge_{desc}.png"))
    log.info(f"[Plots] Descriptor plots saved to {results_dir}")
