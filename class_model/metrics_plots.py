"""
Metrics and Plots Module for Drug-Class Model Evaluation

This module provides the evaluation metrics and the diagnostic figures for the
drug-class classifiers.

Features:
- Confusion counts (TP/FP/TN/FN), accuracy, sensitivity, specificity
- Empirical ROC curve and AUROC
- Binormal smoothed ROC curve and its AUROC
- Bootstrap AUROC confidence interval
- Figures: ROC (raw + smoothed), fourfold plot, confusion matrix, AUC summary

Labels are strings; the positive class is the drug class ("0") unless stated
otherwise.
"""

from __future__ import annotations

import pathlib
from typing import Dict, Mapping, Sequence

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from matplotlib.colors import ListedColormap
from matplotlib.patches import Wedge
from scipy.stats import norm
from sklearn.metrics import confusion_matrix, roc_auc_score, roc_curve

# Publication settings
PUB_DPI = 300
PALETTE = {
    "blue": "#8ecae6",      # pastel blue
    "green": "#a8ddb5",     # pastel green
    "purple": "#c7b9ff",    # pastel purple
    "orange": "#fdbf6f",    # pastel orange
    "red": "#f4aaaa",       # pastel red
    "gray": "#cfcfcf",      # pastel gray
    "ink": "#3a3a3a",       # dark labels
}

# Soft colormap for confusion matrices
CMAP_SOFT = ListedColormap(["#f0f4ff", "#d7e3ff", "#bcd4ff", "#a1c6ff", "#85b7ff", "#6aa8ff"])

plt.rcParams.update({
    "savefig.dpi": PUB_DPI,
    "axes.edgecolor": "#aaaaaa",
    "axes.labelcolor": PALETTE["ink"],
    "xtick.color": PALETTE["ink"],
    "ytick.color": PALETTE["ink"],
    "font.size": 10,
})


def ensure_dir(p: pathlib.Path):
    """Ensure directory exists."""
    p.mkdir(parents=True, exist_ok=True)


def _is_positive(y, positive: str) -> np.ndarray:
    return (np.asarray(y).astype(str) == str(positive)).astype(int)


# =============================================================================
# Metrics
# =============================================================================

def positive_proba(model, X, positive: str = "0") -> np.ndarray:
    """
    Return P(y=positive) from a fitted classifier with string classes.

    Args:
        model: Fitted sklearn-like classifier
        X: Feature matrix
        positive: Label of the positive class

    Returns:
        Array of positive-class probabilities
    """
    proba = np.asarray(model.predict_proba(X))
    classes = [str(c) for c in model.classes_]
    if str(positive) not in classes:
        raise ValueError(f"Positive class '{positive}' not among model classes {classes}")
    return proba[:, classes.index(str(positive))]


def confusion_counts(y_true, y_pred, positive: str = "0", negative: str = "1") -> Dict:
    """
    Confusion counts for one binary prediction.

    The matrix rows are true [positive, negative], columns predicted
    [positive, negative]. TP + FP + TN + FN equals the number of samples.

    Returns:
        Dictionary with TP, FP, TN, FN, n and the 2x2 "matrix"
    """
    y_true = np.asarray(y_true).astype(str)
    y_pred = np.asarray(y_pred).astype(str)
    cmx = confusion_matrix(y_true, y_pred, labels=[str(positive), str(negative)])
    tp, fn, fp, tn = (int(v) for v in cmx.ravel())
    return {"TP": tp, "FP": fp, "TN": tn, "FN": fn, "n": int(cmx.sum()), "matrix": cmx}


def auc_score(y_true, score, positive: str = "0") -> float:
    """AUROC of score for the positive class; NaN if only one class is present."""
    yb = _is_positive(y_true, positive)
    if len(np.unique(yb)) < 2:
        return float("nan")
    return float(roc_auc_score(yb, np.asarray(score, dtype=float)))


def roc_points(y_true, score, positive: str = "0") -> pd.DataFrame:
    """Empirical ROC curve as a DataFrame of fpr, tpr, threshold."""
    fpr, tpr, thr = roc_curve(_is_positive(y_true, positive), np.asarray(score, dtype=float))
    return pd.DataFrame({"fpr": fpr, "tpr": tpr, "threshold": thr})


def smooth_roc(y_true, score, positive: str = "0", n_points: int = 200) -> Dict:
    """
    Binormal smoothed ROC curve.

    A straight line qnorm(TPR) = a + b * qnorm(FPR) is fitted to the interior
    points of the empirical curve; the smoothed curve and its AUC follow from
    the fitted line: AUC = Phi(a / sqrt(1 + b^2)). When fewer than two
    interior points exist, or the fitted slope is not positive, the empirical
    curve is returned on the same grid.

    Args:
        y_true: True labels
        score: Scores, higher meaning more likely positive
        positive: Label of the positive class
        n_points: Number of FPR grid points

    Returns:
        Dictionary with fpr, tpr, auc, a, b and method ("binormal" or "empirical")
    """
    roc = roc_points(y_true, score, positive)
    fpr, tpr = roc["fpr"].to_numpy(), roc["tpr"].to_numpy()
    grid = np.linspace(0.0, 1.0, int(n_points))

    inner = (fpr > 0) & (fpr < 1) & (tpr > 0) & (tpr < 1)
    x, y = norm.ppf(fpr[inner]), norm.ppf(tpr[inner])
    if inner.sum() >= 2 and np.unique(x).size >= 2:
        b, a = np.polyfit(x, y, 1)
        if b > 0:
            with np.errstate(all="ignore"):
                tpr_s = norm.cdf(a + b * norm.ppf(grid))
            return {
                "fpr": grid,
                "tpr": np.clip(tpr_s, 0.0, 1.0),
                "auc": float(norm.cdf(a / np.sqrt(1.0 + b ** 2))),
                "a": float(a),
                "b": float(b),
                "method": "binormal",
            }

    tpr_e = np.interp(grid, fpr, tpr)
    return {
        "fpr": grid,
        "tpr": tpr_e,
        "auc": auc_score(y_true, score, positive),
        "a": float("nan"),
        "b": float("nan"),
        "method": "empirical",
    }


def bootstrap_auc(y, p, positive: str = "0", n=1000, seed=42):
    """
    Bootstrap the AUROC on (y, p) with replacement.
    Robust to degenerate class cases (returns NaNs if AUROC undefined).

    Returns:
        Tuple of (median, lower_ci, upper_ci)
    """
    yb = _is_positive(y, positive)
    p = np.asarray(p, dtype=float)
    if len(np.unique(yb)) < 2:
        return float("nan"), float("nan"), float("nan")
    rng = np.random.default_rng(seed)
    N = len(yb)
    out = []
    for _ in range(int(n)):
        idx = rng.integers(0, N, N)
        if len(np.unique(yb[idx])) < 2:
            continue
        out.append(roc_auc_score(yb[idx], p[idx]))
    if not out:
        return float("nan"), float("nan"), float("nan")
    return float(np.median(out)), float(np.percentile(out, 2.5)), float(np.percentile(out, 97.5))


def evaluate_predictions(y_true, y_pred, score, positive: str = "0", negative: str = "1") -> Dict:
    """
    Evaluate one model on the validation rows.

    Args:
        y_true: True labels
        y_pred: Predicted labels
        score: Positive-class probabilities
        positive: Positive label
        negative: Negative label

    Returns:
        Dictionary of counts and scalar metrics (AUROC, AUROC_smooth, ...)
    """
    cm = confusion_counts(y_true, y_pred, positive, negative)
    tp, fp, tn, fn = cm["TP"], cm["FP"], cm["TN"], cm["FN"]
    smooth = smooth_roc(y_true, score, positive)
    return {
        "TP": tp, "FP": fp, "TN": tn, "FN": fn, "n": cm["n"],
        "Accuracy": (tp + tn) / cm["n"] if cm["n"] else float("nan"),
        "Sensitivity": tp / (tp + fn) if (tp + fn) else float("nan"),
        "Specificity": tn / (tn + fp) if (tn + fp) else float("nan"),
        "AUROC": auc_score(y_true, score, positive),
        "AUROC_smooth": smooth["auc"],
        "ROC_smoothing": smooth["method"],
    }


def print_summary(title: str, ev: Mapping, positive_name: str = "positive", negative_name: str = "other"):
    """Print the confusion matrix and AUC of one model to the console."""
    width = max(len(positive_name), len(negative_name), 9)
    print(f"\n{title}")
    print(f"{'':>{width}}  {'Reference':^{2 * width + 2}}")
    print(f"{'Predicted':>{width}}  {positive_name:>{width}}  {negative_name:>{width}}")
    print(f"{positive_name:>{width}}  {ev['TP']:>{width}}  {ev['FP']:>{width}}")
    print(f"{negative_name:>{width}}  {ev['FN']:>{width}}  {ev['TN']:>{width}}")
    print(f"Accuracy: {ev['Accuracy']:.3f} | Sensitivity: {ev['Sensitivity']:.3f} | "
          f"Specificity: {ev['Specificity']:.3f}")
    print(f"AUC: {ev['AUROC']:.3f} (smoothed: {ev['AUROC_smooth']:.3f})")


# =============================================================================
# Plots
# =============================================================================

def plot_confusion(counts: Mapping, out_png: pathlib.Path, classes: Sequence[str] = ("positive", "other")):
    """
    Plot confusion matrix heatmap.

    Args:
        counts: Output of confusion_counts (uses "matrix")
        out_png: Output path for PNG file
        classes: Display names for (positive, negative)
    """
    cmx = np.asarray(counts["matrix"])
    fig, ax = plt.subplots(figsize=(4, 4))
    im = ax.imshow(cmx, interpolation="nearest", cmap=CMAP_SOFT, vmin=0)
    ax.set_xticks([0, 1])
    ax.set_xticklabels(classes)
    ax.set_yticks([0, 1])
    ax.set_yticklabels(classes)
    ax.set_xlabel("Predicted")
    ax.set_ylabel("True")
    for (i, j), v in np.ndenumerate(cmx):
        ax.text(j, i, str(int(v)), ha="center", va="center", color="#222222")
    plt.colorbar(im, ax=ax, fraction=0.046, pad=0.04)
    plt.tight_layout()
    ensure_dir(pathlib.Path(out_png).parent)
    plt.savefig(out_png, bbox_inches="tight")
    plt.close(fig)


def plot_fourfold(counts: Mapping, out_png: pathlib.Path, classes: Sequence[str] = ("positive", "other"),
                  title: str = ""):
    """
    Fourfold display of a 2x2 confusion matrix.

    Each cell is a quarter circle whose area is proportional to its count;
    correct predictions are drawn in green, errors in red.
    """
    cmx = np.asarray(counts["matrix"], dtype=float)
    vmax = cmx.max() if cmx.max() > 0 else 1.0
    # (row, col) -> wedge angles: top-left, top-right, bottom-left, bottom-right
    angles = {(0, 0): (90, 180), (0, 1): (0, 90), (1, 0): (180, 270), (1, 1): (270, 360)}
    label_pos = {(0, 0): (-0.75, 0.75), (0, 1): (0.75, 0.75), (1, 0): (-0.75, -0.75), (1, 1): (0.75, -0.75)}

    fig, ax = plt.subplots(figsize=(4.5, 4.5))
    for (i, j), (t1, t2) in angles.items():
        r = np.sqrt(cmx[i, j] / vmax)
        color = PALETTE["green"] if i == j else PALETTE["red"]
        ax.add_patch(Wedge((0, 0), r, t1, t2, facecolor=color, edgecolor=PALETTE["ink"], linewidth=0.8))
        ax.add_patch(Wedge((0, 0), 1.0, t1, t2, fill=False, edgecolor=PALETTE["gray"], linewidth=0.6))
        x, y = label_pos[(i, j)]
        ax.text(x, y, str(int(cmx[i, j])), ha="center", va="center", fontsize=12, color=PALETTE["ink"])
    ax.axhline(0, color=PALETTE["ink"], linewidth=0.8)
    ax.axvline(0, color=PALETTE["ink"], linewidth=0.8)
    ax.text(0, 1.12, f"True: {classes[0]}", ha="center", fontsize=9)
    ax.text(0, -1.18, f"True: {classes[1]}", ha="center", fontsize=9)
    ax.text(-1.15, 0, f"Pred: {classes[0]}", ha="center", va="center", rotation=90, fontsize=9)
    ax.text(1.15, 0, f"Pred: {classes[1]}", ha="center", va="center", rotation=270, fontsize=9)
    ax.set_xlim(-1.25, 1.25)
    ax.set_ylim(-1.25, 1.25)
    ax.set_aspect("equal")
    ax.axis("off")
    if title:
        ax.set_title(title)
    plt.tight_layout()
    ensure_dir(pathlib.Path(out_png).parent)
    fig.savefig(out_png, bbox_inches="tight")
    plt.close(fig)


def plot_roc(curves: Mapping[str, Mapping], out_png: pathlib.Path, title: str = ""):
    """
    Overlay empirical and smoothed ROC curves of several models.

    Args:
        curves: Model name -> {"roc": roc_points DataFrame, "smooth": smooth_roc dict, "auc": float}
        out_png: Output path for PNG file
        title: Figure title
    """
    colors = [PALETTE["blue"], PALETTE["orange"], PALETTE["purple"], PALETTE["green"]]
    fig, ax = plt.subplots(figsize=(4.5, 4.5))
    for k, (name, c) in enumerate(curves.items()):
        color = colors[k % len(colors)]
        roc = c["roc"]
        ax.step(roc["fpr"], roc["tpr"], where="post", color=color, alpha=0.5, linewidth=1)
        sm = c["smooth"]
        ax.plot(sm["fpr"], sm["tpr"], color=color, linewidth=2,
                label=f"{name} (AUC = {c['auc']:.3f})")
    ax.plot([0, 1], [0, 1], linestyle="--", color=PALETTE["gray"], linewidth=1)
    ax.set_xlabel("False positive rate")
    ax.set_ylabel("True positive rate")
    ax.legend(loc="lower right", frameon=False, fontsize=8)
    if title:
        ax.set_title(title)
    plt.tight_layout()
    ensure_dir(pathlib.Path(out_png).parent)
    fig.savefig(out_png, bbox_inches="tight")
    plt.close(fig)


def plot_metrics_summary(csv_path: pathlib.Path, out_png: pathlib.Path):
    """
    Plot AUROC per dataset and model as a grouped bar chart.

    Args:
        csv_path: Path to CSV file containing metrics
        out_png: Output path for PNG file
    """
    df = pd.read_csv(csv_path)
    if df.empty:
        return
    long = df.melt(id_vars=["dataset", "model"], value_vars=["AUROC", "AUROC_smooth"],
                   var_name="Metric", value_name="Score")
    long["label"] = long["dataset"] + " / " + long["model"]

    fig, ax = plt.subplots(figsize=(7, 4))
    sns.barplot(data=long, x="label", y="Score", hue="Metric", palette="pastel", ax=ax)
    ax.set_xlabel("")
    ax.set_ylabel("Score")
    ax.set_ylim(0, 1)
    ax.legend(title="Metric", loc="upper center", bbox_to_anchor=(0.5, -0.25), ncol=2, frameon=False)
    for tick in ax.get_xticklabels():
        tick.set_rotation(30)
        tick.set_ha("right")
    plt.tight_layout()
    ensure_dir(pathlib.Path(out_png).parent)
    fig.savefig(out_png, bbox_inches="tight")
    plt.close(fig)
