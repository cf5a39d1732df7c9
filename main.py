from pathlib import Path
import logging
import sys
import warnings

import pandas as pd
import yaml

# Suppress sklearn / numeric warnings
warnings.filterwarnings('ignore', category=FutureWarning, module='sklearn')
warnings.filterwarnings('ignore', category=RuntimeWarning)

from data_preparation import build_class_tables, create_binary_datasets, load_all_classes
from class_model.classification import run_classification
from class_model.metrics_plots import plot_metrics_summary
from similarity_analysis.descriptor_plots import run_descriptor_plots
from similarity_analysis.similarity_clustering import run_similarity_analysis


def load_config(path: str):
    with open(path, "r") as fh:
        return yaml.safe_load(fh) or {}


def setup_logger():
    """Configure and return the main pipeline logger."""
    logger = logging.getLogger("drug_class_pipeline")
    if not logger.hasHandlers():
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s | %(levelname)s | %(message)s",
            datefmt="%H:%M:%S"
        )
    return logger


def _leaf_name(rec, name_col):
    if name_col and name_col in rec.metadata and pd.notna(rec.metadata[name_col]):
        return str(rec.metadata[name_col])
    return f"{rec.class_name[:4]}_{rec.ID}"


def main(config_path: str = "config.yml"):
    log = setup_logger()
    config = load_config(config_path)

    paths = config.get("Paths", {})
    results_root = Path(paths.get("results_root", "results"))
    results_root.mkdir(parents=True, exist_ok=True)
    negative = config.get("Classes", {}).get("negative", "other")

    # ─────────────────────────────────────────────────────────────
    # 1) Load structures + metadata per class
    # ─────────────────────────────────────────────────────────────
    print("Loading structure files and metadata...")
    try:
        records = load_all_classes(config, log)
    except FileNotFoundError as e:
        log.error(f"Input file missing: {e}")
        raise

    # ─────────────────────────────────────────────────────────────
    # 2) Descriptors and binary datasets
    # ─────────────────────────────────────────────────────────────
    print("Computing descriptors...")
    class_tables = build_class_tables(records, config, log)
    print("Assembling binary datasets...")
    datasets = create_binary_datasets(class_tables, config, log)

    # ─────────────────────────────────────────────────────────────
    # 3) Diagnostics: similarity clustering, descriptor plots
    # ─────────────────────────────────────────────────────────────
    sim_cfg = config.get("Similarity", {})
    if sim_cfg.get("enable", True):
        print("Running fingerprint similarity clustering...")
        name_col = config.get("Loader", {}).get("name_column")
        all_recs = [r for recs in records.values() for r in recs]
        try:
            run_similarity_analysis(
                [r.mol for r in all_recs],
                [r.class_name for r in all_recs],
                [_leaf_name(r, name_col) for r in all_recs],
                results_dir=str(results_root / "similarity"),
                config=config,
                log=log,
            )
        except Exception as e:
            log.warning(f"Similarity analysis failed: {e}")
    else:
        print("Similarity analysis disabled in config.")

    if config.get("Plots", {}).get("enable", True):
        try:
            run_descriptor_plots(class_tables, str(results_root / "descriptor_plots"), config, log)
        except Exception as e:
            log.warning(f"Descriptor plots failed: {e}")

    # ─────────────────────────────────────────────────────────────
    # 4) Classification per positive class
    # ─────────────────────────────────────────────────────────────
    out_dir = results_root / "classification"
    rows = []
    for positive, df in datasets.items():
        print(f"\n{'=' * 60}")
        print(f"Classification: {positive} vs {negative}")
        print(f"{'=' * 60}")
        rows.extend(run_classification(df, positive, config, out_dir, log, negative=negative))

    summary_csv = out_dir / "metrics_summary.csv"
    pd.DataFrame(rows).to_csv(summary_csv, index=False, float_format="%.4f")
    log.info(f"Metrics summary saved: {summary_csv}")
    if config.get("Plots", {}).get("enable", True):
        try:
            plot_metrics_summary(summary_csv, out_dir / "auc_summary.png")
        except Exception as e:
            log.warning(f"AUC summary plot failed: {e}")

    print("\nPipeline complete.")


def cli():
    main(sys.argv[1] if len(sys.argv) > 1 else "config.yml")


if __name__ == "__main__":
    cli()
