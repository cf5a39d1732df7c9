"""
Drug-Class Model Package

Descriptor extraction, train/validation splitting, random forest and SVM
training, and ROC/AUC evaluation for positive-vs-other drug-class datasets.
"""

import warnings

warnings.filterwarnings("ignore", category=FutureWarning, module="sklearn")
warnings.filterwarnings("ignore", category=RuntimeWarning, module="numpy.*")

from .classification import run_classification
from .data_splitting import train_validation_split
from .descriptor_backbone import DESCRIPTOR_FAMILIES, compute_descriptors, descriptor_names
from .metrics_plots import auc_score, confusion_counts, evaluate_predictions, smooth_roc

__all__ = [
    'run_classification',
    'train_validation_split',
    'DESCRIPTOR_FAMILIES',
    'compute_descriptors',
    'descriptor_names',
    'auc_score',
    'confusion_counts',
    'evaluate_predictions',
    'smooth_roc',
]

__version__ = "1.0.0"
