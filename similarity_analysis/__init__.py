"""
Diagnostic analyses of the drug-class molecule sets: fingerprint similarity
with hierarchical clustering, and descriptor distribution plots.
"""

from .similarity_clustering import (
    cluster_similarity,
    compute_fingerprints,
    run_similarity_analysis,
    similarity_matrix,
)
from .descriptor_plots import run_descriptor_plots

__all__ = [
    'cluster_similarity',
    'compute_fingerprints',
    'run_similarity_analysis',
    'similarity_matrix',
    'run_descriptor_plots',
]
