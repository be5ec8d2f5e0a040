"""
RNADiff: differential gene expression analysis for bulk RNA-seq counts.

Pipeline: counts + design → filter low counts → PyDESeq2 (size factors,
dispersions, Wald test) → order / select results → Visualize
"""

__version__ = "0.1.0"
__author__ = "RNADiff Team"
