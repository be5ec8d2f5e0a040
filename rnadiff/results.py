"""
Result ordering, selection and export.

Turns the raw PyDESeq2 results table into the two deliverables of an
analysis:

  • ``deseq2_results_all.tsv``         — every tested gene, best first
  • ``deseq2_results_significant.tsv`` — padj < alpha and |log2FC| ≥ threshold
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from rnadiff.io import write_table
from rnadiff.utils import get_logger

RESULT_COLUMNS = ["baseMean", "log2FoldChange", "lfcSE", "stat", "pvalue", "padj"]


def order_results(results: pd.DataFrame) -> pd.DataFrame:
    """Sort by padj then pvalue (ascending), genes with NaN padj last."""
    sort_cols = [c for c in ("padj", "pvalue") if c in results.columns]
    ordered = results.sort_values(sort_cols, ascending=True, na_position="last", kind="mergesort")
    cols = [c for c in RESULT_COLUMNS if c in ordered.columns]
    cols += [c for c in ordered.columns if c not in cols]
    return ordered[cols]


def significance_mask(
    results: pd.DataFrame,
    alpha: float = 0.05,
    lfc_threshold: float = 0.0,
) -> pd.Series:
    """Boolean mask of genes called differentially expressed."""
    padj = results["padj"]
    lfc = results["log2FoldChange"]
    return padj.notna() & (padj < alpha) & (lfc.abs() >= lfc_threshold)


def select_significant(
    results: pd.DataFrame,
    alpha: float = 0.05,
    lfc_threshold: float = 0.0,
) -> pd.DataFrame:
    """Return the ordered subset of differentially expressed genes."""
    if not 0 < alpha <= 1:
        raise ValueError(f"alpha must be in (0, 1], got {alpha}")
    if lfc_threshold < 0:
        raise ValueError(f"lfc_threshold must be non-negative, got {lfc_threshold}")
    mask = significance_mask(results, alpha, lfc_threshold)
    return order_results(results.loc[mask])


@dataclass
class DESummary:
    """Counts of tested and differentially expressed genes."""

    tested: int = 0
    significant: int = 0
    up: int = 0
    down: int = 0
    padj_na: int = 0
    alpha: float = 0.05
    lfc_threshold: float = 0.0

    def summary(self) -> str:
        pct = 100.0 * self.significant / self.tested if self.tested else 0.0
        return (
            f"Genes tested: {self.tested:,}\n"
            f"DE genes (padj < {self.alpha}, |log2FC| ≥ {self.lfc_threshold}): "
            f"{self.significant:,} ({pct:.1f}%)\n"
            f"  Up:   {self.up:,}\n"
            f"  Down: {self.down:,}\n"
            f"padj = NA (filtered / outliers): {self.padj_na:,}"
        )


def summarize_results(
    results: pd.DataFrame,
    alpha: float = 0.05,
    lfc_threshold: float = 0.0,
) -> DESummary:
    mask = significance_mask(results, alpha, lfc_threshold)
    lfc = results.loc[mask, "log2FoldChange"]
    return DESummary(
        tested=len(results),
        significant=int(mask.sum()),
        up=int((lfc > 0).sum()),
        down=int((lfc < 0).sum()),
        padj_na=int(results["padj"].isna().sum()),
        alpha=alpha,
        lfc_threshold=lfc_threshold,
    )


def write_results(
    results: pd.DataFrame,
    significant: pd.DataFrame,
    output_dir: Path,
) -> tuple[Path, Path]:
    """
    Write the full and the significant results tables.

    Returns (all_path, significant_path).
    """
    log = get_logger()
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    all_path = write_table(order_results(results), output_dir / "deseq2_results_all.tsv")
    sig_path = write_table(significant, output_dir / "deseq2_results_significant.tsv")
    log.info(f"Wrote {len(results):,} tested genes and {len(significant):,} DE genes")
    return all_path, sig_path
