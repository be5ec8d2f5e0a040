"""
Low-count gene filtering.

Genes with too few reads carry no information for the negative-binomial
model and only inflate the multiple-testing burden. Two rules are
supported:

  • Row total (default) — keep genes whose summed count across all
    samples is at least ``min_count``.
  • Per-sample — keep genes with at least ``min_samples`` samples whose
    count is at least ``min_count`` (set ``min_samples`` to the size of
    the smallest group for the usual edgeR-style rule).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import pandas as pd

from rnadiff.config import RNADiffConfig
from rnadiff.utils import get_logger


@dataclass
class FilterReport:
    """Summary of a low-count filtering pass."""

    genes_before: int = 0
    genes_after: int = 0
    min_count: int = 0
    min_samples: Optional[int] = None

    @property
    def genes_removed(self) -> int:
        return self.genes_before - self.genes_after

    @property
    def genes_retained_pct(self) -> float:
        if self.genes_before == 0:
            return 0.0
        return 100.0 * self.genes_after / self.genes_before

    @property
    def rule(self) -> str:
        if self.min_samples is None:
            return f"row total ≥ {self.min_count}"
        return f"≥ {self.min_count} reads in ≥ {self.min_samples} samples"

    def summary(self) -> str:
        return (
            f"Genes: {self.genes_before:,} → {self.genes_after:,} "
            f"({self.genes_retained_pct:.1f}% retained)\n"
            f"Removed: {self.genes_removed:,}\n"
            f"Rule: {self.rule}"
        )


def filter_low_counts(
    counts: pd.DataFrame,
    cfg: Optional[RNADiffConfig] = None,
) -> tuple[pd.DataFrame, FilterReport]:
    """
    Drop low-count genes from a genes × samples count matrix.

    Returns
    -------
    (filtered_counts, FilterReport)
    """
    log = get_logger()
    if cfg is None:
        cfg = RNADiffConfig()

    if cfg.min_samples is None:
        keep = counts.sum(axis=1) >= cfg.min_count
    else:
        if cfg.min_samples > counts.shape[1]:
            raise ValueError(
                f"min_samples={cfg.min_samples} exceeds the number of samples "
                f"({counts.shape[1]})."
            )
        keep = (counts >= cfg.min_count).sum(axis=1) >= cfg.min_samples

    filtered = counts.loc[keep]
    report = FilterReport(
        genes_before=counts.shape[0],
        genes_after=filtered.shape[0],
        min_count=cfg.min_count,
        min_samples=cfg.min_samples,
    )

    if filtered.empty:
        raise ValueError(
            f"No genes pass the low-count filter ({report.rule}). "
            "Lower --min-count or check that the matrix holds raw counts."
        )

    log.info(f"Low-count filter — {report.genes_retained_pct:.1f}% genes retained")
    log.info(report.summary())
    return filtered, report
