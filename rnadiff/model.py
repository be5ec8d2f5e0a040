"""
Statistical model module — wraps **PyDESeq2**.

Everything statistical (median-of-ratios size factors, negative-binomial
dispersion estimation with trend fitting and MAP shrinkage, Wald tests,
Benjamini–Hochberg adjustment, Cooks outlier handling, variance-stabilising
transformation) happens inside PyDESeq2. This module only prepares the
inputs and pulls tidy pandas objects back out.

Output:
  • Results DataFrame with columns
    [baseMean, log2FoldChange, lfcSE, stat, pvalue, padj]
  • VST / normalised count matrices (genes × samples)
  • Size factors and per-gene dispersion estimates
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import pandas as pd
from pydeseq2.dds import DeseqDataSet
from pydeseq2.default_inference import DefaultInference
from pydeseq2.ds import DeseqStats

from rnadiff.config import RNADiffConfig
from rnadiff.utils import get_logger


# ---------------------------------------------------------------------------
# Factor handling
# ---------------------------------------------------------------------------


def relevel(design: pd.DataFrame, column: str, reference: str) -> pd.DataFrame:
    """
    Return a copy of *design* whose *column* is a categorical with
    *reference* as its first level.

    The first level is the baseline of the treatment-coded design matrix,
    so log2 fold changes read as ``other / reference``.
    """
    if column not in design.columns:
        raise ValueError(f"Column '{column}' not found in design: {list(design.columns)}")

    values = design[column].astype(str)
    levels = sorted(values.unique())
    if reference not in levels:
        raise ValueError(
            f"Reference level '{reference}' is not a level of '{column}'. "
            f"Available levels: {levels}"
        )

    out = design.copy()
    ordered = [reference] + [lv for lv in levels if lv != reference]
    out[column] = pd.Categorical(values, categories=ordered)
    return out


def resolve_contrast(design: pd.DataFrame, cfg: RNADiffConfig) -> list[str]:
    """
    Work out ``[column, test_level, reference_level]`` for the Wald test.

    Reference defaults to the first level in sorted order. The test level
    may be omitted only when the factor has exactly two levels.
    """
    col = cfg.condition_col
    levels = sorted(design[col].astype(str).unique())
    if len(levels) < 2:
        raise ValueError(
            f"'{col}' has a single level ({levels}); two conditions are needed for a comparison."
        )

    reference = cfg.reference_level if cfg.reference_level is not None else levels[0]
    if reference not in levels:
        raise ValueError(f"Reference level '{reference}' not in {col} levels {levels}")

    if cfg.test_level is not None:
        test = cfg.test_level
        if test not in levels:
            raise ValueError(f"Test level '{test}' not in {col} levels {levels}")
        if test == reference:
            raise ValueError(f"Test and reference level are both '{test}'.")
    else:
        others = [lv for lv in levels if lv != reference]
        if len(others) != 1:
            raise ValueError(
                f"'{col}' has {len(levels)} levels {levels}; "
                "choose the level to compare against the reference with --test-level."
            )
        test = others[0]

    return [col, test, reference]


# ---------------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------------


@dataclass
class ModelResult:
    """Container for everything extracted from a fitted dataset."""

    dds: DeseqDataSet
    contrast: list[str]
    results: pd.DataFrame
    design: pd.DataFrame
    normalized: Optional[pd.DataFrame] = None
    vst: Optional[pd.DataFrame] = None
    size_factors: Optional[pd.Series] = None
    dispersions: Optional[pd.DataFrame] = None
    formula: str = ""
    lfc_shrunk: bool = False

    @property
    def contrast_label(self) -> str:
        col, test, ref = self.contrast
        return f"{col}: {test} vs {ref}"

    def summary(self) -> str:
        return (
            f"Contrast: {self.contrast_label}\n"
            f"Samples: {self.dds.n_obs}  Genes: {self.dds.n_vars:,}\n"
            f"Design: {self.formula}\n"
            f"LFC shrinkage: {'yes' if self.lfc_shrunk else 'no'}"
        )


# ---------------------------------------------------------------------------
# PyDESeq2 wrappers
# ---------------------------------------------------------------------------


def build_dataset(
    counts: pd.DataFrame,
    design: pd.DataFrame,
    cfg: Optional[RNADiffConfig] = None,
) -> DeseqDataSet:
    """
    Create a DeseqDataSet from a genes × samples count matrix.

    PyDESeq2 expects samples as rows, so the matrix is transposed here.
    """
    log = get_logger()
    if cfg is None:
        cfg = RNADiffConfig()

    missing = [c for c in [*cfg.covariates, cfg.condition_col] if c not in design.columns]
    if missing:
        raise ValueError(f"Design columns referenced by the formula are missing: {missing}")

    if list(counts.columns) != list(design.index):
        raise ValueError("Count columns and design rows are not aligned; call align_samples first.")

    log.info(
        f"Building dataset: {counts.shape[1]} samples × {counts.shape[0]:,} genes, "
        f"design {cfg.design_formula}"
    )
    inference = DefaultInference(n_cpus=cfg.threads)
    dds = DeseqDataSet(
        counts=counts.T,
        metadata=design,
        design=cfg.design_formula,
        refit_cooks=cfg.refit_cooks,
        inference=inference,
        quiet=True,
    )
    return dds


def fit_dataset(dds: DeseqDataSet) -> DeseqDataSet:
    """Estimate size factors, dispersions and log fold changes in place."""
    log = get_logger()
    log.info("Fitting negative-binomial model (size factors → dispersions → LFC)")
    dds.deseq2()
    return dds


def _shrink_coeff(dds: DeseqDataSet, contrast: list[str]) -> str:
    """Name of the LFC column holding the test-vs-reference coefficient."""
    col, test, ref = contrast
    candidates = [f"{col}[T.{test}]", f"{col}_{test}_vs_{ref}"]
    lfc_cols = list(dds.varm["LFC"].columns)
    for name in candidates:
        if name in lfc_cols:
            return name
    raise ValueError(f"No coefficient for {test} vs {ref} among {lfc_cols}")


def compute_results(
    dds: DeseqDataSet,
    contrast: list[str],
    cfg: Optional[RNADiffConfig] = None,
) -> tuple[pd.DataFrame, bool]:
    """
    Run the Wald test for *contrast* and return ``(results_df, shrunk)``.

    The results index is the gene id. When ``cfg.shrink_lfc`` is set the
    log2 fold changes are replaced by their apeGLM-shrunk estimates;
    p-values are unaffected.
    """
    log = get_logger()
    if cfg is None:
        cfg = RNADiffConfig()

    col, test, ref = contrast
    log.info(f"Wald test: {col} {test} vs {ref} (alpha={cfg.alpha})")
    stats = DeseqStats(
        dds,
        contrast=contrast,
        alpha=cfg.alpha,
        cooks_filter=cfg.cooks_filter,
        independent_filter=cfg.independent_filter,
        inference=DefaultInference(n_cpus=cfg.threads),
        quiet=True,
    )
    stats.summary()

    shrunk = False
    if cfg.shrink_lfc:
        coeff = _shrink_coeff(dds, contrast)
        log.info(f"Shrinking log2 fold changes for coefficient {coeff}")
        stats.lfc_shrink(coeff=coeff)
        shrunk = True

    results = stats.results_df.copy()
    results.index = results.index.astype(str)
    results.index.name = "gene"
    return results, shrunk


def variance_stabilize(dds: DeseqDataSet) -> pd.DataFrame:
    """Blind variance-stabilising transformation, genes × samples."""
    log = get_logger()
    log.info("Computing variance-stabilising transformation")
    dds.vst(use_design=False)
    return pd.DataFrame(
        dds.layers["vst_counts"],
        index=dds.obs_names,
        columns=dds.var_names,
    ).T


def normalized_counts(dds: DeseqDataSet) -> pd.DataFrame:
    """Size-factor normalised counts, genes × samples."""
    return pd.DataFrame(
        dds.layers["normed_counts"],
        index=dds.obs_names,
        columns=dds.var_names,
    ).T


def size_factors(dds: DeseqDataSet) -> pd.Series:
    return pd.Series(dds.obs["size_factors"].to_numpy(), index=dds.obs_names, name="size_factor")


def dispersion_table(dds: DeseqDataSet) -> pd.DataFrame:
    """Per-gene mean of normalised counts and the three dispersion estimates."""
    normed = dds.layers["normed_counts"]
    df = pd.DataFrame(
        {
            "baseMean": normed.mean(axis=0),
            "genewise": dds.var["genewise_dispersions"].to_numpy(),
            "fitted": dds.var["fitted_dispersions"].to_numpy(),
            "final": dds.var["dispersions"].to_numpy(),
        },
        index=dds.var_names,
    )
    df.index.name = "gene"
    return df


# ---------------------------------------------------------------------------
# One-shot convenience
# ---------------------------------------------------------------------------


def run_deseq(
    counts: pd.DataFrame,
    design: pd.DataFrame,
    cfg: Optional[RNADiffConfig] = None,
    *,
    transform: bool = True,
) -> ModelResult:
    """
    Relevel, build, fit, test and (optionally) transform in one call.

    Parameters
    ----------
    counts : pd.DataFrame
        Filtered genes × samples counts aligned to *design*.
    design : pd.DataFrame
        Sample design indexed by sample id.
    cfg : RNADiffConfig, optional
        Analysis configuration.
    transform : bool
        Also compute the VST matrix (needed for PCA and heatmap).

    Returns
    -------
    ModelResult
    """
    log = get_logger()
    if cfg is None:
        cfg = RNADiffConfig()

    contrast = resolve_contrast(design, cfg)
    design = relevel(design, cfg.condition_col, contrast[2])

    dds = build_dataset(counts, design, cfg)
    fit_dataset(dds)
    results, shrunk = compute_results(dds, contrast, cfg)

    result = ModelResult(
        dds=dds,
        contrast=contrast,
        results=results,
        design=design,
        normalized=normalized_counts(dds),
        size_factors=size_factors(dds),
        dispersions=dispersion_table(dds),
        formula=cfg.design_formula,
        lfc_shrunk=shrunk,
    )
    if transform:
        result.vst = variance_stabilize(dds)

    log.info(f"Model fitted — {len(results):,} genes tested ({result.contrast_label})")
    return result
