"""
Input / output module.

Reads the two tab-separated inputs of an analysis and writes result
tables back out:

  • Count matrix  — genes × samples, first column is the gene id
  • Sample design — one row per sample, first column is the sample id

featureCounts tables are accepted as-is: their ``Chr``, ``Start``,
``End``, ``Strand`` and ``Length`` annotation columns are dropped.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd

from rnadiff.utils import ensure_parent, get_logger

ANNOTATION_COLUMNS = ["Chr", "Start", "End", "Strand", "Length"]


def _check_exists(path: Path, what: str) -> Path:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"{what} file not found: {path}")
    return path


def read_counts(counts_path: Path) -> pd.DataFrame:
    """
    Load a raw count matrix.

    Returns
    -------
    pd.DataFrame
        Integer counts, genes as rows (index ``gene``), samples as columns.
    """
    log = get_logger()
    counts_path = _check_exists(counts_path, "Count matrix")

    df = pd.read_csv(counts_path, sep="\t", index_col=0)
    df.index = df.index.astype(str)
    df.index.name = "gene"
    df.columns = df.columns.astype(str)

    annot = [c for c in ANNOTATION_COLUMNS if c in df.columns]
    if annot:
        log.debug(f"Dropping annotation columns: {annot}")
        df = df.drop(columns=annot)

    if df.empty:
        raise ValueError(f"Count matrix {counts_path} has no genes or no samples.")

    non_numeric = [c for c in df.columns if not pd.api.types.is_numeric_dtype(df[c])]
    if non_numeric:
        raise ValueError(
            f"Count matrix contains non-numeric sample columns: {non_numeric[:5]}.\n"
            "Expected the gene id in the first column and one column of counts per sample."
        )

    dups = df.index[df.index.duplicated()].unique()
    if len(dups):
        raise ValueError(
            f"Count matrix has {len(dups)} duplicated gene ids, e.g. {list(dups[:5])}"
        )

    if df.isna().any().any():
        n_missing = int(df.isna().sum().sum())
        raise ValueError(f"Count matrix has {n_missing} missing values.")

    values = df.to_numpy(dtype=float)
    if (values < 0).any():
        raise ValueError("Count matrix contains negative values.")
    if not np.all(np.mod(values, 1) == 0):
        raise ValueError(
            "Count matrix contains non-integer values. Differential expression "
            "requires raw read counts, not normalised values (TPM/FPKM)."
        )

    df = df.astype(np.int64)
    log.info(f"Loaded count matrix: {df.shape[0]:,} genes × {df.shape[1]} samples")
    return df


def read_design(design_path: Path, condition_col: str = "condition") -> pd.DataFrame:
    """
    Load the sample design table, indexed by sample id.

    The condition column is read as strings so that levels like ``1``/``2``
    are treated as categories.
    """
    log = get_logger()
    design_path = _check_exists(design_path, "Sample design")

    df = pd.read_csv(design_path, sep="\t", index_col=0)
    df.index = df.index.astype(str)
    df.index.name = "sample"

    if condition_col not in df.columns:
        raise ValueError(
            f"Condition column '{condition_col}' not found in {design_path.name}. "
            f"Available columns: {list(df.columns)}"
        )

    dups = df.index[df.index.duplicated()].unique()
    if len(dups):
        raise ValueError(f"Sample design has duplicated sample ids: {list(dups)}")

    if df[condition_col].isna().any():
        missing = list(df.index[df[condition_col].isna()])
        raise ValueError(f"Samples without a '{condition_col}' value: {missing}")

    df[condition_col] = df[condition_col].astype(str)
    levels = sorted(df[condition_col].unique())
    log.info(f"Loaded sample design: {len(df)} samples, {condition_col} levels = {levels}")
    return df


def align_samples(
    counts: pd.DataFrame,
    design: pd.DataFrame,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """
    Match count columns to design rows.

    Every sample in the design must have a count column. Count columns
    without a design row are dropped. The returned count matrix has its
    columns in design order.
    """
    log = get_logger()

    missing = [s for s in design.index if s not in counts.columns]
    if missing:
        raise ValueError(
            f"{len(missing)} sample(s) in the design have no column in the count matrix: "
            f"{missing[:5]}"
        )

    extra = [c for c in counts.columns if c not in design.index]
    if extra:
        log.warning(f"Dropping {len(extra)} count column(s) absent from the design: {extra[:5]}")

    aligned = counts.loc[:, list(design.index)]
    return aligned, design.copy()


def write_table(df: pd.DataFrame, path: Path, *, index_label: str = "gene") -> Path:
    """Write *df* as a TSV file and return its path."""
    ensure_parent(Path(path))
    df.to_csv(path, sep="\t", index_label=index_label, na_rep="NA")
    get_logger().info(f"Saved table → {path}")
    return Path(path)


def read_results(results_path: Path) -> pd.DataFrame:
    """Read a results TSV written by :func:`write_table`."""
    results_path = _check_exists(results_path, "Results")
    df = pd.read_csv(results_path, sep="\t", index_col=0, na_values=["NA"])
    df.index = df.index.astype(str)
    df.index.name = "gene"
    required = {"log2FoldChange", "pvalue", "padj"}
    absent = required - set(df.columns)
    if absent:
        raise ValueError(f"Results file {results_path.name} lacks columns: {sorted(absent)}")
    return df
