"""
Test data generator for RNADiff.

Creates a small synthetic bulk RNA-seq experiment:
  • Negative-binomial counts for two conditions (control / treated)
  • A block of genes up-regulated and a block down-regulated in treated
  • A block of near-silent genes that the low-count filter should remove

No downloads or external tools are needed.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd

SEED = 42


def _nb_counts(rng: np.random.Generator, mean: np.ndarray, dispersion: float) -> np.ndarray:
    """Draw negative-binomial counts with the given means and dispersion."""
    n = 1.0 / dispersion
    p = n / (n + mean)
    return rng.negative_binomial(n, p)


def generate_test_counts(
    output_dir: Path,
    *,
    n_genes: int = 300,
    n_up: int = 20,
    n_down: int = 20,
    n_silent: int = 30,
    samples_per_group: int = 3,
    fold_change: float = 4.0,
    dispersion: float = 0.05,
    seed: int = SEED,
) -> dict:
    """
    Generate ``counts.tsv`` and ``design.tsv`` in *output_dir*.

    Returns
    -------
    dict with keys: 'counts', 'design' (paths), 'up', 'down', 'silent'
    (lists of gene ids).
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    rng = np.random.default_rng(seed)

    genes = [f"GENE{i:04d}" for i in range(1, n_genes + 1)]
    up = genes[:n_up]
    down = genes[n_up : n_up + n_down]
    silent = genes[n_genes - n_silent :]

    samples = [f"ctrl_{i}" for i in range(1, samples_per_group + 1)]
    samples += [f"trt_{i}" for i in range(1, samples_per_group + 1)]
    conditions = ["control"] * samples_per_group + ["treated"] * samples_per_group

    base = rng.uniform(100, 1000, size=n_genes)
    base[n_genes - n_silent :] = 0.2
    library = rng.uniform(0.8, 1.2, size=len(samples))

    counts = np.zeros((n_genes, len(samples)), dtype=np.int64)
    for j, cond in enumerate(conditions):
        mean = base * library[j]
        if cond == "treated":
            mean = mean.copy()
            mean[:n_up] *= fold_change
            mean[n_up : n_up + n_down] /= fold_change
        counts[:, j] = _nb_counts(rng, mean, dispersion)

    counts_df = pd.DataFrame(counts, index=pd.Index(genes, name="gene_id"), columns=samples)
    design_df = pd.DataFrame(
        {
            "condition": conditions,
            "batch": [f"b{(i % 2) + 1}" for i in range(len(samples))],
        },
        index=pd.Index(samples, name="sample"),
    )

    counts_path = output_dir / "counts.tsv"
    design_path = output_dir / "design.tsv"
    counts_df.to_csv(counts_path, sep="\t")
    design_df.to_csv(design_path, sep="\t")

    return {
        "counts": counts_path,
        "design": design_path,
        "up": up,
        "down": down,
        "silent": silent,
    }


# ---------------------------------------------------------------------------
# CLI entry point for generating example data
# ---------------------------------------------------------------------------


if __name__ == "__main__":
    import sys

    out = Path(sys.argv[1]) if len(sys.argv) > 1 else Path(__file__).parent.parent / "testdata"
    paths = generate_test_counts(out)
    print("Generated test data:")
    for k in ("counts", "design"):
        print(f"  {k}: {paths[k]}  ({paths[k].stat().st_size} bytes)")
