"""
Configuration management for RNADiff.

Centralises default parameters, library discovery, resource limits,
and analysis-wide settings so that every module shares a single source
of truth.
"""

from __future__ import annotations

import multiprocessing
import platform
from dataclasses import dataclass, field
from importlib import metadata
from pathlib import Path
from typing import Optional

import psutil


# ---------------------------------------------------------------------------
# Library discovery
# ---------------------------------------------------------------------------

RUNTIME_PACKAGES = [
    "pydeseq2",
    "pandas",
    "numpy",
    "scikit-learn",
    "matplotlib",
    "seaborn",
    "click",
    "rich",
    "psutil",
]


def _package_version(name: str) -> Optional[str]:
    """Return the installed version of distribution *name*, else None."""
    try:
        return metadata.version(name)
    except metadata.PackageNotFoundError:
        return None


def find_packages() -> dict[str, Optional[str]]:
    """Report the installed version of every library RNADiff relies on."""
    return {name: _package_version(name) for name in RUNTIME_PACKAGES}


# ---------------------------------------------------------------------------
# System resource helpers
# ---------------------------------------------------------------------------


def total_memory_gb() -> float:
    """Return total physical memory in GiB."""
    return psutil.virtual_memory().total / (1024**3)


def default_threads() -> int:
    """Sensible default thread count (leave 1–2 cores free)."""
    n = multiprocessing.cpu_count()
    return max(1, n - 2)


# ---------------------------------------------------------------------------
# Analysis configuration dataclass
# ---------------------------------------------------------------------------


@dataclass
class RNADiffConfig:
    """Master configuration object passed through the pipeline."""

    # --- I/O ---
    output_dir: Path = field(default_factory=lambda: Path("rnadiff_output"))
    log_file: Optional[Path] = None  # defaults to output_dir / "rnadiff.log"

    # --- Computing resources ---
    threads: int = field(default_factory=default_threads)

    # --- Design ---
    condition_col: str = "condition"
    reference_level: Optional[str] = None  # first sorted level if unset
    test_level: Optional[str] = None  # the other level of a two-level factor
    covariates: list[str] = field(default_factory=list)

    # --- Low-count filtering ---
    min_count: int = 10
    min_samples: Optional[int] = None  # None = filter on row total

    # --- Model (PyDESeq2) ---
    refit_cooks: bool = True
    cooks_filter: bool = True
    independent_filter: bool = True
    shrink_lfc: bool = False

    # --- Results ---
    alpha: float = 0.05
    lfc_threshold: float = 1.0

    # --- Visualisation ---
    top_n_heatmap: int = 50
    pca_top_genes: int = 500
    label_top_n: int = 10
    dpi: int = 300

    def __post_init__(self) -> None:
        self.output_dir = Path(self.output_dir)
        if self.log_file is None:
            self.log_file = self.output_dir / "rnadiff.log"
        else:
            self.log_file = Path(self.log_file)
        self.covariates = list(self.covariates)

    def ensure_dirs(self) -> None:
        """Create the output directory if it does not exist."""
        self.output_dir.mkdir(parents=True, exist_ok=True)

    @property
    def design_formula(self) -> str:
        terms = [*self.covariates, self.condition_col]
        return "~" + " + ".join(terms)

    @property
    def system_summary(self) -> str:
        mem = total_memory_gb()
        cpu = multiprocessing.cpu_count()
        return (
            f"OS={platform.system()} {platform.release()}  "
            f"CPUs={cpu}  RAM={mem:.1f} GiB  "
            f"Threads={self.threads}"
        )
