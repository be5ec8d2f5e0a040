"""
Full analysis orchestrator.

Chains every module together:
  Load → Filter → Model (PyDESeq2) → Results → Visualise

Provides progress reporting through Rich and optional skipping of the
plotting step for quick reruns.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import pandas as pd
from rich.console import Console
from rich.panel import Panel

from rnadiff.config import RNADiffConfig
from rnadiff.filtering import FilterReport, filter_low_counts
from rnadiff.io import align_samples, read_counts, read_design, write_table
from rnadiff.model import ModelResult, run_deseq
from rnadiff.results import (
    DESummary,
    select_significant,
    summarize_results,
    write_results,
)
from rnadiff.utils import file_size_human, fmt_elapsed, get_logger
from rnadiff.visualize import generate_all_plots, plot_summary_dashboard

console = Console(stderr=True)


@dataclass
class PipelineResult:
    """Container for all pipeline outputs."""

    filter_report: Optional[FilterReport] = None
    filtered_counts_path: Optional[Path] = None
    model: Optional[ModelResult] = None
    de_summary: Optional[DESummary] = None
    results_path: Optional[Path] = None
    significant_path: Optional[Path] = None
    significant: Optional[pd.DataFrame] = None
    model_tables: dict[str, Path] = field(default_factory=dict)
    plots: list[Path] = field(default_factory=list)
    elapsed_seconds: float = 0.0


# ---------------------------------------------------------------------------
# Result table writer
# ---------------------------------------------------------------------------


def _write_result_tables(result: PipelineResult, cfg: RNADiffConfig) -> None:
    """Write a run summary and an output manifest as CSV tables."""
    log = get_logger()
    tables_dir = cfg.output_dir / "05_tables"
    tables_dir.mkdir(parents=True, exist_ok=True)

    # --- 1. Pipeline summary ---
    rows = []
    if result.filter_report is not None:
        fr = result.filter_report
        rows.extend(
            [
                ("Filtering", "genes_before", fr.genes_before),
                ("Filtering", "genes_after", fr.genes_after),
                ("Filtering", "retained_pct", round(fr.genes_retained_pct, 2)),
                ("Filtering", "rule", fr.rule),
            ]
        )

    if result.model is not None:
        m = result.model
        col, test, ref = m.contrast
        rows.extend(
            [
                ("Model", "design", m.formula),
                ("Model", "contrast", f"{col}_{test}_vs_{ref}"),
                ("Model", "samples", m.dds.n_obs),
                ("Model", "lfc_shrunk", m.lfc_shrunk),
            ]
        )

    if result.de_summary is not None:
        s = result.de_summary
        rows.extend(
            [
                ("Results", "genes_tested", s.tested),
                ("Results", "padj_na", s.padj_na),
                ("Results", "significant", s.significant),
                ("Results", "up", s.up),
                ("Results", "down", s.down),
                ("Results", "alpha", s.alpha),
                ("Results", "lfc_threshold", s.lfc_threshold),
            ]
        )

    rows.append(("Pipeline", "elapsed_seconds", round(result.elapsed_seconds, 2)))

    summary_df = pd.DataFrame(rows, columns=["Step", "Metric", "Value"])
    summary_path = tables_dir / "pipeline_summary.csv"
    summary_df.to_csv(summary_path, index=False)
    log.info(f"Saved summary table → {summary_path}")

    # --- 2. Output file manifest ---
    manifest_rows = []
    for d in sorted(cfg.output_dir.rglob("*")):
        if d.is_file() and d != cfg.log_file:
            rel = d.relative_to(cfg.output_dir)
            manifest_rows.append((str(rel), d.stat().st_size, file_size_human(d)))
    manifest_df = pd.DataFrame(manifest_rows, columns=["File", "Bytes", "Size"])
    manifest_path = tables_dir / "output_manifest.csv"
    manifest_df.to_csv(manifest_path, index=False)
    log.info(f"Saved output manifest → {manifest_path}")


def _write_model_tables(model: ModelResult, model_dir: Path) -> dict[str, Path]:
    tables: dict[str, Path] = {}
    tables["normalized_counts"] = write_table(model.normalized, model_dir / "normalized_counts.tsv")
    if model.vst is not None:
        tables["vst_counts"] = write_table(model.vst, model_dir / "vst_counts.tsv")
    tables["size_factors"] = write_table(
        model.size_factors.to_frame(), model_dir / "size_factors.tsv", index_label="sample"
    )
    tables["dispersions"] = write_table(model.dispersions, model_dir / "dispersions.tsv")
    return tables


def run_pipeline(
    counts_path: Path,
    design_path: Path,
    *,
    cfg: Optional[RNADiffConfig] = None,
    skip_visualize: bool = False,
) -> PipelineResult:
    """
    Execute the complete RNADiff analysis.

    Parameters
    ----------
    counts_path : Path
        Tab-separated raw count matrix (genes × samples).
    design_path : Path
        Tab-separated sample design with a condition column.
    cfg : RNADiffConfig
        Analysis configuration.
    skip_visualize : bool
        Skip the plotting step.

    Returns
    -------
    PipelineResult with paths to every output.
    """
    log = get_logger()
    if cfg is None:
        cfg = RNADiffConfig()

    cfg.ensure_dirs()
    log.info(f"System: {cfg.system_summary}")
    result = PipelineResult()
    t0 = time.perf_counter()

    console.print(
        Panel.fit(
            "[bold magenta]RNADiff[/bold magenta]: Differential Expression Analysis\n"
            f"Counts: {Path(counts_path).name}  Design: {Path(design_path).name}\n"
            f"Output: {cfg.output_dir}",
            border_style="blue",
        )
    )

    # ================================================================
    # Step 1: Load inputs + low-count filtering
    # ================================================================
    log.info("[bold]Step 1/4: Load inputs and filter low-count genes[/bold]")
    counts = read_counts(Path(counts_path))
    design = read_design(Path(design_path), cfg.condition_col)
    counts, design = align_samples(counts, design)

    filtered, report = filter_low_counts(counts, cfg)
    result.filter_report = report
    result.filtered_counts_path = write_table(
        filtered, cfg.output_dir / "01_filtering" / "filtered_counts.tsv"
    )

    # ================================================================
    # Step 2: Model fit
    # ================================================================
    log.info("[bold]Step 2/4: Fit negative-binomial model (PyDESeq2)[/bold]")
    model = run_deseq(filtered, design, cfg)
    result.model = model
    result.model_tables = _write_model_tables(model, cfg.output_dir / "02_model")

    # ================================================================
    # Step 3: Order, select, write results
    # ================================================================
    log.info("[bold]Step 3/4: Order and select differentially expressed genes[/bold]")
    significant = select_significant(model.results, cfg.alpha, cfg.lfc_threshold)
    result.significant = significant
    result.de_summary = summarize_results(model.results, cfg.alpha, cfg.lfc_threshold)
    result.results_path, result.significant_path = write_results(
        model.results, significant, cfg.output_dir / "03_results"
    )
    log.info(f"Results summary:\n{result.de_summary.summary()}")

    # ================================================================
    # Step 4: Visualisation
    # ================================================================
    if not skip_visualize:
        log.info("[bold]Step 4/4: Generating Visualisations[/bold]")
        vis_dir = cfg.output_dir / "04_visualisation"
        result.plots = generate_all_plots(model, vis_dir, cfg=cfg)
        result.plots.extend(
            plot_summary_dashboard(
                filter_summary=report.summary(),
                model_summary=model.summary(),
                de_summary=result.de_summary.summary(),
                output_path=vis_dir / "plots" / "analysis_dashboard.png",
                cfg=cfg,
            )
        )
    else:
        log.info("Skipping visualisation")

    result.elapsed_seconds = time.perf_counter() - t0
    _write_result_tables(result, cfg)

    console.print(
        Panel.fit(
            f"[bold green]Analysis completed in {fmt_elapsed(result.elapsed_seconds)}[/bold green]\n"
            f"Output directory: {cfg.output_dir}",
            border_style="green",
        )
    )
    return result
