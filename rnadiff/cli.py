"""
Command-line interface for RNADiff.

Usage examples
--------------
# Run the full analysis
rnadiff run \\
    --counts counts.tsv \\
    --design design.tsv \\
    --condition-col condition \\
    --reference-level control \\
    --output-dir ./results

# Run individual steps
rnadiff filter    --counts counts.tsv --min-count 10 --output-dir ./results/01_filtering
rnadiff select    --results deseq2_results_all.tsv --alpha 0.01 --lfc-threshold 2 -o ./sel
rnadiff visualize --results deseq2_results_all.tsv --output-dir ./plots

# Check library availability
rnadiff check
"""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from rnadiff import __version__
from rnadiff.config import RNADiffConfig, find_packages
from rnadiff.utils import get_logger

console = Console(stderr=True)

BANNER = r"""
  ____  _   _    _    ____  _  __  __
 |  _ \| \ | |  / \  |  _ \(_)/ _|/ _|
 | |_) |  \| | / _ \ | | | | | |_| |_
 |  _ <| |\  |/ ___ \| |_| | |  _|  _|
 |_| \_\_| \_/_/   \_\____/|_|_| |_|
  Differential Expression for Bulk RNA-seq
"""


# ======================================================================
# Top-level group
# ======================================================================


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.version_option(__version__, prog_name="RNADiff")
def main():
    """RNADiff: Differential Expression Analysis for Bulk RNA-seq."""
    pass


# ======================================================================
# rnadiff check — verify libraries
# ======================================================================


@main.command()
def check():
    """Check that all required Python libraries are installed."""
    console.print(BANNER, style="bold magenta")
    packages = find_packages()
    tbl = Table(title="Library Availability", show_lines=True)
    tbl.add_column("Package", style="bold")
    tbl.add_column("Status")
    tbl.add_column("Version")

    all_ok = True
    for name, version in packages.items():
        if version:
            tbl.add_row(name, "[green]✔ Found[/green]", version)
        else:
            tbl.add_row(name, "[red]✘ Missing[/red]", "—")
            all_ok = False

    console.print(tbl)
    if all_ok:
        console.print("[bold green]All libraries available![/bold green]")
    else:
        console.print("[yellow]Some libraries are missing. Run: pip install rnadiff[/yellow]")


# ======================================================================
# rnadiff filter — low-count filtering
# ======================================================================


@main.command("filter")
@click.option(
    "--counts", "-c", required=True, type=click.Path(exists=True), help="Raw count matrix (TSV)."
)
@click.option("--output-dir", "-o", required=True, type=click.Path(), help="Output directory.")
@click.option("--min-count", default=10, help="Minimum read count (default: 10).")
@click.option(
    "--min-samples",
    default=None,
    type=int,
    help="Samples that must reach --min-count (default: filter on row total).",
)
def filter_cmd(counts, output_dir, min_count, min_samples):
    """Remove low-count genes from a count matrix."""
    from rnadiff.filtering import filter_low_counts
    from rnadiff.io import read_counts, write_table

    cfg = RNADiffConfig(output_dir=output_dir, min_count=min_count, min_samples=min_samples)
    get_logger(cfg.log_file)

    df = read_counts(Path(counts))
    filtered, report = filter_low_counts(df, cfg)
    out = write_table(filtered, cfg.output_dir / "filtered_counts.tsv")
    console.print(Panel(report.summary(), title="Low-count Filter", border_style="blue"))
    console.print(f"[green]Filtered counts: {out}[/green]")


# ======================================================================
# rnadiff select — subset an existing results table
# ======================================================================


@main.command("select")
@click.option(
    "--results",
    "-r",
    required=True,
    type=click.Path(exists=True),
    help="Full results table (deseq2_results_all.tsv).",
)
@click.option("--output-dir", "-o", required=True, type=click.Path(), help="Output directory.")
@click.option("--alpha", default=0.05, help="Adjusted p-value cutoff (default: 0.05).")
@click.option("--lfc-threshold", default=1.0, help="Minimum |log2FoldChange| (default: 1.0).")
def select_cmd(results, output_dir, alpha, lfc_threshold):
    """Select differentially expressed genes from a results table."""
    from rnadiff.io import read_results, write_table
    from rnadiff.results import select_significant, summarize_results

    cfg = RNADiffConfig(output_dir=output_dir, alpha=alpha, lfc_threshold=lfc_threshold)
    get_logger(cfg.log_file)

    df = read_results(Path(results))
    sig = select_significant(df, cfg.alpha, cfg.lfc_threshold)
    out = write_table(sig, cfg.output_dir / "deseq2_results_significant.tsv")
    summary = summarize_results(df, cfg.alpha, cfg.lfc_threshold)
    console.print(Panel(summary.summary(), title="Differential Expression", border_style="green"))
    console.print(f"[green]Selected genes: {out}[/green]")


# ======================================================================
# rnadiff visualize — plots from a results table
# ======================================================================


@main.command("visualize")
@click.option(
    "--results",
    "-r",
    required=True,
    type=click.Path(exists=True),
    help="Full results table (deseq2_results_all.tsv).",
)
@click.option(
    "--output-dir", "-o", required=True, type=click.Path(), help="Output directory for plots."
)
@click.option("--alpha", default=0.05, help="Adjusted p-value cutoff for colouring.")
@click.option("--lfc-threshold", default=1.0, help="|log2FoldChange| cutoff for colouring.")
@click.option("--label-top-n", default=10, help="Number of top genes labelled on the volcano.")
def visualize_cmd(results, output_dir, alpha, lfc_threshold, label_top_n):
    """Generate p-value histogram, volcano and MA plots from a results table."""
    from rnadiff.io import read_results
    from rnadiff.visualize import generate_result_plots

    cfg = RNADiffConfig(
        output_dir=output_dir,
        alpha=alpha,
        lfc_threshold=lfc_threshold,
        label_top_n=label_top_n,
    )
    get_logger(cfg.log_file)

    df = read_results(Path(results))
    plots = generate_result_plots(df, cfg.output_dir, cfg=cfg)
    console.print(f"[green]Generated {len(plots)} plots in {output_dir}[/green]")


# ======================================================================
# rnadiff run — full pipeline
# ======================================================================


@main.command("run")
@click.option(
    "--counts", "-c", required=True, type=click.Path(exists=True), help="Raw count matrix (TSV)."
)
@click.option(
    "--design", "-d", required=True, type=click.Path(exists=True), help="Sample design (TSV)."
)
@click.option(
    "--output-dir", "-o", default="rnadiff_output", type=click.Path(), help="Output directory."
)
@click.option("--condition-col", default="condition", help="Design column to compare.")
@click.option("--reference-level", default=None, help="Baseline level (default: first sorted).")
@click.option("--test-level", default=None, help="Level compared against the reference.")
@click.option(
    "--covariate",
    "covariates",
    multiple=True,
    help="Extra design column adjusted for (repeatable), e.g. --covariate batch.",
)
@click.option("--min-count", default=10, help="Minimum read count for filtering (default: 10).")
@click.option("--min-samples", default=None, type=int, help="Samples that must reach --min-count.")
@click.option("--alpha", default=0.05, help="Adjusted p-value cutoff (default: 0.05).")
@click.option("--lfc-threshold", default=1.0, help="Minimum |log2FoldChange| (default: 1.0).")
@click.option("--shrink-lfc", is_flag=True, help="Report apeGLM-shrunk log2 fold changes.")
@click.option("--no-refit-cooks", is_flag=True, help="Do not refit Cooks outliers.")
@click.option("--threads", "-t", default=None, type=int, help="Number of threads (default: auto).")
@click.option("--top-n-heatmap", default=50, help="Genes shown in the heatmap.")
@click.option("--skip-visualize", is_flag=True, help="Skip visualisation step.")
def run_cmd(
    counts,
    design,
    output_dir,
    condition_col,
    reference_level,
    test_level,
    covariates,
    min_count,
    min_samples,
    alpha,
    lfc_threshold,
    shrink_lfc,
    no_refit_cooks,
    threads,
    top_n_heatmap,
    skip_visualize,
):
    """Run the complete RNADiff analysis."""
    console.print(BANNER, style="bold magenta")

    cfg = RNADiffConfig(
        output_dir=Path(output_dir),
        condition_col=condition_col,
        reference_level=reference_level,
        test_level=test_level,
        covariates=list(covariates),
        min_count=min_count,
        min_samples=min_samples,
        alpha=alpha,
        lfc_threshold=lfc_threshold,
        shrink_lfc=shrink_lfc,
        refit_cooks=not no_refit_cooks,
        top_n_heatmap=top_n_heatmap,
    )
    if threads:
        cfg.threads = threads

    get_logger(cfg.log_file)

    from rnadiff.pipeline import run_pipeline

    result = run_pipeline(
        Path(counts),
        Path(design),
        cfg=cfg,
        skip_visualize=skip_visualize,
    )

    tbl = Table(title="Analysis Results", show_lines=True)
    tbl.add_column("Output", style="bold cyan")
    tbl.add_column("Path", style="green")
    for label, p in [
        ("Filtered counts", result.filtered_counts_path),
        ("All results", result.results_path),
        ("DE genes", result.significant_path),
    ]:
        if p:
            tbl.add_row(label, str(p))
    if result.plots:
        tbl.add_row("Plots", f"{len(result.plots)} files in {output_dir}/04_visualisation/")
    console.print(tbl)
    if result.de_summary is not None:
        console.print(
            Panel(result.de_summary.summary(), title="Differential Expression", border_style="green")
        )


if __name__ == "__main__":
    main()
