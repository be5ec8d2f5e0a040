"""
Visualisation module for RNADiff.

Generates static plots from a fitted analysis:
  • Dispersion estimates vs mean of normalised counts
  • Histogram of raw p-values
  • Volcano plot
  • MA plot
  • PCA of variance-stabilised samples
  • Clustered heatmap of the top genes
  • Analysis summary dashboard

Every plot is saved as **both PNG (raster) and PDF (vector)**.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import matplotlib

matplotlib.use("Agg")  # non-interactive backend

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from sklearn.decomposition import PCA

from rnadiff.config import RNADiffConfig
from rnadiff.model import ModelResult
from rnadiff.results import order_results, significance_mask
from rnadiff.utils import get_logger


# ---------------------------------------------------------------------------
# Global style
# ---------------------------------------------------------------------------

_STYLE_APPLIED = False


def _apply_style() -> None:
    """Apply publication-quality matplotlib defaults once."""
    global _STYLE_APPLIED
    if _STYLE_APPLIED:
        return
    plt.rcParams.update(
        {
            "font.family": "sans-serif",
            "font.sans-serif": ["Arial", "Helvetica", "DejaVu Sans"],
            "font.size": 12,
            "axes.titlesize": 16,
            "axes.titleweight": "bold",
            "axes.labelsize": 13,
            "xtick.labelsize": 11,
            "ytick.labelsize": 11,
            "legend.fontsize": 11,
            "figure.dpi": 150,
            "savefig.dpi": 300,
            "savefig.bbox": "tight",
            "savefig.facecolor": "white",
            "axes.spines.top": False,
            "axes.spines.right": False,
            "axes.grid": False,
        }
    )
    _STYLE_APPLIED = True


UP_COLOR = "#c5221f"
DOWN_COLOR = "#1a73e8"
NS_COLOR = "#b0b0b0"


def _save(fig: plt.Figure, path: Path, dpi: int = 300) -> list[Path]:
    """Save figure as both PNG and PDF. Returns list of saved paths."""
    _apply_style()
    path.parent.mkdir(parents=True, exist_ok=True)
    log = get_logger()
    saved: list[Path] = []

    png_path = path.with_suffix(".png")
    fig.savefig(png_path, dpi=dpi, bbox_inches="tight", facecolor="white")
    saved.append(png_path)
    log.info(f"Saved plot → {png_path}")

    pdf_path = path.with_suffix(".pdf")
    fig.savefig(pdf_path, format="pdf", bbox_inches="tight", facecolor="white")
    saved.append(pdf_path)
    log.info(f"Saved plot → {pdf_path}")

    plt.close(fig)
    return saved


def _direction_colors(results: pd.DataFrame, alpha: float, lfc_threshold: float) -> np.ndarray:
    sig = significance_mask(results, alpha, lfc_threshold)
    lfc = results["log2FoldChange"]
    return np.where(sig & (lfc > 0), UP_COLOR, np.where(sig & (lfc < 0), DOWN_COLOR, NS_COLOR))


# ---------------------------------------------------------------------------
# 1. Dispersion plot
# ---------------------------------------------------------------------------


def plot_dispersion(
    dispersions: pd.DataFrame,
    output_path: Path,
    *,
    title: str = "Dispersion Estimates",
    cfg: Optional[RNADiffConfig] = None,
) -> list[Path]:
    """
    Gene-wise, fitted and final dispersions against the mean of normalised
    counts, both axes log-scaled.
    """
    _apply_style()
    if cfg is None:
        cfg = RNADiffConfig()

    data = dispersions[dispersions["baseMean"] > 0].dropna(subset=["genewise", "final"])
    order = np.argsort(data["baseMean"].to_numpy())

    fig, ax = plt.subplots(figsize=(8, 6))
    ax.scatter(
        data["baseMean"], data["genewise"], s=4, color="black", alpha=0.5, label="gene-est"
    )
    ax.scatter(data["baseMean"], data["final"], s=4, color="#1a73e8", alpha=0.6, label="final")
    ax.plot(
        data["baseMean"].to_numpy()[order],
        data["fitted"].to_numpy()[order],
        color="#c5221f",
        linewidth=2,
        label="fitted",
    )
    ax.set_xscale("log")
    ax.set_yscale("log")
    ax.set_xlabel("Mean of normalised counts")
    ax.set_ylabel("Dispersion")
    ax.set_title(title, pad=12)
    ax.legend(loc="lower left", frameon=False, markerscale=3)
    fig.tight_layout()

    return _save(fig, output_path, dpi=cfg.dpi)


# ---------------------------------------------------------------------------
# 2. P-value histogram
# ---------------------------------------------------------------------------


def plot_pvalue_histogram(
    results: pd.DataFrame,
    output_path: Path,
    *,
    bins: int = 50,
    title: str = "Distribution of Raw P-values",
    cfg: Optional[RNADiffConfig] = None,
) -> list[Path]:
    """Histogram of raw p-values; a well-behaved test is flat with a spike near 0."""
    _apply_style()
    if cfg is None:
        cfg = RNADiffConfig()

    pvals = results["pvalue"].dropna()

    fig, ax = plt.subplots(figsize=(8, 5))
    ax.hist(pvals, bins=bins, range=(0, 1), color="#5f6368", edgecolor="white", linewidth=0.5)
    ax.set_xlabel("P-value")
    ax.set_ylabel("Number of genes")
    ax.set_xlim(0, 1)
    ax.set_title(title, pad=12)
    ax.text(
        0.98,
        0.95,
        f"n = {len(pvals):,}",
        transform=ax.transAxes,
        ha="right",
        va="top",
        fontsize=11,
        color="#333333",
    )
    fig.tight_layout()

    return _save(fig, output_path, dpi=cfg.dpi)


# ---------------------------------------------------------------------------
# 3. Volcano plot
# ---------------------------------------------------------------------------


def plot_volcano(
    results: pd.DataFrame,
    output_path: Path,
    *,
    alpha: float = 0.05,
    lfc_threshold: float = 1.0,
    label_top_n: int = 10,
    title: str = "Volcano Plot",
    cfg: Optional[RNADiffConfig] = None,
) -> list[Path]:
    """log2 fold change against −log10 adjusted p-value, top genes labelled."""
    _apply_style()
    if cfg is None:
        cfg = RNADiffConfig()

    data = results.dropna(subset=["padj", "log2FoldChange"]).copy()
    # padj can underflow to 0
    floor = data.loc[data["padj"] > 0, "padj"].min() if (data["padj"] > 0).any() else 1e-300
    data["neg_log10_padj"] = -np.log10(data["padj"].clip(lower=floor))
    colors = _direction_colors(data, alpha, lfc_threshold)

    fig, ax = plt.subplots(figsize=(9, 7))
    ax.scatter(
        data["log2FoldChange"],
        data["neg_log10_padj"],
        c=colors,
        s=8,
        alpha=0.7,
        linewidths=0,
    )
    ax.axhline(-np.log10(alpha), color="#333333", linestyle="--", linewidth=0.8)
    if lfc_threshold > 0:
        for x in (-lfc_threshold, lfc_threshold):
            ax.axvline(x, color="#333333", linestyle="--", linewidth=0.8)

    sig = data[significance_mask(data, alpha, lfc_threshold)]
    for gene, row in order_results(sig).head(label_top_n).iterrows():
        ax.annotate(
            str(gene),
            (row["log2FoldChange"], row["neg_log10_padj"]),
            xytext=(3, 3),
            textcoords="offset points",
            fontsize=9,
            color="#333333",
        )

    n_up = int((colors == UP_COLOR).sum())
    n_down = int((colors == DOWN_COLOR).sum())
    handles = [
        plt.Line2D([], [], marker="o", linestyle="", color=UP_COLOR, label=f"Up ({n_up:,})"),
        plt.Line2D([], [], marker="o", linestyle="", color=DOWN_COLOR, label=f"Down ({n_down:,})"),
        plt.Line2D([], [], marker="o", linestyle="", color=NS_COLOR, label="Not significant"),
    ]
    ax.legend(handles=handles, loc="upper left", frameon=False)
    ax.set_xlabel("log₂ fold change")
    ax.set_ylabel("−log₁₀ adjusted p-value")
    ax.set_title(title, pad=12)
    fig.tight_layout()

    return _save(fig, output_path, dpi=cfg.dpi)


# ---------------------------------------------------------------------------
# 4. MA plot
# ---------------------------------------------------------------------------


def plot_ma(
    results: pd.DataFrame,
    output_path: Path,
    *,
    alpha: float = 0.05,
    lfc_threshold: float = 1.0,
    title: str = "MA Plot",
    cfg: Optional[RNADiffConfig] = None,
) -> list[Path]:
    """log2 fold change against mean of normalised counts."""
    _apply_style()
    if cfg is None:
        cfg = RNADiffConfig()

    data = results[(results["baseMean"] > 0)].dropna(subset=["log2FoldChange"])
    colors = _direction_colors(data, alpha, lfc_threshold)

    fig, ax = plt.subplots(figsize=(9, 6))
    ax.scatter(data["baseMean"], data["log2FoldChange"], c=colors, s=6, alpha=0.7, linewidths=0)
    ax.axhline(0, color="#333333", linewidth=0.8)
    ax.set_xscale("log")
    ax.set_xlabel("Mean of normalised counts")
    ax.set_ylabel("log₂ fold change")
    ax.set_title(title, pad=12)
    fig.tight_layout()

    return _save(fig, output_path, dpi=cfg.dpi)


# ---------------------------------------------------------------------------
# 5. PCA
# ---------------------------------------------------------------------------


def compute_pca(
    vst: pd.DataFrame,
    design: pd.DataFrame,
    condition_col: str = "condition",
    *,
    top_n: int = 500,
) -> tuple[pd.DataFrame, np.ndarray]:
    """
    PCA of samples on the *top_n* most variable genes of a VST matrix.

    Returns
    -------
    (coords, explained_ratio)
        ``coords`` is indexed by sample with columns PC1, PC2 and the
        condition; ``explained_ratio`` holds the variance fraction per PC.
    """
    if vst.shape[1] < 2:
        raise ValueError("PCA needs at least two samples.")

    variances = vst.var(axis=1)
    top = variances.sort_values(ascending=False).index[: min(top_n, len(variances))]
    data = vst.loc[top].T  # samples × genes

    n_comp = min(2, data.shape[0], data.shape[1])
    pca = PCA(n_components=n_comp)
    pcs = pca.fit_transform(data.to_numpy())
    if n_comp < 2:
        pcs = np.column_stack([pcs, np.zeros(len(pcs))])

    coords = pd.DataFrame(pcs[:, :2], index=data.index, columns=["PC1", "PC2"])
    coords[condition_col] = design.loc[coords.index, condition_col].astype(str).to_numpy()
    explained = np.zeros(2)
    explained[:n_comp] = pca.explained_variance_ratio_[:n_comp]
    return coords, explained


def plot_pca(
    vst: pd.DataFrame,
    design: pd.DataFrame,
    output_path: Path,
    *,
    condition_col: str = "condition",
    top_n: int = 500,
    title: str = "PCA of Samples (VST)",
    cfg: Optional[RNADiffConfig] = None,
) -> list[Path]:
    """Samples on the first two principal components, coloured by condition."""
    _apply_style()
    if cfg is None:
        cfg = RNADiffConfig()

    coords, explained = compute_pca(vst, design, condition_col, top_n=top_n)

    fig, ax = plt.subplots(figsize=(8, 6))
    sns.scatterplot(
        data=coords,
        x="PC1",
        y="PC2",
        hue=condition_col,
        palette="Set1",
        s=90,
        edgecolor="white",
        ax=ax,
    )
    for sample, row in coords.iterrows():
        ax.annotate(
            str(sample), (row["PC1"], row["PC2"]), xytext=(4, 4), textcoords="offset points",
            fontsize=9, color="#333333",
        )
    ax.set_xlabel(f"PC1 ({explained[0] * 100:.1f}% variance)")
    ax.set_ylabel(f"PC2 ({explained[1] * 100:.1f}% variance)")
    ax.set_title(title, pad=12)
    ax.legend(title=condition_col, bbox_to_anchor=(1.02, 1), loc="upper left", frameon=False)
    fig.tight_layout()

    return _save(fig, output_path, dpi=cfg.dpi)


# ---------------------------------------------------------------------------
# 6. Heatmap
# ---------------------------------------------------------------------------


def top_genes_zscores(
    vst: pd.DataFrame,
    results: pd.DataFrame,
    *,
    top_n: int = 50,
) -> pd.DataFrame:
    """Row z-scores of the VST values for the *top_n* genes ranked by padj."""
    ranked = order_results(results.dropna(subset=["padj"]))
    genes = [g for g in ranked.index if g in vst.index][:top_n]
    data = vst.loc[genes]
    sd = data.std(axis=1)
    data = data.loc[sd > 0]
    return data.sub(data.mean(axis=1), axis=0).div(data.std(axis=1), axis=0)


def plot_heatmap(
    vst: pd.DataFrame,
    results: pd.DataFrame,
    design: pd.DataFrame,
    output_path: Path,
    *,
    condition_col: str = "condition",
    top_n: int = 50,
    title: str = "Top Differentially Expressed Genes",
    cfg: Optional[RNADiffConfig] = None,
) -> list[Path]:
    """Clustered heatmap of z-scored VST values with a condition colour bar."""
    _apply_style()
    log = get_logger()
    if cfg is None:
        cfg = RNADiffConfig()

    z = top_genes_zscores(vst, results, top_n=top_n)
    if z.shape[0] < 2 or z.shape[1] < 2:
        log.warning("Not enough genes with an adjusted p-value to draw a heatmap — skipping.")
        return []

    conditions = design.loc[z.columns, condition_col].astype(str)
    levels = sorted(conditions.unique())
    lut = dict(zip(levels, sns.color_palette("Set1", len(levels))))
    col_colors = conditions.map(lut).rename(condition_col)

    n = z.shape[0]
    grid = sns.clustermap(
        z,
        cmap="RdBu_r",
        center=0,
        col_colors=col_colors,
        yticklabels=n <= 60,
        figsize=(max(6, z.shape[1] * 0.6 + 3), max(6, n * 0.22 + 2)),
        cbar_kws={"label": "row z-score"},
        linewidths=0,
    )
    grid.ax_heatmap.set_xlabel("")
    grid.ax_heatmap.set_ylabel("")
    grid.ax_heatmap.tick_params(axis="y", labelsize=9)
    grid.figure.suptitle(title, fontsize=16, fontweight="bold", y=1.02)

    handles = [plt.Rectangle((0, 0), 1, 1, color=lut[lv]) for lv in levels]
    grid.ax_col_dendrogram.legend(
        handles, levels, title=condition_col, loc="center", ncol=len(levels), frameon=False
    )

    return _save(grid.figure, output_path, dpi=cfg.dpi)


# ---------------------------------------------------------------------------
# 7. Summary Dashboard
# ---------------------------------------------------------------------------


def plot_summary_dashboard(
    filter_summary: str,
    model_summary: str,
    de_summary: str,
    output_path: Path,
    *,
    cfg: Optional[RNADiffConfig] = None,
) -> list[Path]:
    """Three text panels: filtering, model, and differential expression."""
    _apply_style()
    if cfg is None:
        cfg = RNADiffConfig()

    fig = plt.figure(figsize=(18, 5.5))
    fig.suptitle("RNADiff Analysis Summary", fontsize=18, fontweight="bold", y=1.0)
    gs = fig.add_gridspec(1, 3, wspace=0.15, left=0.02, right=0.98, top=0.85, bottom=0.05)

    def _draw_panel(gs_idx, title, color, bg, border, text, font_sz=12):
        ax = fig.add_subplot(gs[gs_idx])
        ax.axis("off")
        ax.text(
            0.5, 0.97, title, transform=ax.transAxes, fontsize=15, fontweight="bold",
            ha="center", va="top", color=color,
        )
        ax.text(
            0.5,
            0.48,
            text,
            transform=ax.transAxes,
            fontsize=font_sz,
            va="center",
            ha="center",
            fontfamily="monospace",
            linespacing=1.6,
            bbox=dict(boxstyle="round,pad=0.8", facecolor=bg, edgecolor=border, alpha=0.95),
        )
        return ax

    _draw_panel(0, "Low-count Filtering", "#1a73e8", "#e8f0fe", "#a8c7fa", filter_summary)
    _draw_panel(1, "Model", "#0d904f", "#e6f4ea", "#a8dab5", model_summary)
    _draw_panel(2, "Differential Expression", "#c5221f", "#fce8e6", "#f5b7b1", de_summary, 11)

    return _save(fig, output_path, dpi=cfg.dpi)


# ---------------------------------------------------------------------------
# Convenience: generate all default plots
# ---------------------------------------------------------------------------


def generate_result_plots(
    results: pd.DataFrame,
    output_dir: Path,
    *,
    cfg: Optional[RNADiffConfig] = None,
) -> list[Path]:
    """Plots that need only a results table: p-value histogram, volcano, MA."""
    _apply_style()
    if cfg is None:
        cfg = RNADiffConfig()

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    kw = dict(alpha=cfg.alpha, lfc_threshold=cfg.lfc_threshold, cfg=cfg)

    paths: list[Path] = []
    paths.extend(plot_pvalue_histogram(results, output_dir / "pvalue_histogram.png", cfg=cfg))
    paths.extend(
        plot_volcano(results, output_dir / "volcano.png", label_top_n=cfg.label_top_n, **kw)
    )
    if "baseMean" in results.columns:
        paths.extend(plot_ma(results, output_dir / "ma_plot.png", **kw))
    return paths


def generate_all_plots(
    model_result: ModelResult,
    output_dir: Path,
    *,
    cfg: Optional[RNADiffConfig] = None,
) -> list[Path]:
    """Generate the standard set of visualisation outputs (PNG + PDF each)."""
    _apply_style()
    if cfg is None:
        cfg = RNADiffConfig()

    output_dir = Path(output_dir) / "plots"
    output_dir.mkdir(parents=True, exist_ok=True)
    results = model_result.results
    design = model_result.design

    paths: list[Path] = []
    if model_result.dispersions is not None:
        paths.extend(plot_dispersion(model_result.dispersions, output_dir / "dispersion.png", cfg=cfg))
    paths.extend(generate_result_plots(results, output_dir, cfg=cfg))
    if model_result.vst is not None:
        paths.extend(
            plot_pca(
                model_result.vst,
                design,
                output_dir / "pca.png",
                condition_col=cfg.condition_col,
                top_n=cfg.pca_top_genes,
                cfg=cfg,
            )
        )
        paths.extend(
            plot_heatmap(
                model_result.vst,
                results,
                design,
                output_dir / "heatmap.png",
                condition_col=cfg.condition_col,
                top_n=cfg.top_n_heatmap,
                cfg=cfg,
            )
        )
    return paths
