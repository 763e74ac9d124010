"""Heatmaps and PCA diagnostics rendered with matplotlib."""
from __future__ import annotations

import logging
import pathlib
from collections.abc import Sequence

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

from .correlation import CorrelationResult  # noqa: E402
from .pca import PCAResult  # noqa: E402

LOGGER = logging.getLogger(__name__)

CORRELATION_CMAP = "RdBu_r"


def _save(fig, path: str | pathlib.Path, dpi: int) -> pathlib.Path:
    output_path = pathlib.Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
    LOGGER.info("Saved plot %s", output_path)
    return output_path


def _heatmap(ax, values: np.ndarray, rows: Sequence[str], columns: Sequence[str]):
    image = ax.imshow(
        np.ma.masked_invalid(values),
        cmap=CORRELATION_CMAP,
        vmin=-1.0,
        vmax=1.0,
        aspect="auto",
        interpolation="nearest",
    )
    ax.set_xticks(range(len(columns)))
    ax.set_xticklabels(columns, rotation=90, fontsize=7)
    ax.set_yticks(range(len(rows)))
    ax.set_yticklabels(rows, fontsize=7)
    return image


def plot_gene_correlation_heatmap(
    result: CorrelationResult,
    path: str | pathlib.Path,
    *,
    order: Sequence[str] | None = None,
    dpi: int = 150,
) -> pathlib.Path:
    """Gene x gene bicor heatmap in clustered order."""

    ordered = result.reorder(rows=order, columns=order) if order is not None else result
    size = max(4.0, 0.25 * len(ordered.row_labels) + 2.0)
    fig, ax = plt.subplots(figsize=(size + 1.0, size))
    image = _heatmap(ax, ordered.coefficients, ordered.row_labels, ordered.column_labels)
    ax.set_title("Candidate gene biweight midcorrelation")
    cbar = fig.colorbar(image, ax=ax, fraction=0.046, pad=0.04)
    cbar.set_label("bicor")
    return _save(fig, path, dpi)


def plot_trait_correlation_heatmap(
    result: CorrelationResult,
    path: str | pathlib.Path,
    *,
    trait_order: Sequence[str] | None = None,
    dpi: int = 150,
) -> pathlib.Path:
    """Component x trait heatmap annotated with coefficient and p-value."""

    ordered = result.reorder(columns=trait_order) if trait_order is not None else result
    n_rows, n_cols = ordered.coefficients.shape
    fig, ax = plt.subplots(figsize=(max(5.0, 0.9 * n_cols + 2.0), max(3.0, 0.6 * n_rows + 1.5)))
    image = _heatmap(ax, ordered.coefficients, ordered.row_labels, ordered.column_labels)

    for i in range(n_rows):
        for j in range(n_cols):
            coefficient = ordered.coefficients[i, j]
            if not np.isfinite(coefficient):
                continue
            p_value = ordered.p_values[i, j]
            label = f"{coefficient:.2f}"
            if np.isfinite(p_value):
                label += f"\n({p_value:.1e})"
            ax.text(j, i, label, ha="center", va="center", fontsize=6)

    ax.set_title("Principal component - trait relationships")
    cbar = fig.colorbar(image, ax=ax, fraction=0.046, pad=0.04)
    cbar.set_label("bicor")
    return _save(fig, path, dpi)


def plot_scree(pca_result: PCAResult, path: str | pathlib.Path, *, dpi: int = 150) -> pathlib.Path:
    """Explained variance per component with the cumulative curve."""

    ratios = pca_result.explained_variance_ratio * 100.0
    positions = np.arange(1, len(ratios) + 1)
    fig, ax = plt.subplots(figsize=(max(4.0, 0.4 * len(ratios) + 2.0), 3.5))
    ax.bar(positions, ratios, color="#457B9D")
    ax.plot(positions, np.cumsum(ratios), color="#E63946", marker="o", markersize=3)
    ax.set_xticks(positions)
    ax.set_xticklabels(pca_result.component_labels, rotation=90, fontsize=7)
    ax.set_ylabel("Explained variance (%)")
    ax.set_title("PCA scree plot")
    return _save(fig, path, dpi)


def plot_contributions(
    pca_result: PCAResult,
    path: str | pathlib.Path,
    *,
    component: int = 1,
    top: int = 20,
    dpi: int = 150,
) -> pathlib.Path:
    """Bar chart of the genes contributing most to one component."""

    if not 1 <= component <= pca_result.n_components:
        raise ValueError(
            f"Component {component} outside 1..{pca_result.n_components}"
        )
    contributions = pca_result.contributions[:, component - 1]
    order = np.argsort(contributions)[::-1][:top]
    genes = [pca_result.genes[index] for index in order]

    fig, ax = plt.subplots(figsize=(max(4.0, 0.3 * len(genes) + 2.0), 3.5))
    ax.bar(range(len(genes)), contributions[order], color="#457B9D")
    # expected contribution if all genes contributed equally
    ax.axhline(100.0 / len(pca_result.genes), color="#E63946", linestyle="--", linewidth=1)
    ax.set_xticks(range(len(genes)))
    ax.set_xticklabels(genes, rotation=90, fontsize=7)
    ax.set_ylabel("Contribution (%)")
    ax.set_title(f"Gene contributions to PC{component}")
    return _save(fig, path, dpi)


__all__ = [
    "plot_contributions",
    "plot_gene_correlation_heatmap",
    "plot_scree",
    "plot_trait_correlation_heatmap",
]
