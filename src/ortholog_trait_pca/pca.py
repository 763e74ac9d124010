"""Principal component analysis over the sample x gene expression matrix."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np
import polars as pl
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler

from .expression_processing import SAMPLE_ID

LOGGER = logging.getLogger(__name__)


class PCAError(RuntimeError):
    """Raised when the expression matrix cannot support a PCA."""


@dataclass(frozen=True, slots=True)
class PCAResult:
    """Scores, loadings and variance of a fitted PCA.

    ``loadings`` are variable coordinates (eigenvector scaled by the square
    root of the component variance) and ``contributions`` the percentage each
    gene contributes to a component; each contribution column sums to 100.
    """

    scores: np.ndarray
    loadings: np.ndarray
    contributions: np.ndarray
    explained_variance: np.ndarray
    explained_variance_ratio: np.ndarray
    samples: tuple
    genes: tuple[str, ...]
    excluded: tuple[str, ...] = ()

    @property
    def n_components(self) -> int:
        return self.scores.shape[1]

    @property
    def component_labels(self) -> tuple[str, ...]:
        return tuple(f"PC{index + 1}" for index in range(self.n_components))

    def score_frame(self, n_components: int | None = None) -> pl.DataFrame:
        """Scores of the leading components without the sample column."""

        count = self.n_components if n_components is None else n_components
        labels = self.component_labels[:count]
        return pl.DataFrame(
            {label: self.scores[:, index].tolist() for index, label in enumerate(labels)}
        )

    def _gene_frame(self, values: np.ndarray) -> pl.DataFrame:
        data: dict[str, list] = {"gene_symbol": list(self.genes)}
        for index, label in enumerate(self.component_labels):
            data[label] = values[:, index].tolist()
        return pl.DataFrame(data)

    def loading_frame(self) -> pl.DataFrame:
        return self._gene_frame(self.loadings)

    def contribution_frame(self) -> pl.DataFrame:
        return self._gene_frame(self.contributions)

    def variance_frame(self) -> pl.DataFrame:
        return pl.DataFrame(
            {
                "component": list(self.component_labels),
                "explained_variance": self.explained_variance.tolist(),
                "explained_variance_ratio": self.explained_variance_ratio.tolist(),
                "cumulative_ratio": np.cumsum(self.explained_variance_ratio).tolist(),
            }
        )


def _select_genes(
    expression: pl.DataFrame, exclude: Iterable[str]
) -> tuple[list[str], tuple[str, ...]]:
    excluded = tuple(dict.fromkeys(gene for gene in exclude if gene))
    unknown = [gene for gene in excluded if gene not in expression.columns]
    if unknown:
        LOGGER.warning("Excluded genes not present in expression matrix: %s", ", ".join(unknown))
    genes = [
        column
        for column in expression.columns
        if column != SAMPLE_ID and column not in excluded
    ]
    return genes, tuple(gene for gene in excluded if gene not in unknown)


def _impute_column_means(matrix: np.ndarray, genes: list[str]) -> tuple[np.ndarray, list[str]]:
    observed = np.isfinite(matrix)
    empty = ~observed.any(axis=0)
    if empty.any():
        LOGGER.warning(
            "Dropping genes with no observed expression: %s",
            ", ".join(gene for gene, flag in zip(genes, empty) if flag),
        )
        matrix = matrix[:, ~empty]
        observed = observed[:, ~empty]
        genes = [gene for gene, flag in zip(genes, empty) if not flag]

    missing = ~observed
    if missing.any():
        LOGGER.info("Mean-imputing %s missing expression value(s) before PCA", int(missing.sum()))
        means = np.nanmean(matrix, axis=0)
        matrix = matrix.copy()
        rows, cols = np.nonzero(missing)
        matrix[rows, cols] = means[cols]
    return matrix, genes


def run_pca(
    expression: pl.DataFrame,
    *,
    samples: Sequence | None = None,
    n_components: int | None = None,
    scale: bool = True,
    exclude: Iterable[str] = (),
) -> PCAResult:
    """Fit a mean-centred (optionally unit-variance) PCA on ``expression``.

    ``exclude`` names gene columns removed before fitting. ``n_components``
    defaults to, and is capped at, ``min(n_samples, n_genes)``.
    """

    genes, excluded = _select_genes(expression, exclude)
    if excluded:
        LOGGER.info("Excluding %s gene(s) from PCA: %s", len(excluded), ", ".join(excluded))

    if not genes:
        raise PCAError("No genes remain for PCA after exclusions")
    matrix = expression.select([pl.col(gene).cast(pl.Float64) for gene in genes]).to_numpy()
    matrix, genes = _impute_column_means(matrix, genes)
    if not genes:
        raise PCAError("No genes with observed expression remain for PCA")
    if matrix.shape[0] < 2:
        raise PCAError(f"PCA requires at least 2 samples, got {matrix.shape[0]}")

    max_components = min(matrix.shape)
    if n_components is None:
        n_components = max_components
    elif n_components > max_components:
        LOGGER.warning(
            "Requested %s components but only %s are available", n_components, max_components
        )
        n_components = max_components

    scaled = StandardScaler(with_std=scale).fit_transform(matrix)
    model = PCA(n_components=n_components, svd_solver="full")
    scores = model.fit_transform(scaled)

    components = model.components_.T
    loadings = components * np.sqrt(model.explained_variance_)
    contributions = components**2 * 100.0

    LOGGER.info(
        "PCA on %s samples x %s genes; leading components explain %s",
        matrix.shape[0],
        len(genes),
        ", ".join(f"{ratio:.1%}" for ratio in model.explained_variance_ratio_[:5]),
    )

    sample_labels = tuple(samples) if samples is not None else tuple(range(matrix.shape[0]))
    if len(sample_labels) != matrix.shape[0]:
        raise PCAError(
            f"Got {len(sample_labels)} sample labels for {matrix.shape[0]} expression rows"
        )

    return PCAResult(
        scores=scores,
        loadings=loadings,
        contributions=contributions,
        explained_variance=model.explained_variance_,
        explained_variance_ratio=model.explained_variance_ratio_,
        samples=sample_labels,
        genes=tuple(genes),
        excluded=excluded,
    )


__all__ = ["PCAError", "PCAResult", "run_pca"]
