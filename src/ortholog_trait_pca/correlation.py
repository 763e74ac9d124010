"""Robust correlation statistics and clustering-based display ordering.

Correlations use the biweight midcorrelation: each column is centred on its
median and observations are down-weighted by their distance from the median
in units of ``9 * MAD``, so a handful of outlying samples cannot dominate the
coefficient. Missing values are handled pairwise; each column pair uses only
the samples observed in both columns.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import polars as pl
from scipy.cluster.hierarchy import leaves_list, linkage
from scipy.spatial.distance import squareform
from scipy.stats import t as student_t

LOGGER = logging.getLogger(__name__)

BIWEIGHT_CONSTANT = 9.0
MIN_SAMPLES_FOR_PVALUE = 3
COLLINEAR_TOLERANCE = 1e-12


@dataclass(frozen=True, slots=True)
class CorrelationResult:
    """Coefficient, p-value and observation-count matrices with labels."""

    coefficients: np.ndarray
    p_values: np.ndarray
    n_obs: np.ndarray
    row_labels: tuple[str, ...]
    column_labels: tuple[str, ...]

    @property
    def is_square(self) -> bool:
        return self.row_labels == self.column_labels

    def coefficient(self, row: str, column: str) -> float:
        return float(
            self.coefficients[self.row_labels.index(row), self.column_labels.index(column)]
        )

    def p_value(self, row: str, column: str) -> float:
        return float(
            self.p_values[self.row_labels.index(row), self.column_labels.index(column)]
        )

    def reorder(
        self,
        rows: Sequence[str] | None = None,
        columns: Sequence[str] | None = None,
    ) -> "CorrelationResult":
        rows = list(rows) if rows is not None else list(self.row_labels)
        columns = list(columns) if columns is not None else list(self.column_labels)
        row_index = [self.row_labels.index(label) for label in rows]
        column_index = [self.column_labels.index(label) for label in columns]
        grid = np.ix_(row_index, column_index)
        return CorrelationResult(
            coefficients=self.coefficients[grid],
            p_values=self.p_values[grid],
            n_obs=self.n_obs[grid],
            row_labels=tuple(rows),
            column_labels=tuple(columns),
        )

    def to_frame(self, statistic: str = "coefficients", label_column: str = "label") -> pl.DataFrame:
        """Return one statistic matrix as a polars frame with a label column."""

        values = getattr(self, statistic)
        data = {label_column: list(self.row_labels)}
        for index, column in enumerate(self.column_labels):
            data[column] = values[:, index].astype(float).tolist()
        return pl.DataFrame(data)


def _biweight_transform(values: np.ndarray) -> np.ndarray:
    """Return the unit-norm biweight-weighted deviations of a 1-D array.

    Columns with a zero MAD fall back to Pearson (mean-centred) weighting.
    Constant columns produce NaN.
    """

    median = np.median(values)
    centred = values - median
    mad = np.median(np.abs(centred))
    if mad > 0:
        u = centred / (BIWEIGHT_CONSTANT * mad)
        weights = (1.0 - u**2) ** 2 * (np.abs(u) < 1.0)
        transformed = centred * weights
    else:
        transformed = values - values.mean()

    norm = np.sqrt(np.sum(transformed**2))
    if not norm > 0:
        return np.full(values.shape, np.nan)
    return transformed / norm


def _as_matrix(values) -> tuple[np.ndarray, tuple[str, ...]]:
    if isinstance(values, pl.DataFrame):
        labels = tuple(values.columns)
        matrix = values.select(pl.all().cast(pl.Float64)).to_numpy()
    else:
        matrix = np.asarray(values, dtype=float)
        if matrix.ndim == 1:
            matrix = matrix.reshape(-1, 1)
        labels = tuple(f"V{index + 1}" for index in range(matrix.shape[1]))
    return matrix.astype(float, copy=False), labels


def _complete_bicor(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    tx = np.column_stack([_biweight_transform(x[:, i]) for i in range(x.shape[1])])
    ty = np.column_stack([_biweight_transform(y[:, j]) for j in range(y.shape[1])])
    return tx.T @ ty


def _pairwise_bicor(x: np.ndarray, y: np.ndarray, symmetric: bool) -> np.ndarray:
    coefficients = np.full((x.shape[1], y.shape[1]), np.nan)
    for i in range(x.shape[1]):
        start = i if symmetric else 0
        for j in range(start, y.shape[1]):
            mask = np.isfinite(x[:, i]) & np.isfinite(y[:, j])
            if mask.sum() < 2:
                continue
            value = float(
                np.dot(_biweight_transform(x[mask, i]), _biweight_transform(y[mask, j]))
            )
            coefficients[i, j] = value
            if symmetric:
                coefficients[j, i] = value
    return coefficients


def correlation_pvalues(coefficients, n_obs) -> np.ndarray:
    """Two-sided Student t p-values for correlation coefficients.

    ``t = sqrt(n - 2) * r / sqrt(1 - r**2)`` with ``n - 2`` degrees of
    freedom. Pairs with fewer than three observations get NaN.
    """

    r = np.asarray(coefficients, dtype=float)
    n = np.asarray(n_obs, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        df = n - 2.0
        statistic = np.sqrt(df) * r / np.sqrt(1.0 - r**2)
        p_values = 2.0 * student_t.sf(np.abs(statistic), np.where(df > 0, df, np.nan))
    p_values = np.where(n >= MIN_SAMPLES_FOR_PVALUE, p_values, np.nan)
    return np.clip(p_values, 0.0, 1.0)


def bicor(x, y=None) -> CorrelationResult:
    """Biweight midcorrelation of the columns of ``x`` against ``y``.

    With ``y`` omitted the columns of ``x`` are correlated with each other and
    the result is symmetric. Inputs may be polars frames (column names become
    labels) or 2-D arrays. Missing values (null/NaN) are excluded pairwise.
    """

    x_matrix, x_labels = _as_matrix(x)
    symmetric = y is None
    if symmetric:
        y_matrix, y_labels = x_matrix, x_labels
    else:
        y_matrix, y_labels = _as_matrix(y)
        if y_matrix.shape[0] != x_matrix.shape[0]:
            raise ValueError(
                f"Row counts differ: {x_matrix.shape[0]} vs {y_matrix.shape[0]}"
            )

    x_observed = np.isfinite(x_matrix)
    y_observed = np.isfinite(y_matrix)
    n_obs = x_observed.T.astype(int) @ y_observed.astype(int)

    if x_matrix.size == 0 or y_matrix.size == 0:
        coefficients = np.full(n_obs.shape, np.nan)
    elif x_observed.all() and y_observed.all():
        coefficients = _complete_bicor(x_matrix, y_matrix)
    else:
        LOGGER.debug("Missing values present; computing bicor on pairwise-complete samples")
        coefficients = _pairwise_bicor(x_matrix, y_matrix, symmetric)

    if symmetric:
        coefficients = (coefficients + coefficients.T) / 2.0
    coefficients = np.clip(coefficients, -1.0, 1.0)
    # perfectly collinear pairs come out as exactly +/-1
    collinear = np.isclose(np.abs(coefficients), 1.0, rtol=0.0, atol=COLLINEAR_TOLERANCE)
    coefficients[collinear] = np.sign(coefficients[collinear])

    return CorrelationResult(
        coefficients=coefficients,
        p_values=correlation_pvalues(coefficients, n_obs),
        n_obs=n_obs,
        row_labels=x_labels,
        column_labels=y_labels,
    )


def cluster_order(data, *, method: str = "average", metric: str = "euclidean") -> list[int]:
    """Leaf order of a hierarchical clustering of the rows of ``data``."""

    matrix = np.asarray(data, dtype=float)
    if matrix.shape[0] < 3:
        return list(range(matrix.shape[0]))
    tree = linkage(np.nan_to_num(matrix, nan=0.0), method=method, metric=metric)
    return leaves_list(tree).tolist()


def correlation_order(result: CorrelationResult, *, method: str = "average") -> list[str]:
    """Order the labels of a square correlation matrix by ``1 - r`` clustering.

    Undefined coefficients count as uncorrelated (distance 1).
    """

    if not result.is_square:
        raise ValueError("correlation_order requires a square correlation result")

    labels = list(result.row_labels)
    if len(labels) < 3:
        return labels

    distance = 1.0 - np.nan_to_num(result.coefficients, nan=0.0)
    distance = np.clip((distance + distance.T) / 2.0, 0.0, 2.0)
    np.fill_diagonal(distance, 0.0)
    tree = linkage(squareform(distance, checks=False), method=method)
    return [labels[index] for index in leaves_list(tree)]


__all__ = [
    "BIWEIGHT_CONSTANT",
    "CorrelationResult",
    "bicor",
    "cluster_order",
    "correlation_order",
    "correlation_pvalues",
]
