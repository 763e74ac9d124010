"""Correlation of leading principal components with clinical traits."""
from __future__ import annotations

import logging
import pathlib
from collections.abc import Sequence

import polars as pl

from .correlation import CorrelationResult, bicor, cluster_order
from .pca import PCAResult

LOGGER = logging.getLogger(__name__)

COMPONENT_COLUMN = "component"
STATISTIC_SUFFIXES = (("coefficients", "cor"), ("p_values", "p"))


class TraitCorrelationError(RuntimeError):
    """Raised when component scores cannot be correlated with traits."""


def correlate_components_with_traits(
    pca_result: PCAResult,
    traits: pl.DataFrame,
    n_components: int,
) -> CorrelationResult:
    """bicor of the first ``n_components`` PC scores against every trait.

    ``traits`` must be row-aligned with the samples the PCA was fitted on.
    """

    if n_components < 1:
        raise TraitCorrelationError("At least one component is required")
    if n_components > pca_result.n_components:
        raise TraitCorrelationError(
            f"Requested {n_components} components but the PCA has {pca_result.n_components}"
        )
    if traits.height != len(pca_result.samples):
        raise TraitCorrelationError(
            f"Trait table has {traits.height} rows for {len(pca_result.samples)} PCA samples"
        )
    if traits.width == 0:
        raise TraitCorrelationError("No numeric traits available for correlation")

    result = bicor(pca_result.score_frame(n_components), traits)
    LOGGER.info(
        "Correlated %s components with %s traits across %s samples",
        n_components,
        traits.width,
        traits.height,
    )
    return result


def trait_display_order(result: CorrelationResult, *, method: str = "average") -> list[str]:
    """Cluster traits by their correlation profile across components."""

    order = cluster_order(result.coefficients.T, method=method)
    return [result.column_labels[index] for index in order]


def reshape_results(
    result: CorrelationResult,
    trait_order: Sequence[str] | None = None,
) -> pl.DataFrame:
    """One row per component, one ``<trait>_cor`` and ``<trait>_p`` column per trait."""

    ordered = result.reorder(columns=trait_order) if trait_order is not None else result
    data: dict[str, list] = {COMPONENT_COLUMN: list(ordered.row_labels)}
    for trait_index, trait in enumerate(ordered.column_labels):
        for attribute, suffix in STATISTIC_SUFFIXES:
            values = getattr(ordered, attribute)[:, trait_index]
            data[f"{trait}_{suffix}"] = values.astype(float).tolist()
    return pl.DataFrame(data)


def write_results(frame: pl.DataFrame, path: str | pathlib.Path) -> pathlib.Path:
    """Write the results as tab-separated text with a header and no quoting."""

    output_path = pathlib.Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    frame.write_csv(output_path, separator="\t", quote_style="never")
    LOGGER.info("Wrote %s rows to %s", frame.height, output_path)
    return output_path


__all__ = [
    "COMPONENT_COLUMN",
    "TraitCorrelationError",
    "correlate_components_with_traits",
    "reshape_results",
    "trait_display_order",
    "write_results",
]
