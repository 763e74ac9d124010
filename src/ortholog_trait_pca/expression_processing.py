"""Filtering, probe averaging and pivoting of long-format expression records."""
from __future__ import annotations

import logging
from collections.abc import Iterable

import polars as pl

from .orthologs import MOUSE_SYMBOL

LOGGER = logging.getLogger(__name__)

SAMPLE_ID = "sample_id"
GENE_SYMBOL = "gene_symbol"
EXPRESSION_VALUE = "expression_value"


def filter_to_genes(expression: pl.DataFrame, genes: Iterable[str]) -> pl.DataFrame:
    """Keep only expression records whose gene symbol is in ``genes``."""

    allowed = sorted(set(genes))
    filtered = expression.filter(pl.col(GENE_SYMBOL).cast(pl.Utf8).is_in(allowed))
    LOGGER.debug(
        "Filtered %s expression records to %s across %s genes",
        expression.height,
        filtered.height,
        len(allowed),
    )
    return filtered


def average_probes(expression: pl.DataFrame) -> pl.DataFrame:
    """Mean expression across probes for each (sample, gene) pair."""

    return (
        expression.with_columns(pl.col(EXPRESSION_VALUE).cast(pl.Float64, strict=False))
        .group_by([SAMPLE_ID, GENE_SYMBOL], maintain_order=True)
        .agg(pl.col(EXPRESSION_VALUE).mean())
    )


def pivot_expression(averaged: pl.DataFrame) -> pl.DataFrame:
    """Pivot averaged records to a sample x gene frame sorted by sample id."""

    if averaged.is_empty():
        return pl.DataFrame(schema={SAMPLE_ID: averaged.schema.get(SAMPLE_ID, pl.Utf8)})

    wide = averaged.pivot(
        on=GENE_SYMBOL,
        index=SAMPLE_ID,
        values=EXPRESSION_VALUE,
        sort_columns=True,
    )
    return wide.sort(SAMPLE_ID)


def aggregate_expression(expression: pl.DataFrame, resolved: pl.DataFrame) -> pl.DataFrame:
    """Build the sample x gene expression matrix for the resolved mouse symbols.

    Duplicate mouse symbols coming from one-to-many ortholog mappings are
    collapsed before filtering, so each mouse gene appears once.
    """

    genes = resolved.get_column(MOUSE_SYMBOL).unique().to_list() if resolved.height else []
    filtered = filter_to_genes(expression, genes)
    averaged = average_probes(filtered)
    matrix = pivot_expression(averaged)

    LOGGER.info(
        "Aggregated expression matrix: %s samples x %s genes",
        matrix.height,
        matrix.width - 1,
    )
    absent = sorted(set(genes) - set(matrix.columns))
    if absent:
        LOGGER.warning("No expression records for resolved genes: %s", ", ".join(absent))
    return matrix


__all__ = [
    "EXPRESSION_VALUE",
    "GENE_SYMBOL",
    "SAMPLE_ID",
    "aggregate_expression",
    "average_probes",
    "filter_to_genes",
    "pivot_expression",
]
