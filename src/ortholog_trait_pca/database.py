"""Database connection handling and the two read-only retrieval queries."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import polars as pl
from sqlalchemy import create_engine, select, text
from sqlalchemy.engine import Connection
from sqlalchemy.sql.expression import Executable

from .config import DatabaseConfig, build_connection_url
from .expression_processing import SAMPLE_ID
from .models import ExpressionValue, ProbeAnnotation

LOGGER = logging.getLogger(__name__)

DEFAULT_TRAIT_TABLE = "clinical_traits"
EXPRESSION_COLUMNS = (SAMPLE_ID, "probe_id", "gene_symbol", "expression_value")


@dataclass(slots=True)
class RetrievedTables:
    traits: pl.DataFrame
    expression: pl.DataFrame


@contextmanager
def connection_scope(config: DatabaseConfig) -> Iterator[Connection]:
    """Yield a single connection and dispose of its engine afterwards."""

    engine = create_engine(build_connection_url(config), future=True)
    try:
        with engine.connect() as connection:
            yield connection
    finally:
        engine.dispose()


def default_expression_query() -> Executable:
    """Expression values joined to their probe's gene symbol."""

    return select(
        ExpressionValue.sample_id.label("sample_id"),
        ExpressionValue.probe_id.label("probe_id"),
        ProbeAnnotation.gene_symbol.label("gene_symbol"),
        ExpressionValue.expression_value.label("expression_value"),
    ).join(ProbeAnnotation, ExpressionValue.probe_id == ProbeAnnotation.probe_id)


def _query_frame(connection: Connection, query: Executable) -> pl.DataFrame:
    result = connection.execute(query)
    columns = list(result.keys())
    rows = [tuple(row) for row in result]
    if not rows:
        return pl.DataFrame(schema={column: pl.Utf8 for column in columns})
    return pl.DataFrame(rows, schema=columns, orient="row", infer_schema_length=None)


def rename_sample_column(frame: pl.DataFrame, sample_column: str) -> pl.DataFrame:
    """Rename a configured sample id column to the canonical `sample_id`."""

    if sample_column != SAMPLE_ID and sample_column in frame.columns:
        return frame.rename({sample_column: SAMPLE_ID})
    return frame


def fetch_traits(connection: Connection, query: str | None = None) -> pl.DataFrame:
    """Return the clinical trait table (one row per sample)."""

    statement = text(query or f"SELECT * FROM {DEFAULT_TRAIT_TABLE}")
    frame = _query_frame(connection, statement)
    LOGGER.info("Retrieved %s trait rows with %s columns", frame.height, frame.width)
    return frame


def fetch_expression(
    connection: Connection,
    query: str | None = None,
    sample_column: str = SAMPLE_ID,
) -> pl.DataFrame:
    """Return long-format expression records with gene annotation.

    A custom query may name its sample column `sample_column`; it is renamed
    to `sample_id` before the required columns are checked.
    """

    statement = text(query) if query else default_expression_query()
    frame = rename_sample_column(_query_frame(connection, statement), sample_column)
    missing = [column for column in EXPRESSION_COLUMNS if column not in frame.columns]
    if missing:
        raise ValueError(f"Expression query result is missing columns: {missing}")
    LOGGER.info("Retrieved %s expression records", frame.height)
    return frame


def retrieve_tables(config: DatabaseConfig) -> RetrievedTables:
    """Run the trait and expression queries serially over one connection."""

    with connection_scope(config) as connection:
        traits = fetch_traits(connection, config.trait_query)
        expression = fetch_expression(
            connection, config.expression_query, sample_column=config.sample_column
        )
    return RetrievedTables(traits=traits, expression=expression)


__all__ = [
    "RetrievedTables",
    "connection_scope",
    "default_expression_query",
    "fetch_expression",
    "fetch_traits",
    "rename_sample_column",
    "retrieve_tables",
]
