"""Candidate gene list loading and human to mouse ortholog resolution."""
from __future__ import annotations

import logging
import pathlib

import polars as pl

LOGGER = logging.getLogger(__name__)

HUMAN_SYMBOL = "human_symbol"
MOUSE_SYMBOL = "mouse_symbol"


class GeneListError(RuntimeError):
    """Raised when a gene list or ortholog file cannot be processed."""


def _read_table(path: str | pathlib.Path, delimiter: str) -> pl.DataFrame:
    return pl.read_csv(
        path,
        separator=delimiter,
        infer_schema_length=0,
        truncate_ragged_lines=True,
    )


def _require_columns(frame: pl.DataFrame, path, columns: list[str]) -> None:
    missing = [column for column in columns if column not in frame.columns]
    if missing:
        raise GeneListError(f"File {path} must include column(s): {', '.join(missing)}")


def _clean_symbol(column: str) -> pl.Expr:
    return pl.col(column).cast(pl.Utf8).str.strip_chars()


def load_ortholog_table(
    path: str | pathlib.Path,
    *,
    human_column: str = HUMAN_SYMBOL,
    mouse_column: str = MOUSE_SYMBOL,
    delimiter: str = "\t",
) -> pl.DataFrame:
    """Return distinct (human_symbol, mouse_symbol) pairs from an ortholog table."""

    frame = _read_table(path, delimiter)
    _require_columns(frame, path, [human_column, mouse_column])

    orthologs = (
        frame.select(
            _clean_symbol(human_column).alias(HUMAN_SYMBOL),
            _clean_symbol(mouse_column).alias(MOUSE_SYMBOL),
        )
        .filter(
            pl.col(HUMAN_SYMBOL).is_not_null()
            & (pl.col(HUMAN_SYMBOL) != "")
            & pl.col(MOUSE_SYMBOL).is_not_null()
            & (pl.col(MOUSE_SYMBOL) != "")
        )
        .unique(maintain_order=True)
    )
    LOGGER.info("Loaded %s ortholog pairs from %s", orthologs.height, path)
    return orthologs


def load_candidate_genes(
    path: str | pathlib.Path,
    *,
    column: str = "gene",
    delimiter: str = "\t",
) -> list[str]:
    """Return the ordered, de-duplicated human symbols in a candidate list."""

    frame = _read_table(path, delimiter)
    _require_columns(frame, path, [column])

    genes = (
        frame.select(_clean_symbol(column).alias(HUMAN_SYMBOL))
        .filter(pl.col(HUMAN_SYMBOL).is_not_null() & (pl.col(HUMAN_SYMBOL) != ""))
        .unique(maintain_order=True)
        .get_column(HUMAN_SYMBOL)
        .to_list()
    )
    LOGGER.info("Loaded %s candidate genes from %s", len(genes), path)
    return genes


def resolve_orthologs(candidates: list[str], orthologs: pl.DataFrame) -> pl.DataFrame:
    """Inner join candidate human symbols to their mouse orthologs.

    Candidate order is preserved. Candidates without an ortholog are dropped,
    and a human gene with several mouse orthologs contributes one row per
    mouse symbol.
    """

    candidate_frame = pl.DataFrame(
        {HUMAN_SYMBOL: list(candidates)}, schema={HUMAN_SYMBOL: pl.Utf8}
    ).with_row_index("_order")

    resolved = (
        candidate_frame.join(
            orthologs.select(HUMAN_SYMBOL, MOUSE_SYMBOL).with_row_index("_mapping"),
            on=HUMAN_SYMBOL,
            how="inner",
        )
        .filter(pl.col(MOUSE_SYMBOL).is_not_null())
        .sort(["_order", "_mapping"])
        .drop(["_order", "_mapping"])
    )

    mapped = set(resolved.get_column(HUMAN_SYMBOL).to_list())
    unmapped = [gene for gene in candidates if gene not in mapped]
    if unmapped:
        LOGGER.warning(
            "%s candidate gene(s) have no mouse ortholog: %s",
            len(unmapped),
            ", ".join(unmapped),
        )
    expanded = resolved.height - len(mapped)
    if expanded > 0:
        LOGGER.info("One-to-many ortholog mappings added %s extra mouse symbol(s)", expanded)

    LOGGER.info(
        "Resolved %s of %s candidate genes to %s mouse symbols",
        len(mapped),
        len(candidates),
        resolved.get_column(MOUSE_SYMBOL).n_unique(),
    )
    return resolved


__all__ = [
    "GeneListError",
    "HUMAN_SYMBOL",
    "MOUSE_SYMBOL",
    "load_candidate_genes",
    "load_ortholog_table",
    "resolve_orthologs",
]
