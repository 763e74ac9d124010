"""Row alignment of the expression and trait matrices on sample identifier."""
from __future__ import annotations

import logging
from dataclasses import dataclass

import polars as pl
import polars.selectors as cs

from .expression_processing import SAMPLE_ID

LOGGER = logging.getLogger(__name__)


class AlignmentError(RuntimeError):
    """Raised when expression and trait tables cannot be row-aligned."""


@dataclass(frozen=True, slots=True)
class AlignedData:
    samples: list
    expression: pl.DataFrame
    traits: pl.DataFrame


def _prepare(frame: pl.DataFrame, sample_column: str, label: str) -> pl.DataFrame:
    if sample_column not in frame.columns:
        raise AlignmentError(f"{label} table has no '{sample_column}' column")
    present = frame.drop_nulls(sample_column)
    if present.height < frame.height:
        LOGGER.warning(
            "Dropping %s %s row(s) without a sample id",
            frame.height - present.height,
            label.lower(),
        )
    duplicated = present.filter(pl.col(sample_column).is_duplicated()).get_column(sample_column)
    if duplicated.len():
        raise AlignmentError(
            f"{label} table has duplicate sample ids: {duplicated.unique().sort().to_list()[:10]}"
        )
    return present


def numeric_traits(traits: pl.DataFrame, sample_column: str = SAMPLE_ID) -> pl.DataFrame:
    """Drop trait columns that are not numeric, keeping the sample column."""

    values = traits.drop(sample_column).select(cs.numeric())
    dropped = [
        column
        for column in traits.columns
        if column != sample_column and column not in values.columns
    ]
    if dropped:
        LOGGER.warning("Dropping non-numeric trait columns: %s", ", ".join(dropped))
    return pl.concat([traits.select(sample_column), values], how="horizontal")


def align_samples(
    expression: pl.DataFrame,
    traits: pl.DataFrame,
    sample_column: str = SAMPLE_ID,
) -> AlignedData:
    """Restrict both tables to shared samples in ascending id order.

    Ids keep their own dtype when both tables agree on it, so integer ids sort
    numerically. Otherwise both sides are matched and sorted as strings.
    """

    expression = _prepare(expression, sample_column, "Expression")
    traits = _prepare(traits, sample_column, "Trait")

    if expression.schema[sample_column] != traits.schema[sample_column]:
        LOGGER.debug("Sample id dtypes differ; matching ids as strings")
        expression = expression.with_columns(pl.col(sample_column).cast(pl.Utf8))
        traits = traits.with_columns(pl.col(sample_column).cast(pl.Utf8))

    common = expression.select(sample_column).join(
        traits.select(sample_column), on=sample_column, how="semi"
    )
    if common.is_empty():
        raise AlignmentError("Expression and trait tables share no sample identifiers")

    LOGGER.info(
        "Aligned %s samples (%s expression-only, %s trait-only dropped)",
        common.height,
        expression.height - common.height,
        traits.height - common.height,
    )

    def _restrict(frame: pl.DataFrame) -> pl.DataFrame:
        return frame.join(common, on=sample_column, how="semi").sort(sample_column)

    aligned_expression = _restrict(expression)
    aligned_traits = numeric_traits(_restrict(traits), sample_column)

    return AlignedData(
        samples=aligned_expression.get_column(sample_column).to_list(),
        expression=aligned_expression.drop(sample_column),
        traits=aligned_traits.drop(sample_column),
    )


__all__ = ["AlignedData", "AlignmentError", "align_samples", "numeric_traits"]
