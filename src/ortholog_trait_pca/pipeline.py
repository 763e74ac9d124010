"""Main orchestration logic for the candidate gene PCA analysis."""
from __future__ import annotations

import logging
import pathlib
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

from .alignment import align_samples
from .config import AnalysisConfig
from .correlation import bicor, correlation_order
from .database import RetrievedTables, rename_sample_column, retrieve_tables
from .expression_processing import aggregate_expression
from .logging_utils import configure_logging
from .orthologs import (
    GeneListError,
    load_candidate_genes,
    load_ortholog_table,
    resolve_orthologs,
)
from .pca import run_pca
from .plotting import (
    plot_contributions,
    plot_gene_correlation_heatmap,
    plot_scree,
    plot_trait_correlation_heatmap,
)
from .trait_correlation import (
    correlate_components_with_traits,
    reshape_results,
    trait_display_order,
    write_results,
)

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AnalysisSummary:
    """Counts, outputs and per-stage timings of one analysis run."""

    candidate_genes: int = 0
    resolved_genes: int = 0
    expression_records: int = 0
    samples: int = 0
    genes: int = 0
    traits: int = 0
    components: int = 0
    excluded_genes: tuple[str, ...] = ()
    results_path: pathlib.Path | None = None
    plot_paths: list[pathlib.Path] = field(default_factory=list)
    table_paths: list[pathlib.Path] = field(default_factory=list)
    stage_seconds: dict[str, float] = field(default_factory=dict)

    @property
    def total_seconds(self) -> float:
        return sum(self.stage_seconds.values())


@contextmanager
def _stage(summary: AnalysisSummary, name: str) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    except Exception:
        LOGGER.exception("Analysis stage '%s' failed", name)
        raise
    finally:
        summary.stage_seconds[name] = time.perf_counter() - start
        LOGGER.debug("Stage %s took %.2fs", name, summary.stage_seconds[name])


def run_analysis(
    config: AnalysisConfig,
    *,
    tables: RetrievedTables | None = None,
) -> AnalysisSummary:
    """Execute retrieval, ortholog filtering, correlation, PCA and trait export.

    ``tables`` skips the database step when the trait and expression tables
    have already been retrieved.
    """

    configure_logging(config)
    summary = AnalysisSummary()
    settings = config.analysis
    output = config.output

    if tables is None:
        with _stage(summary, "retrieval"):
            tables = retrieve_tables(config.database)
    summary.expression_records = tables.expression.height

    with _stage(summary, "orthologs"):
        candidates = load_candidate_genes(
            config.inputs.candidate_file,
            column=config.inputs.candidate_column,
            delimiter=config.inputs.delimiter,
        )
        orthologs = load_ortholog_table(
            config.inputs.ortholog_file,
            human_column=config.inputs.human_column,
            mouse_column=config.inputs.mouse_column,
            delimiter=config.inputs.delimiter,
        )
        resolved = resolve_orthologs(candidates, orthologs)
    summary.candidate_genes = len(candidates)
    summary.resolved_genes = resolved.height

    with _stage(summary, "aggregation"):
        expression = rename_sample_column(tables.expression, config.database.sample_column)
        matrix = aggregate_expression(expression, resolved)
        if matrix.width <= 1:
            raise GeneListError("No candidate genes resolved to expressed mouse orthologs")

    with _stage(summary, "alignment"):
        traits = rename_sample_column(tables.traits, config.database.sample_column)
        aligned = align_samples(matrix, traits)
    summary.samples = len(aligned.samples)
    summary.genes = aligned.expression.width
    summary.traits = aligned.traits.width

    with _stage(summary, "gene_correlation"):
        gene_correlation = bicor(aligned.expression)
        gene_order = correlation_order(gene_correlation, method=settings.linkage_method)
        summary.table_paths.append(
            write_results(
                gene_correlation.reorder(rows=gene_order, columns=gene_order).to_frame(
                    label_column="gene_symbol"
                ),
                output.path_for(output.gene_correlation_table),
            )
        )
        summary.plot_paths.append(
            plot_gene_correlation_heatmap(
                gene_correlation,
                output.path_for(output.gene_heatmap_file),
                order=gene_order,
                dpi=output.dpi,
            )
        )

    with _stage(summary, "pca"):
        pca_result = run_pca(
            aligned.expression,
            samples=aligned.samples,
            scale=settings.scale,
            exclude=settings.excluded_genes,
        )
        summary.excluded_genes = pca_result.excluded
        for frame, name in (
            (pca_result.variance_frame(), output.variance_table),
            (pca_result.loading_frame(), output.loadings_table),
            (pca_result.contribution_frame(), output.contributions_table),
        ):
            summary.table_paths.append(write_results(frame, output.path_for(name)))
        summary.plot_paths.append(
            plot_scree(pca_result, output.path_for(output.scree_file), dpi=output.dpi)
        )
        summary.plot_paths.append(
            plot_contributions(
                pca_result, output.path_for(output.contribution_file), dpi=output.dpi
            )
        )

    with _stage(summary, "trait_correlation"):
        trait_result = correlate_components_with_traits(
            pca_result, aligned.traits, settings.n_components
        )
        trait_order = trait_display_order(trait_result, method=settings.linkage_method)
        summary.components = settings.n_components
        summary.plot_paths.append(
            plot_trait_correlation_heatmap(
                trait_result,
                output.path_for(output.trait_heatmap_file),
                trait_order=trait_order,
                dpi=output.dpi,
            )
        )
        summary.results_path = write_results(
            reshape_results(trait_result, trait_order),
            output.path_for(output.results_file),
        )

    LOGGER.info(
        "Analysis completed: %s samples, %s genes, %s traits, %s components in %.2fs",
        summary.samples,
        summary.genes,
        summary.traits,
        summary.components,
        summary.total_seconds,
    )
    return summary


__all__ = ["AnalysisSummary", "run_analysis"]
