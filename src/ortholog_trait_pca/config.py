"""Configuration loading utilities for the candidate gene PCA analysis."""
from __future__ import annotations

import dataclasses
import pathlib
from typing import Any, Dict, Iterable
from urllib.parse import quote_plus

import yaml

DEFAULT_ODBC_DRIVER = "ODBC Driver 17 for SQL Server"
LINKAGE_METHODS = frozenset({"average", "complete", "single", "weighted"})


@dataclasses.dataclass(slots=True)
class DatabaseConfig:
    """Database connection and query settings.

    ``connection_string`` wins when set; otherwise the SQL Server ODBC parts
    are assembled by :func:`build_connection_url`.
    """

    connection_string: str = ""
    server: str | None = None
    database: str | None = None
    driver: str = DEFAULT_ODBC_DRIVER
    trusted_connection: bool = True
    sample_column: str = "sample_id"
    trait_query: str | None = None
    expression_query: str | None = None


@dataclasses.dataclass(slots=True)
class InputConfig:
    """Delimited gene list inputs."""

    ortholog_file: pathlib.Path
    candidate_file: pathlib.Path
    human_column: str = "human_symbol"
    mouse_column: str = "mouse_symbol"
    candidate_column: str = "gene"
    delimiter: str = "\t"


@dataclasses.dataclass(slots=True)
class AnalysisSettings:
    """Statistical settings for correlation and PCA."""

    n_components: int = 5
    scale: bool = True
    excluded_genes: tuple[str, ...] = ()
    linkage_method: str = "average"


@dataclasses.dataclass(slots=True)
class OutputConfig:
    """Locations of the results file, diagnostic tables and rendered plots."""

    directory: pathlib.Path = pathlib.Path("./results")
    results_file: str = "pc_trait_correlations.tsv"
    gene_heatmap_file: str = "gene_correlation_heatmap.png"
    trait_heatmap_file: str = "pc_trait_heatmap.png"
    scree_file: str = "pca_scree.png"
    contribution_file: str = "pca_contributions.png"
    gene_correlation_table: str = "gene_correlation.tsv"
    loadings_table: str = "pca_loadings.tsv"
    contributions_table: str = "pca_contributions.tsv"
    variance_table: str = "pca_variance.tsv"
    dpi: int = 150

    def path_for(self, name: str) -> pathlib.Path:
        return self.directory / name


@dataclasses.dataclass(slots=True)
class LoggingConfig:
    """Logging related settings."""

    log_level: str = "INFO"
    log_directory: pathlib.Path = pathlib.Path("./logs")


@dataclasses.dataclass(slots=True)
class AnalysisConfig:
    """Root configuration object."""

    database: DatabaseConfig
    inputs: InputConfig
    analysis: AnalysisSettings
    output: OutputConfig
    logging: LoggingConfig


class ConfigurationError(RuntimeError):
    """Raised when configuration cannot be loaded or is invalid."""


def _ensure_path(value: str | pathlib.Path, *, must_exist: bool = False) -> pathlib.Path:
    path = pathlib.Path(value).expanduser().resolve()
    if must_exist and not path.exists():
        raise ConfigurationError(f"Configured path does not exist: {path}")
    return path


def _load_section(data: Dict[str, Any], key: str, *, optional: bool = False) -> Dict[str, Any]:
    try:
        section = data[key]
    except KeyError:
        if optional:
            return {}
        raise ConfigurationError(f"Missing required configuration section '{key}'") from None
    if not isinstance(section, dict):
        raise ConfigurationError(f"Configuration section '{key}' must be a mapping")
    return section


def _coerce_sequence(values: Iterable[str] | None) -> tuple[str, ...]:
    if not values:
        return tuple()
    if isinstance(values, str):
        values = [values]
    return tuple(str(v).strip() for v in values if v and str(v).strip())


def build_connection_url(database_config: DatabaseConfig) -> str:
    """Return the SQLAlchemy URL for ``database_config``."""

    if database_config.connection_string:
        return database_config.connection_string
    if not database_config.server or not database_config.database:
        raise ConfigurationError(
            "Database settings require either 'connection_string' or 'server' and 'database'"
        )

    parts = [
        f"DRIVER={{{database_config.driver}}}",
        f"SERVER={database_config.server}",
        f"DATABASE={database_config.database}",
    ]
    if database_config.trusted_connection:
        parts.append("Trusted_Connection=yes")
    dsn = ";".join(parts) + ";"
    return f"mssql+pyodbc:///?odbc_connect={quote_plus(dsn)}"


def _database_from_section(section: Dict[str, Any]) -> DatabaseConfig:
    database = DatabaseConfig(
        connection_string=str(section.get("connection_string") or ""),
        server=str(section["server"]) if section.get("server") else None,
        database=str(section["database"]) if section.get("database") else None,
        driver=str(section.get("driver", DEFAULT_ODBC_DRIVER)),
        trusted_connection=bool(section.get("trusted_connection", True)),
        sample_column=str(section.get("sample_column", "sample_id")),
        trait_query=section.get("trait_query") or None,
        expression_query=section.get("expression_query") or None,
    )
    database.connection_string = build_connection_url(database)
    return database


def load_config(path: str | pathlib.Path, *, ensure_paths_exist: bool = True) -> AnalysisConfig:
    """Load the analysis configuration from a YAML file."""

    config_path = pathlib.Path(path).expanduser().resolve()
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration root must be a mapping")

    db_section = _load_section(data, "database")
    inputs_section = _load_section(data, "inputs")
    analysis_section = _load_section(data, "analysis", optional=True)
    output_section = _load_section(data, "output", optional=True)
    logging_section = _load_section(data, "logging", optional=True)

    database = _database_from_section(db_section)

    for key in ("ortholog_file", "candidate_file"):
        if not inputs_section.get(key):
            raise ConfigurationError(f"Input setting '{key}' is required")

    inputs = InputConfig(
        ortholog_file=_ensure_path(inputs_section["ortholog_file"], must_exist=ensure_paths_exist),
        candidate_file=_ensure_path(inputs_section["candidate_file"], must_exist=ensure_paths_exist),
        human_column=str(inputs_section.get("human_column", "human_symbol")),
        mouse_column=str(inputs_section.get("mouse_column", "mouse_symbol")),
        candidate_column=str(inputs_section.get("candidate_column", "gene")),
        delimiter=str(inputs_section.get("delimiter", "\t")),
    )

    analysis = AnalysisSettings(
        n_components=int(analysis_section.get("n_components", 5)),
        scale=bool(analysis_section.get("scale", True)),
        excluded_genes=_coerce_sequence(analysis_section.get("excluded_genes")),
        linkage_method=str(analysis_section.get("linkage_method", "average")).lower(),
    )
    if analysis.n_components < 1:
        raise ConfigurationError("analysis.n_components must be at least 1")
    if analysis.linkage_method not in LINKAGE_METHODS:
        raise ConfigurationError(
            f"Unsupported linkage method '{analysis.linkage_method}'; "
            f"expected one of {sorted(LINKAGE_METHODS)}"
        )

    defaults = OutputConfig()
    output = OutputConfig(
        directory=_ensure_path(output_section.get("directory", "./results")),
        results_file=str(output_section.get("results_file", defaults.results_file)),
        gene_heatmap_file=str(output_section.get("gene_heatmap_file", defaults.gene_heatmap_file)),
        trait_heatmap_file=str(output_section.get("trait_heatmap_file", defaults.trait_heatmap_file)),
        scree_file=str(output_section.get("scree_file", defaults.scree_file)),
        contribution_file=str(output_section.get("contribution_file", defaults.contribution_file)),
        gene_correlation_table=str(
            output_section.get("gene_correlation_table", defaults.gene_correlation_table)
        ),
        loadings_table=str(output_section.get("loadings_table", defaults.loadings_table)),
        contributions_table=str(
            output_section.get("contributions_table", defaults.contributions_table)
        ),
        variance_table=str(output_section.get("variance_table", defaults.variance_table)),
        dpi=int(output_section.get("dpi", defaults.dpi)),
    )

    logging = LoggingConfig(
        log_level=str(logging_section.get("log_level", "INFO")),
        log_directory=_ensure_path(logging_section.get("log_directory", "./logs")),
    )

    output.directory.mkdir(parents=True, exist_ok=True)
    logging.log_directory.mkdir(parents=True, exist_ok=True)

    return AnalysisConfig(
        database=database,
        inputs=inputs,
        analysis=analysis,
        output=output,
        logging=logging,
    )


__all__ = [
    "AnalysisConfig",
    "AnalysisSettings",
    "DatabaseConfig",
    "InputConfig",
    "LoggingConfig",
    "OutputConfig",
    "ConfigurationError",
    "build_connection_url",
    "load_config",
]
