#!/usr/bin/env python3
"""Entry point for the candidate gene PCA / clinical trait analysis."""
from __future__ import annotations

import argparse
import dataclasses
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = PROJECT_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from ortholog_trait_pca.config import AnalysisConfig, ConfigurationError, load_config
from ortholog_trait_pca.pipeline import run_analysis


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Correlate candidate gene expression PCs with clinical traits",
    )
    parser.add_argument(
        "--config",
        dest="config_path",
        required=True,
        help="Path to the analysis configuration YAML file",
    )
    parser.add_argument(
        "--exclude",
        dest="exclude",
        action="append",
        default=None,
        help="Gene symbol to drop before PCA (can be repeated; adds to the config list)",
    )
    parser.add_argument(
        "--components",
        dest="n_components",
        type=int,
        default=None,
        help="Number of leading principal components to correlate with traits",
    )
    return parser.parse_args(argv)


def apply_overrides(config: AnalysisConfig, args: argparse.Namespace) -> AnalysisConfig:
    analysis = config.analysis
    if args.exclude:
        analysis = dataclasses.replace(
            analysis,
            excluded_genes=tuple(dict.fromkeys(analysis.excluded_genes + tuple(args.exclude))),
        )
    if args.n_components is not None:
        analysis = dataclasses.replace(analysis, n_components=args.n_components)
    return dataclasses.replace(config, analysis=analysis)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        config = load_config(args.config_path)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    summary = run_analysis(apply_overrides(config, args))
    print(f"Results written to {summary.results_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
