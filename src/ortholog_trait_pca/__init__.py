"""Candidate gene expression PCA and clinical trait correlation."""

from .config import AnalysisConfig, load_config
from .pipeline import AnalysisSummary, run_analysis

__all__ = ["AnalysisConfig", "AnalysisSummary", "load_config", "run_analysis"]
