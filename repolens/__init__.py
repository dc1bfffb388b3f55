"""RepoLens: lexical static analysis for source repositories."""

from .config_manager import AnalysisOptions, ImpactSettings, QualitySettings
from .discovery import RepositoryRootMissing
from .orchestrator import analyze, analyze_repository

__version__ = "0.1.0"

__all__ = [
    "AnalysisOptions",
    "ImpactSettings",
    "QualitySettings",
    "RepositoryRootMissing",
    "analyze",
    "analyze_repository",
    "__version__",
]
