"""Configuration manager for RepoLens using TOML files.

``~/.repolens/config.toml`` may carry three sections::

    [analysis]
    duplication_threshold = 0.8
    long_function_threshold = 50

    [impact]
    direct_weight = 0.7

    [quality]
    ideal_complexity = 5.0

Every key is optional; unknown keys are ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Optional

import toml

from . import config

logger = logging.getLogger(__name__)

ALL_STAGES: FrozenSet[str] = frozenset({
    "languages",
    "indexing",
    "semantics",
    "dependencies",
    "cross_references",
    "flows",
    "impact",
    "quality",
})

# Stages that need another stage's complete output.
STAGE_PREREQUISITES: Dict[str, FrozenSet[str]] = {
    "cross_references": frozenset({"semantics"}),
    "flows": frozenset({"semantics"}),
    "impact": frozenset({"semantics", "dependencies", "cross_references", "flows"}),
}


@dataclass(frozen=True)
class ImpactSettings:
    """Weights and thresholds for change-impact prediction."""

    direct_weight: float = 0.7
    transitive_weight: float = 0.3
    score_scale: float = 5.0
    max_score: float = 100.0
    fan_in_threshold: int = 10
    coupling_threshold: int = 5
    cycle_risk: int = 90
    fan_in_risk: int = 80
    coupling_risk: int = 70
    very_high_score: float = 80.0
    high_score: float = 50.0
    symbol_count_threshold: int = 20
    outbound_threshold: int = 15
    inbound_threshold: int = 10
    top_files: int = 10


@dataclass(frozen=True)
class QualitySettings:
    """Thresholds, ideals and weights for the code-quality score."""

    long_function_threshold: int = 30
    duplication_threshold: float = 0.8
    duplication_chunk_size: int = 10
    min_line_length: int = 5
    excessive_comment_ratio: float = 0.5
    excessive_comment_lines: int = 10
    ideal_complexity: float = 5.0
    complexity_penalty: float = 10.0
    long_function_penalty: float = 200.0
    duplication_penalty: float = 200.0
    ideal_comment_ratio: float = 0.2
    comment_penalty: float = 250.0
    complexity_weight: float = 0.4
    long_function_weight: float = 0.2
    duplication_weight: float = 0.3
    comment_weight: float = 0.1


@dataclass(frozen=True)
class AnalysisOptions:
    """Options accepted by :func:`repolens.orchestrator.analyze`."""

    stages: FrozenSet[str] = ALL_STAGES
    parser_backend: str = "regex"
    workers: int = 1
    cycle_scope: Optional[FrozenSet[str]] = None
    max_entry_points: int = 10
    max_path_depth: int = 10
    max_execution_paths: int = 1000
    max_path_visits: int = 100_000
    time_budget_seconds: Optional[float] = None
    impact: ImpactSettings = field(default_factory=ImpactSettings)
    quality: QualitySettings = field(default_factory=QualitySettings)

    def with_stages(self, stages: Iterable[str]) -> "AnalysisOptions":
        return replace(self, stages=frozenset(stages))

    def with_quality(self, **overrides: Any) -> "AnalysisOptions":
        return replace(self, quality=replace(self.quality, **overrides))

    def resolved_stages(self) -> FrozenSet[str]:
        """Requested stages plus everything they depend on."""
        unknown = set(self.stages) - ALL_STAGES
        if unknown:
            raise ValueError(f"Unknown analysis stage(s): {', '.join(sorted(unknown))}")
        resolved = set(self.stages)
        pending = list(resolved)
        while pending:
            stage = pending.pop()
            for prereq in STAGE_PREREQUISITES.get(stage, frozenset()):
                if prereq not in resolved:
                    resolved.add(prereq)
                    pending.append(prereq)
        return frozenset(resolved)


# ------------------------------------------------------------------
# TOML persistence
# ------------------------------------------------------------------

def load_full_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    config_file = path or config.CONFIG_FILE
    if not config_file.exists():
        return {}
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", config_file, exc)
        return {}


def save_full_config(payload: Dict[str, Any], path: Optional[Path] = None) -> Path:
    """Write the whole config dict to TOML, preserving all sections."""
    config_file = path or config.CONFIG_FILE
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w", encoding="utf-8") as f:
        toml.dump(payload, f)
    return config_file


def _apply_section(instance: Any, section: Dict[str, Any], name: str) -> Any:
    known = {f.name: f for f in fields(instance)}
    updates: Dict[str, Any] = {}
    for key, value in section.items():
        if key not in known or key in ("impact", "quality", "stages", "cycle_scope"):
            logger.debug("Ignoring unknown key [%s].%s", name, key)
            continue
        current = getattr(instance, key)
        try:
            if isinstance(current, bool):
                updates[key] = bool(value)
            elif isinstance(current, int):
                updates[key] = int(value)
            elif isinstance(current, float):
                updates[key] = float(value)
            else:
                updates[key] = value
        except (TypeError, ValueError):
            logger.warning("Invalid value for [%s].%s: %r", name, key, value)
    return replace(instance, **updates)


def load_options(path: Optional[Path] = None) -> AnalysisOptions:
    """Build :class:`AnalysisOptions` from defaults overlaid with the TOML file."""
    payload = load_full_config(path)
    options = AnalysisOptions()

    analysis = payload.get("analysis", {})
    if isinstance(analysis, dict):
        options = _apply_section(options, analysis, "analysis")
        stages = analysis.get("stages")
        if isinstance(stages, list):
            options = options.with_stages(str(s) for s in stages)
        # Legacy flat keys for the quality thresholds.
        quality_aliases = {
            k: analysis[k]
            for k in ("long_function_threshold", "duplication_threshold", "duplication_chunk_size")
            if k in analysis
        }
        if quality_aliases:
            options = replace(options, quality=_apply_section(options.quality, quality_aliases, "analysis"))

    impact = payload.get("impact", {})
    if isinstance(impact, dict):
        options = replace(options, impact=_apply_section(options.impact, impact, "impact"))

    quality = payload.get("quality", {})
    if isinstance(quality, dict):
        options = replace(options, quality=_apply_section(options.quality, quality, "quality"))

    return options


def set_option(section: str, key: str, value: Any, path: Optional[Path] = None) -> Path:
    """Persist a single ``[section].key = value`` entry."""
    if section not in ("analysis", "impact", "quality"):
        raise ValueError(f"Unknown config section '{section}'")
    defaults: Any = {
        "analysis": AnalysisOptions(),
        "impact": ImpactSettings(),
        "quality": QualitySettings(),
    }[section]
    names = {f.name for f in fields(defaults)}
    if section == "analysis":
        names |= {"long_function_threshold", "duplication_threshold", "duplication_chunk_size"}
    if key not in names:
        raise ValueError(f"Unknown key '{key}' for section [{section}]")

    payload = load_full_config(path)
    payload.setdefault(section, {})[key] = value
    return save_full_config(payload, path)


def reset_config(path: Optional[Path] = None) -> bool:
    """Delete the config file. Returns False when there was nothing to delete."""
    config_file = path or config.CONFIG_FILE
    if not config_file.exists():
        return False
    config_file.unlink()
    return True
