"""Configuration helpers for the grammar engine."""

from __future__ import annotations

import copy
from dataclasses import dataclass


@dataclass
class EngineConfig:
    """Tolerances and limits shared by the geometry pipeline."""

    point_tolerance: float = 1e-6
    learning_tolerance: float = 0.05
    ridge: float = 1e-9
    max_correspondences: int = 512
    area_match_tolerance: float = 0.5


_ENGINE_CONFIG = EngineConfig()


def get_engine_config() -> EngineConfig:
    return copy.deepcopy(_ENGINE_CONFIG)


def set_engine_config(config: EngineConfig) -> None:
    global _ENGINE_CONFIG
    _ENGINE_CONFIG = copy.deepcopy(config)
