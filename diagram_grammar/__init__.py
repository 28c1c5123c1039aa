from .config import EngineConfig, get_engine_config, set_engine_config
from .errors import (
    GeometryParsingFailure,
    RuleApplicationFailure,
    RuleLearningIncompatibility,
    RuleNotFoundError,
)
from .geometry import LineSegment, Point, PolylinesGeometry, SegmentIntersection, signed_area
from .shape import LabeledGeometry, Shape, find_correspondences
from .grammar import GrammarRule, RuleStore, RuleSummary
from .resolver import resolve
from .programs import (
    EnclosedProgram,
    ProgramRequirement,
    ProgramsFinder,
    find_programs,
    match_requirements,
)
from .model import DiagramModel, WallEntity
from .printer import format_geometry, format_program, format_shape, print_model

__all__ = [
    'EngineConfig',
    'get_engine_config',
    'set_engine_config',
    'GeometryParsingFailure',
    'RuleApplicationFailure',
    'RuleLearningIncompatibility',
    'RuleNotFoundError',
    'Point',
    'LineSegment',
    'SegmentIntersection',
    'PolylinesGeometry',
    'signed_area',
    'Shape',
    'LabeledGeometry',
    'find_correspondences',
    'GrammarRule',
    'RuleStore',
    'RuleSummary',
    'resolve',
    'EnclosedProgram',
    'ProgramRequirement',
    'ProgramsFinder',
    'find_programs',
    'match_requirements',
    'DiagramModel',
    'WallEntity',
    'format_geometry',
    'format_program',
    'format_shape',
    'print_model',
]
