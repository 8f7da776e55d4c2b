"""
Sequential SEO content pipeline: stage orchestration, configuration and
report persistence.
"""
from .config import PipelineConfig, StageConfig, load_pipeline_config, resolve_stages
from .exceptions import (
    CommandFailedError,
    InvalidTransitionError,
    PipelineError,
    PipelineStateError,
    ReportSinkError,
)
from .orchestrator import PipelineOrchestrator
from .report import format_report
from .stages import CommandStage, StageRegistry, default_registry
from .state_machine import StateMachine
from .types import PipelineReport, PipelineState, Stage, StageResult, StageStatus

__all__ = [
    'CommandFailedError',
    'CommandStage',
    'InvalidTransitionError',
    'PipelineConfig',
    'PipelineError',
    'PipelineOrchestrator',
    'PipelineReport',
    'PipelineState',
    'PipelineStateError',
    'ReportSinkError',
    'Stage',
    'StageConfig',
    'StageRegistry',
    'StageResult',
    'StageStatus',
    'StateMachine',
    'default_registry',
    'format_report',
    'load_pipeline_config',
    'resolve_stages',
]
