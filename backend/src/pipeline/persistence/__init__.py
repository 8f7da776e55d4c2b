"""Report sinks for finished pipeline runs."""
from .base import BaseReportSink, CompositeReportSink, ReportSink
from .json_file import JsonFileReportSink
from .memory import MemoryReportSink
from .sqlalchemy_sink import SQLAlchemyReportSink
from .webhook import WebhookReportSink

__all__ = [
    'BaseReportSink',
    'CompositeReportSink',
    'JsonFileReportSink',
    'MemoryReportSink',
    'ReportSink',
    'SQLAlchemyReportSink',
    'WebhookReportSink',
]
