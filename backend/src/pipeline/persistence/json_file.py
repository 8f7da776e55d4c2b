"""JSON file report sink."""
import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

from ... import settings
from ..types import PipelineReport
from .base import BaseReportSink

logger = logging.getLogger(__name__)


class JsonFileReportSink(BaseReportSink):
    """Writes the latest report to a JSON file, replacing the previous one."""

    def __init__(self, path: Union[str, Path, None] = None):
        self.path = Path(path or settings.REPORT_PATH)

    async def save(self, report: PipelineReport) -> None:
        await asyncio.to_thread(self._write, report.to_dict())
        logger.info(f"Pipeline report saved to {self.path}")

    async def load(self) -> Optional[PipelineReport]:
        if not self.path.exists():
            return None
        data = await asyncio.to_thread(self._read)
        return PipelineReport.from_dict(data)

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.path)

    def _read(self) -> dict:
        with open(self.path, encoding="utf-8") as f:
            return json.load(f)
