"""SQLAlchemy-based report sink."""
import asyncio
import os
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ... import settings
from ..types import PipelineReport, PipelineState
from .base import BaseReportSink
from .repository import ReportRepository


def default_database_url() -> str:
    """SQLite database next to the other pipeline data."""
    os.makedirs(settings.DATA_DIR, exist_ok=True)
    db_path = os.path.join(settings.DATA_DIR, "pipeline-reports.db")
    return f"sqlite+aiosqlite:///{db_path}"


class SQLAlchemyReportSink(BaseReportSink):
    """Stores every run in a relational database."""

    def __init__(self, database_url: Optional[str] = None):
        """Initialize the sink.

        Args:
            database_url: SQLAlchemy database URL. Defaults to SQLite in the data dir.

        """
        self.database_url = database_url or settings.REPORT_DATABASE_URL or default_database_url()
        self.engine = create_async_engine(
            self.database_url,
            echo=False,
            pool_pre_ping=True,
        )
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )
        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def _ensure_initialized(self):
        """Ensure database tables are created."""
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return

            from .models import Base

            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            self._initialized = True

    async def save(self, report: PipelineReport) -> None:
        await self._ensure_initialized()

        async with self.session_factory() as session:
            await ReportRepository(session).save_report(report)

    async def load(self, run_id: str) -> Optional[PipelineReport]:
        await self._ensure_initialized()

        async with self.session_factory() as session:
            return await ReportRepository(session).get_report(run_id)

    async def list_recent(self, limit: int = 10) -> list[PipelineReport]:
        await self._ensure_initialized()

        async with self.session_factory() as session:
            return await ReportRepository(session).list_recent(limit=limit)

    async def count(self, outcome: Optional[PipelineState] = None) -> int:
        await self._ensure_initialized()

        async with self.session_factory() as session:
            return await ReportRepository(session).count(outcome)

    async def delete(self, run_id: str) -> None:
        await self._ensure_initialized()

        async with self.session_factory() as session:
            await ReportRepository(session).delete_report(run_id)

    async def close(self):
        """Close database connections."""
        await self.engine.dispose()
