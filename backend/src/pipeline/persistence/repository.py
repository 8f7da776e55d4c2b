"""Repository pattern implementation for pipeline report persistence."""
import json
import logging
from datetime import timezone
from typing import Optional

from sqlalchemy import delete, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..types import PipelineReport, PipelineState, StageResult, StageStatus
from .models import PipelineRunModel, StageResultModel

logger = logging.getLogger(__name__)


class ReportRepository:
    """Repository for storing and querying pipeline reports.

    Each report maps to one ``pipeline_runs`` row plus one ``stage_results``
    row per stage, in execution order.
    """

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session

    async def save_report(self, report: PipelineReport) -> None:
        """Insert a report, replacing any earlier row with the same run id.

        Args:
            report: Finished pipeline report

        """
        try:
            existing = await self.session.get(PipelineRunModel, report.run_id)
            if existing is not None:
                await self.session.delete(existing)
                await self.session.flush()

            model = PipelineRunModel(
                run_id=report.run_id,
                outcome=report.outcome.value,
                started_at=report.timestamp,
                total_duration_ms=report.total_duration_ms,
                config_snapshot=json.dumps(report.config_snapshot),
                stages=[
                    StageResultModel(
                        position=position,
                        stage_name=result.stage_name,
                        status=result.status.value,
                        duration_ms=result.duration_ms,
                        error=result.error,
                    )
                    for position, result in enumerate(report.stages)
                ],
            )
            self.session.add(model)
            await self.session.commit()
            logger.debug(f"Saved pipeline report {report.run_id}")

        except Exception as e:
            await self.session.rollback()
            logger.error(f"Failed to save pipeline report {report.run_id}: {e}")
            raise

    async def get_report(self, run_id: str) -> Optional[PipelineReport]:
        """Load a report by run id.

        Returns:
            The report if found, None otherwise

        """
        try:
            model = await self.session.get(PipelineRunModel, run_id)
            return self._model_to_report(model) if model else None
        except Exception as e:
            logger.error(f"Failed to load pipeline report {run_id}: {e}")
            raise

    async def list_recent(self, limit: int = 10) -> list[PipelineReport]:
        """Most recent reports first."""
        try:
            stmt = (
                select(PipelineRunModel)
                .order_by(desc(PipelineRunModel.started_at))
                .limit(limit)
            )
            result = await self.session.execute(stmt)
            return [self._model_to_report(model) for model in result.scalars().all()]
        except Exception as e:
            logger.error(f"Failed to list recent pipeline reports: {e}")
            raise

    async def count(self, outcome: Optional[PipelineState] = None) -> int:
        """Count stored runs, optionally only those with ``outcome``."""
        try:
            stmt = select(func.count(PipelineRunModel.run_id))
            if outcome is not None:
                stmt = stmt.where(PipelineRunModel.outcome == outcome.value)
            result = await self.session.execute(stmt)
            return result.scalar() or 0
        except Exception as e:
            logger.error(f"Failed to count pipeline reports: {e}")
            raise

    async def delete_report(self, run_id: str) -> None:
        try:
            await self.session.execute(
                delete(StageResultModel).where(StageResultModel.run_id == run_id)
            )
            await self.session.execute(
                delete(PipelineRunModel).where(PipelineRunModel.run_id == run_id)
            )
            await self.session.commit()
            logger.debug(f"Deleted pipeline report {run_id}")
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Failed to delete pipeline report {run_id}: {e}")
            raise

    def _model_to_report(self, model: PipelineRunModel) -> PipelineReport:
        """Convert database model to PipelineReport object."""
        timestamp = model.started_at
        # SQLite drops the offset on the way back
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        return PipelineReport(
            run_id=model.run_id,
            timestamp=timestamp,
            total_duration_ms=model.total_duration_ms,
            outcome=PipelineState(model.outcome),
            config_snapshot=json.loads(model.config_snapshot),
            stages=[
                StageResult(
                    stage_name=stage.stage_name,
                    status=StageStatus(stage.status),
                    duration_ms=stage.duration_ms,
                    error=stage.error,
                )
                for stage in model.stages
            ],
        )
