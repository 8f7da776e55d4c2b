"""SQLAlchemy models for pipeline report persistence."""
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class PipelineRunModel(Base):
    """One orchestrator run.

    Stores the outcome, timing and the configuration snapshot the run
    was started with.
    """

    __tablename__ = 'pipeline_runs'

    # Primary key
    run_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    # Outcome and timing
    outcome: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    total_duration_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Configuration snapshot
    config_snapshot: Mapped[str] = mapped_column(Text, nullable=False, default='{}')  # JSON serialized

    stages: Mapped[list["StageResultModel"]] = relationship(
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="StageResultModel.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<PipelineRunModel(run_id='{self.run_id}', "
            f"outcome='{self.outcome}', total_duration_ms={self.total_duration_ms})>"
        )


class StageResultModel(Base):
    """Result of one stage within a run, in execution order."""

    __tablename__ = 'stage_results'

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Foreign key to pipeline_runs
    run_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey('pipeline_runs.run_id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    stage_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    duration_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    run: Mapped[PipelineRunModel] = relationship(back_populates="stages")

    def __repr__(self) -> str:
        return (
            f"<StageResultModel(run_id='{self.run_id}', "
            f"stage_name='{self.stage_name}', status='{self.status}')>"
        )
