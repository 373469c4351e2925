"""Bulk job aggregate and sub-job models."""

from sqlalchemy import (
    Column, Index, Integer, String, Text, Boolean, DateTime, ForeignKey, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class BulkJob(Base):
    """
    A batch of per-cell generation requests for one column.

    Status transitions: pending -> completed (all sub-jobs reported)
                        pending -> failed    (batch could not run at all)

    Counters only move through ProgressTracker.record_outcome.
    """

    __tablename__ = "bulk_jobs"
    __table_args__ = (
        CheckConstraint(
            "processed_cells = successful_cells + failed_cells",
            name="ck_bulk_jobs_processed_sum",
        ),
        CheckConstraint("processed_cells <= total_cells", name="ck_bulk_jobs_processed_le_total"),
        Index("ix_bulk_jobs_status", "status"),
        Index("ix_bulk_jobs_column_id", "column_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    # No foreign key: a batch naming an unknown column is still recorded (as failed)
    column_id = Column(Integer, nullable=False)

    # Allowed values: pending, completed, failed
    status = Column(String(20), nullable=False, default="pending")

    # Fixed at creation; always equals the number of sub-jobs
    total_cells = Column(Integer, nullable=False)
    processed_cells = Column(Integer, nullable=False, default=0)
    successful_cells = Column(Integer, nullable=False, default=0)
    failed_cells = Column(Integer, nullable=False, default=0)

    # Set only on a batch-fatal fault
    error = Column(Text, nullable=True)

    # Batch parameters, kept so pending sub-jobs can be resumed after a restart
    prompt = Column(Text, nullable=True)
    use_web_search = Column(Boolean, nullable=True)
    notify_target = Column(String(320), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    cells = relationship(
        "BulkJobCell",
        back_populates="bulk_job",
        cascade="all, delete-orphan",
        order_by="BulkJobCell.id",
    )


class BulkJobCell(Base):
    """One cell's entry within a bulk job."""

    __tablename__ = "bulk_job_cells"
    __table_args__ = (
        Index("ix_bulk_job_cells_bulk_job_id_status", "bulk_job_id", "status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    bulk_job_id = Column(Integer, ForeignKey("bulk_jobs.id", ondelete="CASCADE"), nullable=False)

    # No foreign key: a missing cell is a per-cell failure, discovered at execution
    cell_id = Column(Integer, nullable=False)

    # Per-cell prompt or script input; NULL = derive from the column rule
    input = Column(Text, nullable=True)

    # Allowed values: pending, completed, failed
    status = Column(String(20), nullable=False, default="pending")
    result = Column(Text, nullable=True)
    error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    bulk_job = relationship("BulkJob", back_populates="cells")
