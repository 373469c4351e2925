"""Single-cell generation job model."""

from sqlalchemy import Column, Index, Integer, String, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from ..database import Base


class CellJob(Base):
    """
    One generation request against one cell.

    Status transitions: pending -> completed | failed (exactly once).
    Terminal states are final; a new request for the same cell creates a new job.
    """

    __tablename__ = "cell_jobs"
    __table_args__ = (
        Index("ix_cell_jobs_cell_id_created", "cell_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    cell_id = Column(Integer, ForeignKey("cells.id", ondelete="CASCADE"), nullable=False)

    # Prompt text, or the script input value when script_id is set
    prompt = Column(Text, nullable=False)
    script_id = Column(String(255), nullable=True)
    use_web_search = Column(Boolean, nullable=False, default=False)

    # Job lifecycle
    # Allowed values: pending, completed, failed
    status = Column(String(20), nullable=False, default="pending")
    result = Column(Text, nullable=True)
    error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
