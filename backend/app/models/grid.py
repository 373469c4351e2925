"""Grid models: tables, columns and cells."""

from sqlalchemy import Column, Index, Integer, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class DataTable(Base):
    """A grid. Rows are the cells sharing a row_index across its columns."""

    __tablename__ = "tables"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    columns = relationship("GridColumn", back_populates="table", cascade="all, delete-orphan")


class GridColumn(Base):
    """
    A grid column and its population rule.

    A column is populated either by a registered script
    (script_to_populate) or by an AI prompt template (ai_prompt).
    When both are set the script wins.
    """

    __tablename__ = "columns"
    __table_args__ = (
        Index("ix_columns_table_id", "table_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    table_id = Column(Integer, ForeignKey("tables.id", ondelete="CASCADE"), nullable=False)

    # Display heading; also the key used for {{placeholders}} and script fields
    heading = Column(String(255), nullable=False)

    # Allowed values: text, number, email, url, boolean
    data_type = Column(String(20), nullable=False, default="text")

    # Prompt template with {{columnName}} placeholders
    ai_prompt = Column(Text, nullable=True)
    use_web_search = Column(Boolean, nullable=False, default=False)

    # Registered script id, plus JSON array of {"field": ..., "description": ...}
    script_to_populate = Column(String(255), nullable=True)
    script_required_fields = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    table = relationship("DataTable", back_populates="columns")
    cells = relationship("Cell", back_populates="column", cascade="all, delete-orphan")


class Cell(Base):
    """A single (column, row) data point."""

    __tablename__ = "cells"
    __table_args__ = (
        UniqueConstraint("column_id", "row_index", name="uq_cells_column_row"),
        Index("ix_cells_row_index", "row_index"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    column_id = Column(Integer, ForeignKey("columns.id", ondelete="CASCADE"), nullable=False)
    row_index = Column(Integer, nullable=False)

    value = Column(Text, nullable=True)
    is_ai_generated = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    column = relationship("GridColumn", back_populates="cells")
