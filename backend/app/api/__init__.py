"""API routes."""

from .bulk_jobs import router as bulk_jobs_router
from .jobs import router as jobs_router
from .cells import router as cells_router
from .column_scripts import router as column_scripts_router

__all__ = [
    "bulk_jobs_router",
    "jobs_router",
    "cells_router",
    "column_scripts_router",
]
