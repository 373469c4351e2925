"""Async polling client for the Gridfill API."""

from .api_client import GridfillClient, PollTimeoutError

__all__ = ["GridfillClient", "PollTimeoutError"]
