"""Persistence layer for leads, calls and businesses."""

from .businesses import BusinessNotFoundError, BusinessStore
from .calls import CallNotFoundError, CallStore, TranscriptUpdate
from .leads import LeadNotFoundError, LeadStore

__all__ = [
    "BusinessNotFoundError",
    "BusinessStore",
    "CallNotFoundError",
    "CallStore",
    "TranscriptUpdate",
    "LeadNotFoundError",
    "LeadStore",
]
