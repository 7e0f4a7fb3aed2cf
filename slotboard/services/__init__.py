"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .board_session import BoardSession, PendingMutation, SyncStatus

__all__ = ["BoardSession", "PendingMutation", "SyncStatus"]
