"""
Collaborator adapters.

Abstract interfaces plus demo-mode in-memory implementations.
"""

from claimflow.services.adapters.base import (
    AdapterMode,
    AuditLogSink,
    BaseAdapter,
    ClaimStore,
    ClinicalReviewQueue,
    DocumentRenderer,
    NotificationDispatcher,
    ReferenceDataProvider,
    WorkflowResultStore,
)

__all__ = [
    "AdapterMode",
    "AuditLogSink",
    "BaseAdapter",
    "ClaimStore",
    "ClinicalReviewQueue",
    "DocumentRenderer",
    "NotificationDispatcher",
    "ReferenceDataProvider",
    "WorkflowResultStore",
]
