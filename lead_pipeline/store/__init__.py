"""Normalized persistence for organizers, events, contacts and leads."""

from lead_pipeline.store.backend import (
    ConstraintError,
    JsonStore,
    OwnershipError,
    RpcUnavailable,
    StoreError,
    UniqueViolation,
)
from lead_pipeline.store.repository import (
    PROCEDURES,
    LeadNotFoundError,
    LeadRepository,
    open_store,
)

__all__ = [
    "ConstraintError",
    "JsonStore",
    "OwnershipError",
    "RpcUnavailable",
    "StoreError",
    "UniqueViolation",
    "PROCEDURES",
    "LeadNotFoundError",
    "LeadRepository",
    "open_store",
]
