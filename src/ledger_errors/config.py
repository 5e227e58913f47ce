"""Ledger error codes."""

from enum import Enum


class ErrorCode(str, Enum):
    """Stable error codes carried by every ledger exception."""
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    INSUFFICIENT_INVENTORY = "INSUFFICIENT_INVENTORY"
    EDIT_REJECTED = "EDIT_REJECTED"
    NOT_FOUND = "NOT_FOUND"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"
