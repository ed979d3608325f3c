"""Read-only selectors; soft-delete visibility is enforced here."""

from procurement_kernel.selectors.base import BaseSelector, LiveRecordSelector

__all__ = ["BaseSelector", "LiveRecordSelector"]
