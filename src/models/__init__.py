"""Data models for the spends parser"""

from .transaction import Transaction, now_millis
from .processing_status import ProcessingStatus

__all__ = ["Transaction", "ProcessingStatus", "now_millis"]
