"""Constants and enums for the spends parser"""

from enum import Enum


class TransactionType(str, Enum):
    """Direction of money movement"""
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class TransactionMode(str, Enum):
    """Payment instrument"""
    CARD = "CARD"
    UPI = "UPI"


class TransactionCategory(str, Enum):
    """Spend categories"""
    SHOPPING = "SHOPPING"
    FOOD = "FOOD"
    ENTERTAINMENT = "ENTERTAINMENT"
    LOANS = "LOANS"
    TRANSPORT = "TRANSPORT"
    OTHER = "OTHER"


# Sentinels for unresolved fields
UNKNOWN_SOURCE = "Unknown Bank"
UNKNOWN_TARGET = "Unknown"

# Batch orchestration defaults
DEFAULT_CHUNK_SIZE = 10
DEFAULT_PACING_MIN_MS = 50
DEFAULT_PACING_MAX_MS = 200
DEFAULT_INTER_CHUNK_PAUSE_MS = 200

# LLM call budgets
LLM_TEXT_TIMEOUT_SECONDS = 30
LLM_IMAGE_TIMEOUT_SECONDS = 60
LLM_READINESS_TIMEOUT_SECONDS = 10

# Largest value an SQLite INTEGER column holds
MAX_STORABLE_INT = 2 ** 63 - 1

# Raw message source
DEFAULT_INBOX_LIMIT = 100
