"""Transaction data model"""

import time
from decimal import Decimal
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field
from src.constants import (
    TransactionType,
    TransactionMode,
    TransactionCategory,
    UNKNOWN_SOURCE,
    UNKNOWN_TARGET,
    MAX_STORABLE_INT,
)


def now_millis() -> int:
    """Current wall-clock time as a millisecond epoch"""
    return int(time.time() * 1000)


class Transaction(BaseModel):
    """Financial event extracted from a bank notification"""

    id: Optional[int] = Field(None, description="Row id assigned by the store")
    source: str = Field(UNKNOWN_SOURCE, min_length=1, description="Bank/account, e.g. 'ICICI Bank XX7004'")
    target: str = Field(UNKNOWN_TARGET, min_length=1, description="Merchant or counterparty")
    amount: Decimal = Field(..., gt=0, description="Transaction amount, always positive")
    date_of_transaction: int = Field(default_factory=now_millis, le=MAX_STORABLE_INT, description="Transaction date (ms epoch)")
    type: TransactionType = Field(..., description="DEBIT or CREDIT")
    mode: TransactionMode = Field(..., description="CARD or UPI")
    category: TransactionCategory = Field(TransactionCategory.OTHER, description="Spend category")
    other_info: str = Field("", description="Dispute numbers, reference ids")
    original_message: str = Field(..., description="Verbatim input message")
    created_at: int = Field(default_factory=now_millis, description="Creation timestamp (ms epoch)")
    updated_at: int = Field(default_factory=now_millis, description="Last update timestamp (ms epoch)")

    class Config:
        json_schema_extra = {
            "example": {
                "source": "ICICI Bank XX7004",
                "target": "Satguru",
                "amount": "624.00",
                "date_of_transaction": 1756146600000,
                "type": "DEBIT",
                "mode": "CARD",
                "category": "OTHER",
                "other_info": "To dispute call 18001080/",
                "original_message": "ICICI Bank Credit Card XX7004 debited for INR 624.00 on 26-Aug-25 for Satguru. ..."
            }
        }

    def comparable_fields(self) -> Dict[str, Any]:
        """Field values that identify the extraction, without bookkeeping columns"""
        return self.model_dump(exclude={"id", "created_at", "updated_at"})
