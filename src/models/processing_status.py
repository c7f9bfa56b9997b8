"""Batch progress snapshot"""

from pydantic import BaseModel, Field


class ProcessingStatus(BaseModel):
    """Immutable progress snapshot published by the batch orchestrator"""

    total_messages: int = Field(0, ge=0, description="Messages in the current run")
    processed_messages: int = Field(0, ge=0, description="Messages attempted so far")
    detected_transactions: int = Field(0, ge=0, description="Transactions persisted so far")
    is_processing: bool = Field(False, description="True only while a run is active")

    class Config:
        frozen = True
