from sqlmodel import SQLModel, Field, Column, DateTime, JSON
from datetime import datetime, timezone
from typing import Optional, Dict, Any
import uuid

class LedgerRecord(SQLModel, table=True):
    """Hash-chain entry received at the blockchain incident endpoint"""
    __tablename__ = "ledger_records"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    hash: str = Field(unique=True, index=True)
    previous_hash: str = Field(index=True)
    block_number: int
    user_id: str = Field(index=True)
    entry: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    received_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True))
    )
