from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from typing import Any, Dict
import logging

from app.api.auth import get_current_user
from app.core.incident_ledger import verify_entry
from app.database import SessionDep
from app.models.ledger import LedgerRecord
from app.models.user import UserAccount

logger = logging.getLogger(__name__)

router = APIRouter()

REQUIRED_ENTRY_FIELDS = ("hash", "previous_hash", "block_number", "user_id")

@router.post("/incident", status_code=status.HTTP_201_CREATED)
async def record_incident(
    entry: Dict[str, Any],
    db: SessionDep,
    current_user: UserAccount = Depends(get_current_user)
) -> dict[str, Any]:
    missing = [key for key in REQUIRED_ENTRY_FIELDS if key not in entry]
    if missing:
        raise HTTPException(
            status_code=400,
            detail=f"Entry is missing fields: {', '.join(missing)}"
        )

    # Callers may only log their own incidents
    if str(entry["user_id"]) != str(current_user.id):
        raise HTTPException(status_code=403, detail="Entry belongs to another user")

    if not verify_entry(entry):
        logger.warning(f"Rejected ledger entry with bad hash: {entry.get('hash')}")
        raise HTTPException(status_code=400, detail="Entry hash does not match its contents")

    existing = await db.execute(select(LedgerRecord).where(LedgerRecord.hash == entry["hash"]))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Entry already recorded")

    record = LedgerRecord(
        hash=entry["hash"],
        previous_hash=entry["previous_hash"],
        block_number=int(entry["block_number"]),
        user_id=str(entry["user_id"]),
        entry=entry
    )
    db.add(record)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="Entry already recorded")

    return {"id": str(record.id), "hash": record.hash, "block_number": record.block_number}
