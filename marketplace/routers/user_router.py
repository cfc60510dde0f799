from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import Dict

from .. import crud, schemas
from ..auth import get_current_user
from ..database import get_db

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/me/telegram", response_model=schemas.UserOut)
def link_telegram_account(
    body: schemas.TelegramLinkRequest,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Store the caller's Telegram chat id for external notifications."""
    user = crud.link_telegram(db, current_user["id"], body.telegram_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user
