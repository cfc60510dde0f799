from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Dict

from .. import crud, schemas
from ..auth import get_current_admin
from ..database import get_db

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/stats", response_model=schemas.AdminStats)
def get_stats(
    recent_limit: int = Query(10, ge=1, le=100),
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.get_admin_stats(db, recent_limit=recent_limit)
