from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from tradesight.core.config import Settings, get_settings
from tradesight.database.session import get_db

router = APIRouter()


@router.get("")
def health(settings: Settings = Depends(get_settings)):
    return {"status": "ok", "app": settings.app_name, "version": settings.app_version}


@router.get("/db")
def health_db(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1")).scalar()
    return {"ok": True, "dialect": db.get_bind().dialect.name}
