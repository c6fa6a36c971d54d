import logging
import os

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.dependencies import get_assets, get_db
from app.core.storage import AssetStore
from app.schemas import HealthStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthStatus)
def health_check(db: Session = Depends(get_db), assets: AssetStore = Depends(get_assets)):
    database = "ok"
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Health check: database unavailable: %s", exc)
        database = "unavailable"

    # the image directory is created lazily, so check the closest existing ancestor
    media_root = assets.root
    while not media_root.exists() and media_root != media_root.parent:
        media_root = media_root.parent
    media = "ok" if os.access(media_root, os.W_OK) else "unavailable"

    payload = HealthStatus(database=database, media=media)
    status_code = 200 if database == "ok" and media == "ok" else 503
    return JSONResponse(status_code=status_code, content=payload.model_dump())
