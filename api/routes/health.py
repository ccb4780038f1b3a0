from datetime import datetime, timezone
import time

from fastapi import APIRouter

import logging

router = APIRouter()
logger = logging.getLogger(__name__)

START_TIME = time.monotonic()

@router.get("/health", tags=["Health"])
async def health_check():
    logger.debug("Health check endpoint called")
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": int(time.monotonic() - START_TIME),
    }
