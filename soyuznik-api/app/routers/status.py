from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from app.schemas.status import DebugResponse, StatusResponse
from app.services.health_service import get_config_presence, get_started_at, get_system_status
from app.services.telegram_service import TelegramService, get_telegram_service

router = APIRouter()


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/status", response_model=StatusResponse)
async def status(
    telegram: TelegramService = Depends(get_telegram_service),
    started_at: datetime = Depends(get_started_at),
):
    """Connectivity of the bot API and the database."""
    return await run_in_threadpool(get_system_status, telegram, started_at)


@router.get("/debug", response_model=DebugResponse)
async def debug():
    return get_config_presence()
