import asyncio
import os

import uvicorn
from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import SessionLocal
from app.logging_config import get_logger, setup_logging
from app.routers import bothelp, chat, status, telegram_webhook
from app.services.health_service import run_startup_check
from app.services.summary_service import generate_daily_summaries
from app.services.telegram_service import get_telegram_service
from app.services.update_source import poll_once, register_webhook

setup_logging(settings.log_level)

app = FastAPI(
    title="Soyuznik Bot API",
    description="Backend service for the Soyuznik Telegram chatbot",
    version="0.1.0",
)

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(telegram_webhook.router)
app.include_router(chat.router)
app.include_router(bothelp.router)
app.include_router(status.router)

summary_logger = get_logger("summary_worker")
polling_logger = get_logger("polling_worker")
_background_tasks: list[asyncio.Task] = []


def _is_under_test() -> bool:
    return bool(os.environ.get("PYTEST_CURRENT_TEST"))


def _run_summaries() -> dict:
    db = SessionLocal()
    try:
        return generate_daily_summaries(db)
    finally:
        db.close()


async def _summary_worker_loop() -> None:
    interval_seconds = max(settings.summary_interval_hours * 3600, 1.0)
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            results = await run_in_threadpool(_run_summaries)
            summary_logger.info("Daily summaries processed", extra={"context": results})
        except asyncio.CancelledError:
            break
        except Exception as exc:
            summary_logger.error(
                "Summary worker loop failed",
                extra={"context": {"error": str(exc)}},
            )


async def _polling_loop() -> None:
    telegram = get_telegram_service()
    offset = None
    while True:
        try:
            offset = await run_in_threadpool(poll_once, SessionLocal, telegram, offset)
        except asyncio.CancelledError:
            break
        except Exception as exc:
            polling_logger.error(
                "Polling loop failed",
                extra={"context": {"error": str(exc)}},
            )
            await asyncio.sleep(1)


@app.on_event("startup")
async def startup_check() -> None:
    if _is_under_test() or not settings.startup_check_enabled:
        return
    # Raising here aborts uvicorn startup
    await run_in_threadpool(run_startup_check, get_telegram_service())


@app.on_event("startup")
async def start_update_source() -> None:
    if _is_under_test():
        return
    telegram = get_telegram_service()
    if settings.updates_mode == "polling":
        await run_in_threadpool(telegram.delete_webhook)
        _background_tasks.append(asyncio.create_task(_polling_loop()))
        polling_logger.info("Polling worker started")
    else:
        await run_in_threadpool(register_webhook, telegram)


@app.on_event("startup")
async def start_summary_worker() -> None:
    if _is_under_test() or not settings.summary_enabled:
        return
    _background_tasks.append(asyncio.create_task(_summary_worker_loop()))
    summary_logger.info(f"Summary worker started, interval {settings.summary_interval_hours}h")


@app.on_event("shutdown")
async def stop_background_tasks() -> None:
    for task in _background_tasks:
        task.cancel()
    for task in _background_tasks:
        try:
            await task
        except asyncio.CancelledError:
            pass
    _background_tasks.clear()


def run() -> None:
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
