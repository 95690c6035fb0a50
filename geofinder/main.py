import logging
from contextlib import asynccontextmanager

import uvicorn
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from geofinder import load_settings
from geofinder.create_sqlite_engine import engine
from geofinder.crud import CreateData
from geofinder.db import Session
from geofinder.manager import Services, device_manager
from geofinder.routers import restapi, session
from geofinder.services.ai_duel import HttpAiDuelClient
from geofinder.services.http_client import HttpClient
from geofinder.services.round_source import HttpRoundSource
from geofinder.storage.backend import KeyValueStorage, MemoryStorage
from geofinder.storage.redis_storage import RedisStorage
from geofinder.storage.sql_storage import SqlStorage

scheduler = AsyncIOScheduler()
logging.basicConfig(level=logging.INFO)


def create_storage(backend: str) -> KeyValueStorage:
    if backend == "memory":
        return MemoryStorage()
    if backend == "redis":
        return RedisStorage.from_settings(load_settings.redis_host, load_settings.redis_port)
    if backend == "sql":
        return SqlStorage(Session)
    raise ValueError(f"Unknown storage backend: {backend}")


def create_services(storage: KeyValueStorage) -> Services:
    geo_client = HttpClient(
        load_settings.geo_api_url,
        timeout=load_settings.http_timeout_seconds,
        app_check_token=load_settings.app_check_token,
    )
    ai_client = HttpClient(
        load_settings.ai_duel_api_url,
        timeout=load_settings.http_timeout_seconds,
        app_check_token=load_settings.app_check_token,
    )
    return Services(
        storage=storage,
        round_source=HttpRoundSource(geo_client),
        pano_round_source=HttpRoundSource(geo_client, path="/pano"),
        registrar=restapi.leaderboard,
        submitter=restapi.leaderboard,
        leaderboard=restapi.leaderboard,
        ai_duel=HttpAiDuelClient(ai_client),
    )


@asynccontextmanager
async def lifespan(app):
    """Create tables, wire the storage backend and start the purge job.
    This function is called to start the server.
    """
    await CreateData.create_table(engine)
    storage = create_storage(load_settings.storage_backend)
    logging.info(f"Using {load_settings.storage_backend} storage backend")
    device_manager.configure(create_services(storage))

    # Snapshots past their max age are never restored, drop them
    scheduler.add_job(
        device_manager.purge_expired_snapshots,
        "interval",
        hours=load_settings.purge_interval_hours,
    )
    scheduler.start()
    try:
        yield
    finally:
        scheduler.shutdown()
        await device_manager.close()
        if isinstance(storage, RedisStorage):
            await storage.close()
        await engine.dispose()
        logging.info("Stop Server")


app = FastAPI(lifespan=lifespan)
app.include_router(session.session_router)
app.include_router(restapi.rest_router)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8080)
