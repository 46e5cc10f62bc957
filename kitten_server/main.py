import logging
from contextlib import asynccontextmanager
from typing import Optional

import numpy as np
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from kitten_server.crud import DeckStore, StatsStore
from kitten_server.db import KeyValueStore, create_store
from kitten_server.load_secrets import deck_seed, frontend_origins, keepalive_interval, log_level
from kitten_server.manager import ConnectionManager
from kitten_server.routers import game
from kitten_server.services.game_session import SessionManager

logging.basicConfig(level=log_level)


def create_app(
    store: Optional[KeyValueStore] = None,
    keepalive_seconds: float = keepalive_interval,
    seed: Optional[int] = deck_seed,
) -> FastAPI:
    """Build the application.

    Args:
        store (KeyValueStore, optional): Store to use. Defaults to the one selected by STORE_BACKEND.
        keepalive_seconds (float): Interval between keepalive messages to leaderboard clients.
        seed (int, optional): Seed for the deck generator.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Wire the stores, the leaderboard hub and the keepalive job.
        This function is called to start the server.
        """
        kv_store = store if store is not None else create_store()
        stats_store = StatsStore(kv_store)
        hub = ConnectionManager(stats_store)
        app.state.hub = hub
        app.state.session_manager = SessionManager(
            DeckStore(kv_store, np.random.default_rng(seed)), stats_store, hub
        )

        scheduler = AsyncIOScheduler()
        scheduler.add_job(hub.keepalive, "interval", seconds=keepalive_seconds)
        scheduler.start()
        logging.info("Start Server")
        try:
            yield
        finally:
            scheduler.shutdown()
            await kv_store.close()
            logging.info("Stop Server")

    app = FastAPI(lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=frontend_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Authorization"],
        expose_headers=["Content-Length"],
    )
    app.include_router(game.game_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("kitten_server.main:app", host="localhost", port=8080)
