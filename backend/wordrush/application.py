from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wordrush.api.router import api_router
from wordrush.database import close_db, init_db
from wordrush.redis_cache import close_redis, init_redis
from wordrush.runtime import runtime


def create_app() -> FastAPI:
    app = FastAPI(title="WordRush Backend", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    @app.on_event("startup")
    async def on_startup() -> None:
        await init_db()
        await init_redis()
        await runtime.start()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await runtime.shutdown()
        await close_redis()
        await close_db()

    return app


app = create_app()
