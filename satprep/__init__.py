from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from satprep.config import settings
from satprep.db import init_all_databases
from satprep.services.rate_limit import RateLimiter
from satprep.services.ttl_store import TTLStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_all_databases(settings.data_dir)
    yield


def create_app() -> FastAPI:
    application = FastAPI(
        title="SAT Prep Backend", version="0.1.0", lifespan=lifespan
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.state.generation_cache = TTLStore(default_ttl=settings.cache_ttl_seconds)
    application.state.rate_limiter = RateLimiter(
        TTLStore(default_ttl=settings.generate_rate_window_seconds)
    )

    from satprep.routers import flashcards, health

    application.include_router(health.router)
    application.include_router(
        flashcards.router, prefix="/flashcards", tags=["flashcards"]
    )

    return application


app = create_app()
