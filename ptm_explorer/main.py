from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ptm_explorer.api import health, proteins, sessions
from ptm_explorer.config import get_settings
from ptm_explorer.core.database import build_session_factory, create_tables, get_engine
from ptm_explorer.core.logging import setup_logging
from ptm_explorer.core.redis import close_redis, get_redis
from ptm_explorer.services.repository import MemoryRepository
from ptm_explorer.services.sql_repository import SqlRepository
from ptm_explorer.services.upload import UploadProcessor
from ptm_explorer.tools.uniprot import UniProtGateway

settings = get_settings()
logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("PTM Explorer API starting...")
    logger.info(f"Environment: {settings.APP_ENV}")
    logger.info(f"Storage backend: {settings.STORAGE_BACKEND}")

    engine = None
    if settings.STORAGE_BACKEND == "memory":
        repository = MemoryRepository()
    else:
        engine = get_engine()
        await create_tables(engine)
        logger.info("Database tables ensured")
        repository = SqlRepository(build_session_factory(engine))

    app.state.repository = repository
    app.state.upload_processor = UploadProcessor(
        repository, max_reported_errors=settings.MAX_VALIDATION_ERRORS
    )
    app.state.gateway = UniProtGateway(
        base_url=settings.UNIPROT_BASE_URL,
        timeout=settings.UNIPROT_TIMEOUT,
        redis=await get_redis(),
    )

    yield

    await close_redis()
    if engine is not None:
        await engine.dispose()
    logger.info("PTM Explorer API shutting down")


app = FastAPI(
    title="PTM Explorer",
    description="Protein post-translational modification site explorer API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.DEBUG else settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix="/api")
app.include_router(sessions.router, prefix="/api")
app.include_router(proteins.router, prefix="/api")
