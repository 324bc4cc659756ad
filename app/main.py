import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.admin import router as admin_router
from app.api.v1.auth import router as auth_router
from app.core.config import settings
from app.core.encryption import get_cipher
from app.core.errors import register_error_handlers
from app.core.logging import configure_logging, get_logger
from app.core.middleware import RateLimitMiddleware, SecurityHeadersMiddleware
from app.core.rate_limit import rate_limiter

configure_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON or settings.is_production)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # sin ENCRYPTION_KEY en producción, el arranque falla acá
    get_cipher()
    window_s = settings.RATE_LIMIT_WINDOW_MS / 1000
    sweeper = asyncio.create_task(rate_limiter.run_sweeper(window_s, settings.RATE_LIMIT_WINDOW_MS))
    logger.info("startup", env=settings.ENV)
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper


app = FastAPI(title="Prospecter API", version="0.1.0", lifespan=lifespan)

# el último middleware agregado es el más externo: los headers de seguridad
# también se aplican a las respuestas 429
app.add_middleware(RateLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)

register_error_handlers(app)

app.include_router(auth_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/health")
async def health():
    return {"status": "ok"}
