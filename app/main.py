import asyncio
import logging
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import order
from app.config import settings
from app.db_init import init_db
from app.services.errors import OrderServiceError
from app.services.expiry_sweeper import expiry_sweeper_loop
from app.webhooks import payment_callback

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("app.startup")

POSTGRES_SCHEMES = {"postgres", "postgresql", "postgresql+psycopg"}


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in {"http", "https"} and bool(parsed.hostname)


def _get_cors_origins(cors_raw: str) -> list[str]:
    return [origin.strip() for origin in cors_raw.split(",") if origin.strip()]


def _validate_database_url_for_runtime(database_url: str) -> None:
    parsed = urlparse(database_url)
    scheme = parsed.scheme
    if not scheme:
        raise RuntimeError("DATABASE_URL is missing URL scheme (expected postgresql:// or sqlite://).")
    if scheme == "sqlite":
        return
    if scheme not in POSTGRES_SCHEMES:
        raise RuntimeError(
            f"DATABASE_URL has unsupported scheme '{scheme}' (expected postgresql:// or sqlite://)."
        )
    if not parsed.hostname:
        raise RuntimeError("DATABASE_URL is missing host.")
    if not parsed.path.lstrip("/"):
        raise RuntimeError("DATABASE_URL is missing database name in path.")


def _db_url_diagnostics(database_url: str) -> str:
    parsed = urlparse(database_url)
    return (
        f"scheme={parsed.scheme or '<missing>'}, host={parsed.hostname or '<missing>'}, "
        f"port={parsed.port or '<missing>'}, database={parsed.path.lstrip('/') or '<missing>'}"
    )


def _validate_required_env_for_runtime() -> None:
    errors = []

    if not settings.JWT_SECRET.strip():
        errors.append("JWT_SECRET is required.")

    origins = _get_cors_origins(settings.CORS_ORIGINS)
    if not origins:
        errors.append("CORS_ORIGINS must contain at least one comma-separated origin URL.")
    else:
        invalid_origins = [origin for origin in origins if not _is_http_url(origin)]
        if invalid_origins:
            errors.append(f"CORS_ORIGINS contains invalid URL(s): {', '.join(invalid_origins)}")

    if settings.ORDER_EXPIRY_MINUTES <= 0:
        errors.append("ORDER_EXPIRY_MINUTES must be positive.")
    if settings.EXPIRY_SWEEP_INTERVAL_SECONDS <= 0:
        errors.append("EXPIRY_SWEEP_INTERVAL_SECONDS must be positive.")

    if errors:
        raise RuntimeError("Startup environment validation failed: " + " | ".join(errors))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup initiated.")
    database_url = settings.DATABASE_URL
    try:
        _validate_database_url_for_runtime(database_url)
        _validate_required_env_for_runtime()
        init_db()
    except Exception as exc:
        logger.exception(
            "Database initialization failed: %s. DATABASE_URL diagnostics: %s",
            exc,
            _db_url_diagnostics(database_url),
        )
        raise

    sweeper_task = None
    if settings.EXPIRY_SWEEP_ENABLED:
        sweeper_task = asyncio.create_task(
            expiry_sweeper_loop(settings.EXPIRY_SWEEP_INTERVAL_SECONDS)
        )
    logger.info("Application startup completed successfully.")
    try:
        yield
    finally:
        if sweeper_task is not None:
            sweeper_task.cancel()
            try:
                await sweeper_task
            except asyncio.CancelledError:
                logger.info("Expiry sweeper stopped.")


app = FastAPI(
    title="Order Sync API",
    description=(
        "Orders with payment status kept in step: create, cancel, status and "
        "payment-status updates, and automatic expiry of stale unpaid orders."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Orders", "description": "Order lifecycle (requires auth)."},
        {"name": "Webhooks", "description": "Called by the payment gateway."},
    ],
)


@app.exception_handler(OrderServiceError)
async def order_service_error_handler(request: Request, exc: OrderServiceError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(settings.CORS_ORIGINS),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(order.router, prefix="/api/orders", tags=["Orders"])
app.include_router(payment_callback.router, prefix="/webhooks", tags=["Webhooks"])


@app.get("/")
def root():
    return {"status": "ok", "service": "Order Sync API"}


@app.get("/health")
def health():
    return {"status": "ok"}
