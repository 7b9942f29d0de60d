from contextlib import asynccontextmanager
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import (
    BaseCustomException,
    ValidationError,
    create_error_response,
    create_validation_error_response,
)
from app.api import deps
from app.api.v1.api import api_router
from app.domain.inventory.repository import InventoryStore, SqlInventoryStore
from app.infrastructure.database import init_db, close_db

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = deps.get_store()
    if isinstance(store, SqlInventoryStore):
        await init_db()
    logger.info(f"Inventory store ready ({store.backend})")

    yield

    if isinstance(store, SqlInventoryStore):
        await close_db()


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Set all CORS enabled origins
if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(BaseCustomException)
async def custom_exception_handler(request: Request, exc: BaseCustomException):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=create_error_response(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    validation_errors = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part != "body")
        validation_errors.setdefault(field or "body", []).append(error["msg"])

    return JSONResponse(
        status_code=422,
        content=create_validation_error_response(
            ValidationError("Request validation failed"),
            validation_errors=validation_errors,
        ),
    )


app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health")
def health_check(store: InventoryStore = Depends(deps.get_store)):
    return {"status": "ok", "store": store.backend}
