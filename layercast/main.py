import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from layercast.api import compose, containers
from layercast.config import get_settings
from layercast.exceptions import LayercastError
from layercast.middleware.request_context import REQUEST_ID_HEADER, get_request_context
from layercast.schemas.envelope import ErrorInfo, ErrorResponse

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    for directory in (settings.scratch_dir, settings.output_dir, settings.container_dir):
        Path(directory).mkdir(parents=True, exist_ok=True)
    logger.info(f"{settings.app_name} {settings.app_version} started ({settings.environment})")
    yield


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER, compose.SKIPPED_HEADER],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    context = get_request_context(request)
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = context.request_id
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} "
        f"({context.processing_time_ms}ms, request {context.request_id})"
    )
    return response


def _error_response(request: Request, status_code: int, error: ErrorInfo) -> JSONResponse:
    context = get_request_context(request)
    body = ErrorResponse(error=error, request_id=context.request_id)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body.model_dump(exclude_none=True)),
        headers={REQUEST_ID_HEADER: context.request_id},
    )


@app.exception_handler(LayercastError)
async def layercast_exception_handler(request: Request, exc: LayercastError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code} {exc.message}")
    return _error_response(request, exc.status_code, exc.to_error_info())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Body/path validation failures use the same error shape as ours, with status 400."""
    errors = exc.errors()
    if errors:
        first_error = errors[0]
        loc = " -> ".join(str(x) for x in first_error.get("loc", []))
        msg = first_error.get("msg", "Validation error")
        message = f"{loc}: {msg}" if loc else msg
    else:
        message = "Request validation failed"
    return _error_response(request, 400, ErrorInfo(code="VALIDATION_ERROR", message=message))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = {404: "NOT_FOUND", 405: "METHOD_NOT_ALLOWED"}.get(exc.status_code, "HTTP_ERROR")
    return _error_response(request, exc.status_code, ErrorInfo(code=code, message=str(exc.detail)))


# Global exception handler to ensure errors return proper JSON
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception: {exc}")
    return _error_response(
        request, 500, ErrorInfo(code="INTERNAL_ERROR", message="Internal server error")
    )


# Routers
app.include_router(compose.router, tags=["compose"])
app.include_router(containers.router, tags=["containers"])

# Link-mode outputs
app.mount(
    "/output",
    StaticFiles(directory=settings.output_dir, check_dir=False),
    name="output",
)


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy", "version": settings.app_version}
