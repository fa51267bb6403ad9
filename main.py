from database import engine
import models
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import OperationalError
from sqlalchemy.sql import text
from slowapi.errors import RateLimitExceeded
from fastapi.responses import JSONResponse
from redis import Redis

from core.limiter_config import limiter
from core.config import settings
from core import exceptions as exc
from core.logging_config import REQUEST_ID_HEADER, bind_request_context, setup_logging, get_logger
from schemas import ErrorResponse

setup_logging()
logger = get_logger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

# Files served as-is; a missing directory only means nothing is downloadable yet
app.mount("/downloads", StaticFiles(directory=settings.DOWNLOADS_DIR, check_dir=False), name="downloads")


if settings.CORS_ALLOWED_ORIGINS:
    logger.info("cors_origins_configured", origins=settings.CORS_ALLOWED_ORIGINS)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    logger.warning("cors_origins_not_configured", message="CORS middleware not added as no origins are defined in settings.")


app.state.limiter = limiter


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = bind_request_context(
        request.headers.get(REQUEST_ID_HEADER), method=request.method, path=request.url.path
    )
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


from routers import poll as poll_router
from routers import comment as comment_router
from routers import post as post_router
app.include_router(poll_router.router, prefix=f"{settings.API_PREFIX}/polls", tags=["Polls"])
app.include_router(comment_router.router, prefix=f"{settings.API_PREFIX}/comments", tags=["Comments"])
app.include_router(post_router.router, prefix=f"{settings.API_PREFIX}/posts", tags=["Posts"])


def _error_response(status_code: int, message: str, code: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, error=code).model_dump(),
        headers=headers,
    )


# --- Custom Exception Handlers ---

@app.exception_handler(exc.NephslairException)
async def nephslair_exception_handler(request: Request, exception: exc.NephslairException):
    """Handles all custom exceptions inheriting from NephslairException."""
    log = logger.error if exception.status_code >= 500 else logger.warning
    log(
        "application_error",
        detail=exception.detail,
        code=exception.code,
        status_code=exception.status_code,
        request_method=request.method,
        request_url=str(request.url),
    )
    return _error_response(exception.status_code, exception.detail, exception.code, getattr(exception, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc_val: RequestValidationError):
    error_messages = []
    for error in exc_val.errors():
        field = " -> ".join(str(loc) for loc in error['loc'])
        error_messages.append(f"Field '{field}': {error['msg']}")

    detail_str = "Validation error. " + " | ".join(error_messages)
    logger.warning(
        "validation_error",
        errors=[str(err.get("msg")) for err in exc_val.errors()],
        request_method=request.method,
        request_url=str(request.url),
    )
    return _error_response(status.HTTP_400_BAD_REQUEST, detail_str, "VALIDATION_ERROR")


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exceeded_handler(request: Request, exc_val: RateLimitExceeded):
    logger.warning(
        "rate_limit_exceeded",
        detail=exc_val.detail,
        request_method=request.method,
        request_url=str(request.url),
    )
    return _error_response(
        status.HTTP_429_TOO_MANY_REQUESTS,
        f"Too many requests. Rate limit exceeded: {exc_val.detail}",
        "RATE_LIMIT_EXCEEDED",
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc_val: StarletteHTTPException):
    """Unknown routes, wrong methods and any HTTPException not raised by our own code."""
    logger.info("http_error", status_code=exc_val.status_code, detail=str(exc_val.detail), request_url=str(request.url))
    return _error_response(exc_val.status_code, str(exc_val.detail), "HTTP_ERROR", getattr(exc_val, "headers", None))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc_val: Exception):
    logger.error(
        "unhandled_exception",
        exception_type=type(exc_val).__name__,
        error_message=str(exc_val),
        request_method=request.method,
        request_url=str(request.url),
        exc_info=True,
    )
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected internal server error occurred.",
        "INTERNAL_SERVER_ERROR",
    )


# --- Root Endpoint & Startup Event ---
@app.get("/")
def read_root(request: Request):
    try:
        with engine.connect() as connection:
            result = connection.execute(text("SELECT 1"))
            db_status = "OK" if result.scalar_one() == 1 else "NOT OK (Query Failed)"
    except OperationalError as e_db:
        logger.error("database_connection_failed", error=str(e_db), exc_info=True)
        db_status = "NOT OK (OperationalError)"

    return {
        "success": True,
        "message": f"{settings.PROJECT_NAME} is running",
        "database_connection": db_status,
    }


@app.on_event("startup")
async def startup_event():
    try:
        models.Base.metadata.create_all(bind=engine)
        logger.info("database_tables_initialized_startup")
    except Exception as e_startup_db:
        logger.error("database_tables_initialization_failed_startup", error=str(e_startup_db), exc_info=True)

    if settings.REDIS_URL:
        try:
            redis_client = Redis.from_url(settings.REDIS_URL)
            if redis_client.ping():
                logger.info("redis_connection_successful_startup", redis_url=settings.REDIS_URL)
            else:
                logger.error("redis_connection_ping_failed_startup", redis_url=settings.REDIS_URL)
        except Exception as e_startup_redis:
            logger.error("redis_connection_failed_startup", error=str(e_startup_redis), redis_url=settings.REDIS_URL, exc_info=True)
    else:
        logger.info("redis_url_not_set_startup_check", message="Rate limiter uses in-memory storage.")
