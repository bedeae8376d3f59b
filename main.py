"""Main FastAPI application"""
import os
import logging
import logging.config
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from routes import router as api_router
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

# --- Unified Logging Configuration with Rich ---
LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            # RichHandler adds its own timestamp and colors
            "format": "%(name)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "default": {
            "class": "rich.logging.RichHandler",
            "formatter": "default",
            "level": "DEBUG",
            "rich_tracebacks": True,
            "show_time": True,
            "show_path": False,
            "log_time_format": "%Y-%m-%d %H:%M:%S",
            "markup": False
        },
    },
    "loggers": {
        "uvicorn": {
             "handlers": ["default"],
             "level": "INFO",
             "propagate": False,
        },
        "uvicorn.error": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "uvicorn.access": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "": { # Root logger for our application
            "handlers": ["default"],
            "level": os.getenv("LOG_LEVEL", "INFO").upper(),
            "propagate": False,
        },
    },
}

logging.config.dictConfig(LOGGING_CONFIG)
logger = logging.getLogger(__name__)

load_dotenv() # Searches for .env in current dir and parents

MONGODB_URI = os.getenv("MONGODB_URI")
DB_NAME = os.getenv("DB_NAME", "expense_tracker")
PORT = int(os.getenv("PORT", "5000"))
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]
RATE_LIMIT = os.getenv("RATE_LIMIT", "60/minute")
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
MAX_BODY_SIZE = int(os.getenv("MAX_BODY_SIZE", str(16 * 1024)))  # 16KB is plenty for one expense
API_PREFIX = "/api"

if not MONGODB_URI:
    logger.error("MONGODB_URI environment variable not set! Database connection will fail.")

# Application state to hold the database client and collection
app_state = {}

# --- Rate Limiter Setup ---
limiter = Limiter(key_func=get_remote_address, default_limits=[RATE_LIMIT], enabled=RATE_LIMIT_ENABLED)

# --- Middleware for Request Body Size Limit ---
class LimitBodySizeMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith(API_PREFIX) and request.method in ("POST", "PUT"):
            content_length_header = request.headers.get("content-length")
            if content_length_header:
                try:
                    content_length = int(content_length_header)
                    if content_length > MAX_BODY_SIZE:
                        logger.warning(f"Request rejected: body size {content_length} exceeds limit {MAX_BODY_SIZE}.")
                        return JSONResponse({"message": f"Request body exceeds the {MAX_BODY_SIZE} byte limit."}, status_code=413)
                except ValueError:
                    logger.warning("Request rejected: Invalid Content-Length header.")
                    return JSONResponse({"message": "Invalid Content-Length header."}, status_code=400)

        response = await call_next(request)
        return response

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Connect to MongoDB
    logger.info(f"Connecting to MongoDB database '{DB_NAME}'...")
    try:
        app_state["db_client"] = AsyncIOMotorClient(MONGODB_URI)
        app_state["db"] = app_state["db_client"][DB_NAME]
        app_state["expenses_collection"] = app_state["db"].get_collection("expenses")
        await app_state["db_client"].admin.command('ping')
        logger.info(f"Successfully connected to MongoDB database: {DB_NAME}")
    except Exception as e:
        # Keep serving; expense routes answer 503 until the database is reachable
        logger.error(f"Failed to connect to MongoDB: {e}")
        if app_state.get("db_client"):
            app_state["db_client"].close()
        app_state["db_client"] = None
        app_state["db"] = None
        app_state["expenses_collection"] = None

    yield # Application runs here

    # Shutdown: Close MongoDB connection
    if app_state.get("db_client"):
        logger.info("Closing MongoDB connection...")
        app_state["db_client"].close()
        logger.info("MongoDB connection closed.")

app = FastAPI(
    title="Expense Tracker API",
    description="API for recording expenses and viewing spending summaries.",
    version="1.0.0",
    lifespan=lifespan
)

# --- Error Responses: every error body is {"message": ...} ---
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse({"message": message}, status_code=exc.status_code, headers=getattr(exc, "headers", None))

@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg", "Invalid request"))
    logger.warning(f"Request validation failed for {request.url.path}: {messages}")
    return JSONResponse({"message": "; ".join(messages)}, status_code=400)

@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"Rate limit exceeded for {get_remote_address(request)}: {exc.detail}")
    return JSONResponse({"message": f"Rate limit exceeded: {exc.detail}"}, status_code=429)

# --- Rate Limiter State ---
app.state.limiter = limiter

# --- Add Middleware (Order Matters, last added runs first) ---
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LimitBodySizeMiddleware)

app.include_router(
    api_router,
    prefix=API_PREFIX,
    tags=["api"],
)

# Make app state accessible via middleware
@app.middleware("http")
async def add_app_config_to_request(request: Request, call_next):
    """Adds the database connection to the request state."""
    request.state.db_client = app_state.get("db_client")
    request.state.db = app_state.get("db")
    request.state.expenses_collection = app_state.get("expenses_collection")
    response = await call_next(request)
    return response

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=PORT,
        reload=True
    )
