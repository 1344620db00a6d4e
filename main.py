from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from controllers import contact_controller, health_controller
from fastapi.middleware.cors import CORSMiddleware
from database import create_indexes
from email_helper import create_dispatcher
from middleware.rate_limiter import limiter
from slowapi.errors import RateLimitExceeded as SlowAPIRateLimitExceeded
from pymongo.errors import PyMongoError
from utils.logger import setup_logging
from utils.exceptions import (
    APIException,
    api_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    storage_exception_handler,
    general_exception_handler,
    error_body
)
import os

# Setup logging
logger = setup_logging(log_level=os.getenv("LOG_LEVEL", "INFO"), log_file=os.getenv("LOG_FILE"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create indexes and the email dispatcher on startup"""
    logger.info("Starting application...")
    await create_indexes()
    app.state.dispatcher = create_dispatcher()
    logger.info("Application started successfully")
    yield
    logger.info("Shutting down application...")


app = FastAPI(
    lifespan=lifespan,
    title="NexGen Contact API",
    description="Contact form submissions and admin replies",
    version="1.0.0"
)

app.state.limiter = limiter

# Register exception handlers
app.add_exception_handler(APIException, api_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(PyMongoError, storage_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)


@app.exception_handler(SlowAPIRateLimitExceeded)
async def rate_limit_handler(request: Request, exc: SlowAPIRateLimitExceeded):
    """
    Custom handler for rate limit exceeded errors.
    Returns the standard envelope with a 429 status code.
    """
    logger.warning(f"Rate limit exceeded for IP: {request.client.host}")
    response = JSONResponse(
        status_code=429,
        content=error_body(
            f"Rate limit exceeded: {exc.detail}. Please try again later.",
            "RATE_LIMIT_EXCEEDED"
        )
    )
    response = request.app.state.limiter._inject_headers(
        response, request.state.view_rate_limit
    )
    return response

prefix = "/api"

origins = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers with prefix
app.include_router(health_controller.router, prefix=prefix)
app.include_router(contact_controller.router, prefix=prefix)
