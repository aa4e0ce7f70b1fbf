import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.auth.jwks import TokenValidator
from app.config import settings
from app.database import init_db
from app.routes import feed, friends, groups, prayer_requests, profile
from app.services.errors import ServiceError

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Prayer Request API")

app.state.token_validator = TokenValidator(
    issuer=settings.jwt_issuer,
    jwks_url=settings.jwks_url,
    cache_ttl_seconds=settings.jwks_cache_ttl_seconds,
    timeout_seconds=settings.jwks_http_timeout_seconds,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_body(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.code, exc.message))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    code = "UNAUTHORIZED" if exc.status_code == 401 else "HTTP_ERROR"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content=error_body("INVALID_REQUEST", "Invalid request payload"))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content=error_body("INTERNAL_ERROR", "Unexpected error"))


# Include routers
app.include_router(feed.router, prefix="/api/v1", tags=["feed"])
app.include_router(prayer_requests.router, prefix="/api/v1", tags=["prayer-requests"])
app.include_router(profile.router, prefix="/api/v1", tags=["profile"])
app.include_router(groups.router, prefix="/api/v1", tags=["groups"])
app.include_router(friends.router, prefix="/api/v1", tags=["friends"])


@app.on_event("startup")
def on_startup():
    for name in settings.missing_required():
        logger.error(f"Missing required setting {name}; authenticated routes will reject every token")
    init_db()


@app.on_event("shutdown")
def on_shutdown():
    app.state.token_validator.close()


@app.get("/api/health")
def health_check():
    return {"app_name": "Prayer Request API", "status": "healthy"}
