import logging
import os

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import sentry_sdk
from slowapi.errors import RateLimitExceeded

from .routers import matches, streams
from .routes import report as report_pages
from .exceptions import DomainException, ProblemDetail
from .config import API_PREFIX
from .sessions import match_sessions
from .utils.sentry import init_sentry, sentry_dsn

logger = logging.getLogger(__name__)

init_sentry()


def _allowed_origins() -> list[str]:
    raw = os.getenv("ALLOWED_ORIGINS", "").strip()
    if not raw:
        raise ValueError(
            "ALLOWED_ORIGINS environment variable must be set to a comma-separated "
            "list of scoreboard origins."
        )
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    if not origins:
        raise ValueError("ALLOWED_ORIGINS must contain at least one non-empty origin.")
    # Wildcards would expose the scoring endpoints to any page the referee opens
    if "*" in origins:
        raise ValueError(
            "ALLOWED_ORIGINS cannot include '*' (wildcard). List the scoreboard hosts explicitly."
        )
    return origins


ALLOWED_ORIGINS = _allowed_origins()
ALLOW_CREDENTIALS = os.getenv("ALLOW_CREDENTIALS", "true").lower() == "true"

app = FastAPI(
    title="Mölkky Scorekeeper API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.state.limiter = matches.limiter
app.add_exception_handler(RateLimitExceeded, matches.rate_limit_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=ALLOW_CREDENTIALS,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)

logger.info("Serving match API under %r for origins %s", API_PREFIX, ALLOWED_ORIGINS)


def _problem_response(problem: ProblemDetail) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(),
        media_type="application/problem+json",
    )


# -----------------------------------------------------------------------------
# Error handling
# -----------------------------------------------------------------------------
@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    return _problem_response(exc.to_problem(instance=request.url.path))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    response = _problem_response(
        ProblemDetail(
            title=detail,
            detail=detail,
            status=exc.status_code,
            instance=request.url.path,
            code=getattr(exc, "code", f"http_{exc.status_code}"),
        )
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "invalid request")
    return _problem_response(
        ProblemDetail(
            title="Invalid request",
            detail=f"{location}: {message}" if location else message,
            status=422,
            instance=request.url.path,
            code="request_invalid",
        )
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception", exc_info=(type(exc), exc, exc.__traceback__))
    return _problem_response(
        ProblemDetail(
            title="Internal Server Error",
            detail=str(exc),
            status=500,
            instance=request.url.path,
            code="internal_server_error",
        )
    )


# -----------------------------------------------------------------------------
# Health checks and routers
# -----------------------------------------------------------------------------
@app.get("/healthz", tags=["health"])  # unprefixed for uptime probes
def root_healthz():
    return {"status": "ok"}


api_router = APIRouter(prefix=API_PREFIX, tags=["meta"])


@api_router.get("/healthz", tags=["health"])
def api_healthz():
    return {"status": "ok", "activeMatches": len(match_sessions)}


@api_router.post("/sentry-test", tags=["health"])
def sentry_test_check():
    if not sentry_dsn():
        raise HTTPException(status_code=400, detail="Sentry is not configured (SENTRY_DSN missing)")

    event_id = sentry_sdk.capture_message("Mölkky scorekeeper Sentry self-test", level="info")
    return {"status": "sent", "eventId": str(event_id)}


@api_router.get("")
def api_root():
    return {"message": "Mölkky Scorekeeper API. See /docs."}


v0_router = APIRouter(prefix="/v0")
v0_router.include_router(matches.router)
v0_router.include_router(streams.router)

api_router.include_router(v0_router)
app.include_router(api_router)
app.include_router(report_pages.router)
