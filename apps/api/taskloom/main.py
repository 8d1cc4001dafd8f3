from __future__ import annotations

import logging
from time import monotonic

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.trustedhost import TrustedHostMiddleware

from taskloom.config import settings
from taskloom.errors import AppError
from taskloom.logging_setup import configure_logging
from taskloom.metrics import runtime_metrics
from taskloom.routers.ai import router as ai_router
from taskloom.routers.auth import router as auth_router
from taskloom.routers.comments import router as comments_router
from taskloom.routers.details import router as details_router
from taskloom.routers.projects import router as projects_router
from taskloom.routers.subtasks import router as subtasks_router
from taskloom.routers.tasks import router as tasks_router

logger = logging.getLogger(__name__)

app = FastAPI(
  title="Taskloom API",
  version="0.1.0",
  docs_url="/docs" if settings.api_docs_enabled else None,
  redoc_url="/redoc" if settings.api_docs_enabled else None,
  openapi_url="/openapi.json" if settings.api_docs_enabled else None,
)


@app.exception_handler(AppError)
async def _app_error_handler(_, exc: AppError) -> JSONResponse:
  if exc.status_code >= 500:
    logger.error("%s: %s", type(exc).__name__, exc.message)
  return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(SQLAlchemyError)
async def _storage_error_handler(_, exc: SQLAlchemyError) -> JSONResponse:
  logger.error("storage failure: %s", exc)
  return JSONResponse(status_code=500, content={"error": "Storage failure"})


@app.exception_handler(StarletteHTTPException)
async def _http_error_handler(_, exc: StarletteHTTPException) -> JSONResponse:
  detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
  return JSONResponse(status_code=exc.status_code, content={"error": detail}, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(_, exc: RequestValidationError) -> JSONResponse:
  errors = exc.errors()
  message = "Invalid request body"
  if errors:
    loc = ".".join(str(x) for x in errors[0].get("loc", ()) if x != "body")
    message = f"{message}: {loc} {errors[0].get('msg', '')}".strip()
  return JSONResponse(status_code=400, content={"error": message})


app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_origin_regex=settings.cors_origin_regex,
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_host_list())

app.include_router(auth_router)
app.include_router(projects_router)
app.include_router(tasks_router)
app.include_router(subtasks_router)
app.include_router(details_router)
app.include_router(comments_router)
app.include_router(ai_router)


@app.middleware("http")
async def _request_metrics_middleware(request, call_next):
  start = monotonic()
  response = await call_next(request)
  elapsed_ms = (monotonic() - start) * 1000.0
  runtime_metrics.observe_request(response.status_code, elapsed_ms)
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  response.headers.setdefault("X-Frame-Options", "DENY")
  response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
  response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
  return response


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version, "buildSha": settings.build_sha}


@app.get("/metrics/runtime")
async def metrics_runtime() -> dict:
  return runtime_metrics.snapshot()


@app.on_event("startup")
async def _startup() -> None:
  configure_logging()
  if settings.is_test_database():
    return
  if not settings.app_secret or settings.app_secret.strip().lower() in {"dev-secret-change-me", "replace_with_strong_random_secret"}:
    raise RuntimeError("APP_SECRET is required and must not be a placeholder")
  logger.info("Taskloom API %s starting (ai_provider=%s)", settings.app_version, settings.ai_provider)
