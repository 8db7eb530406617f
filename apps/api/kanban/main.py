from __future__ import annotations

import logging
from time import monotonic

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.trustedhost import TrustedHostMiddleware

from kanban.config import settings
from kanban.db import dispose_engine
from kanban.logging_setup import setup_logging
from kanban.positions import ConcurrentMoveError, PositionError
from kanban.routers.attachments import router as attachments_router
from kanban.routers.auth import router as auth_router
from kanban.routers.boards import router as boards_router
from kanban.routers.cards import router as cards_router
from kanban.routers.columns import router as columns_router
from kanban.routers.comments import router as comments_router
from kanban.routers.invitations import router as invitations_router
from kanban.routers.members import router as members_router

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Kanban API", version=settings.app_version)


def _fail(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
  return JSONResponse(status_code=status_code, content={"success": False, "message": message}, headers=headers)


@app.exception_handler(StarletteHTTPException)
async def _http_error_handler(_, exc: StarletteHTTPException) -> JSONResponse:
  return _fail(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(_, exc: RequestValidationError) -> JSONResponse:
  parts: list[str] = []
  for err in exc.errors():
    loc = ".".join(str(x) for x in err.get("loc", ()) if x not in ("body", "query", "path"))
    msg = err.get("msg", "invalid")
    parts.append(f"{loc}: {msg}" if loc else msg)
  return _fail(400, "; ".join(parts) or "Invalid input")


@app.exception_handler(PositionError)
async def _position_error_handler(_, exc: PositionError) -> JSONResponse:
  return _fail(400, str(exc))


@app.exception_handler(ConcurrentMoveError)
async def _concurrent_move_handler(_, exc: ConcurrentMoveError) -> JSONResponse:
  return _fail(409, str(exc))


@app.exception_handler(Exception)
async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
  logger.exception("Unhandled error on %s %s", request.method, request.url.path)
  return _fail(500, "Internal server error")


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
app.include_router(boards_router)
app.include_router(members_router)
app.include_router(invitations_router)
app.include_router(columns_router)
app.include_router(cards_router)
app.include_router(comments_router)
app.include_router(attachments_router)


@app.middleware("http")
async def _request_log_middleware(request: Request, call_next):
  start = monotonic()
  response = await call_next(request)
  elapsed_ms = (monotonic() - start) * 1000.0
  logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  response.headers.setdefault("X-Frame-Options", "DENY")
  response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
  response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
  return response


@app.get("/health")
async def health() -> dict:
  return {"success": True}


@app.get("/version")
async def version() -> dict:
  return {"success": True, "version": settings.app_version, "buildSha": settings.build_sha}


@app.on_event("startup")
async def _startup() -> None:
  if settings.is_test_db():
    return
  if not settings.app_secret or settings.app_secret.strip().lower() in {"dev-secret-change-me", "replace_with_strong_random_secret"}:
    raise RuntimeError("APP_SECRET is required and must not be a placeholder")
  logger.info("Kanban API %s starting", settings.app_version)


@app.on_event("shutdown")
async def _shutdown() -> None:
  await dispose_engine()
