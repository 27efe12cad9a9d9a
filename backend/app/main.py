"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import auth, chat, events, matches, notifications, ops, study_groups, users
from app.api.errors import install_error_handlers
from app.infra import background, postgres
from app.infra.schema import ensure_schema
from app.obs import init as obs_init
from app.settings import settings

_LOG = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	try:
		pool = await postgres.init_pool()
	except Exception:
		if settings.is_prod():
			raise
		_LOG.warning("postgres unavailable at startup; serving from in-memory stores", exc_info=True)
	else:
		await ensure_schema(pool)
	try:
		yield
	finally:
		await background.drain(timeout=5.0)
		await postgres.close_pool()


app = FastAPI(title="MatchUp API", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(settings.cors_allow_origins)
if not allow_origins:
	allow_origins = ["http://localhost:3000"] if settings.is_dev() else []

# Starlette disallows wildcard '*' with allow_credentials=True. Replace '*' with explicit origins.
if "*" in allow_origins:
	allow_origins = ["http://localhost:3000", "http://127.0.0.1:3000"] if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)
obs_init(app)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(matches.router)
app.include_router(chat.router)
app.include_router(events.router)
app.include_router(study_groups.router)
app.include_router(notifications.router)
app.include_router(ops.router)


def run() -> None:
	import uvicorn

	uvicorn.run("app.main:app", host=settings.api_host, port=settings.api_port, log_config=None)
