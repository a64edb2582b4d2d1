"""
FastAPI application exposing the realflow feed and its reconciled jobs.
"""

from __future__ import annotations

import logging
import platform
import time
from contextlib import asynccontextmanager
from typing import Any, Dict

import pendulum
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..adapters.sqlserver_client import SqlServerRealflowRepository
from ..config import AppConfig
from ..domain.exceptions import RepositoryError
from ..domain.reconciler import JobReconciler, UnmatchedPolicy
from ..services.realflow_service import RealflowRepositoryProtocol, RealflowService

logger = logging.getLogger(__name__)

SERVICE_NAME = "RealFlow API"


def _now() -> str:
    return pendulum.now("UTC").to_iso8601_string()


def get_service(request: Request) -> RealflowService:
    return request.app.state.service


def create_app(
    config: AppConfig | None = None,
    repository: RealflowRepositoryProtocol | None = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        config: Application configuration (loaded from file/env when omitted)
        repository: Repository to serve from; a SQL Server repository is
            created from ``config`` at startup when omitted

    The repository is owned by the application: it is opened in the lifespan
    and closed on shutdown.
    """
    config = config or AppConfig.load()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        repo = repository
        if repo is None:
            config.require_database()
            repo = SqlServerRealflowRepository.from_config(config.database, comid=config.comid)

        reconciler = JobReconciler(
            unmatched_policy=config.unmatched_policy,
            timezone=config.timezone,
        )
        app.state.service = RealflowService(repository=repo, reconciler=reconciler)
        app.state.started_at = time.monotonic()
        logger.info("%s started (COMID=%s)", SERVICE_NAME, config.comid)
        try:
            yield
        finally:
            app.state.service.close()
            logger.info("%s stopped", SERVICE_NAME)

    app = FastAPI(title=SERVICE_NAME, version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info("%s %s", request.method, request.url.path)
        return await call_next(request)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            content: Dict[str, Any] = {
                "success": False,
                "message": "Endpoint not found",
                "path": request.url.path,
                "method": request.method,
                "timestamp": _now(),
            }
        else:
            content = {"success": False, "message": str(exc.detail), "timestamp": _now()}
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        return JSONResponse(
            status_code=422,
            content={
                "success": False,
                "message": "Invalid request parameters",
                "error": details,
                "timestamp": _now(),
            },
        )

    @app.exception_handler(RepositoryError)
    async def repository_error_handler(request: Request, exc: RepositoryError):
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Database query failed",
                "error": str(exc),
                "timestamp": _now(),
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Internal server error",
                "error": str(exc) if config.debug else "Internal Server Error",
                "timestamp": _now(),
            },
        )

    @app.get("/")
    def root() -> dict:
        return {
            "service": SERVICE_NAME,
            "version": __version__,
            "pythonVersion": platform.python_version(),
            "description": f"Realflow feed (COMID={config.comid}) and reconciled jobs",
            "endpoints": {
                "GET /": "Service information",
                "GET /health": "Health check",
                "GET /api/realflow-data": f"All records with COMID={config.comid}",
                "GET /api/realflow-data/{id}": "Single record by sequence number",
                "GET /api/realflow-jobs": "Reconciled job records",
            },
            "timestamp": _now(),
        }

    @app.get("/health")
    def health(request: Request, service: RealflowService = Depends(get_service)) -> dict:
        return {
            "status": "OK",
            "service": SERVICE_NAME,
            "version": __version__,
            "uptime": round(time.monotonic() - request.app.state.started_at, 3),
            "database": "connected" if service.is_database_connected() else "disconnected",
            "timestamp": _now(),
        }

    @app.get("/api/realflow-data")
    def list_records(service: RealflowService = Depends(get_service)) -> dict:
        rows = service.list_records()
        return {
            "success": True,
            "data": rows,
            "count": len(rows),
            "timestamp": _now(),
        }

    @app.get("/api/realflow-data/{record_id}")
    def get_record(record_id: str, service: RealflowService = Depends(get_service)):
        try:
            sequence = int(record_id)
        except ValueError:
            sequence = 0

        if sequence <= 0:
            return JSONResponse(
                status_code=400,
                content={
                    "success": False,
                    "message": "Invalid record id",
                    "error": "Record id must be a positive integer",
                    "timestamp": _now(),
                },
            )

        row = service.get_record(sequence)
        if row is None:
            logger.info("Record %s not found", sequence)
            return JSONResponse(
                status_code=404,
                content={
                    "success": False,
                    "message": "Record not found",
                    "recordId": sequence,
                    "timestamp": _now(),
                },
            )

        return {"success": True, "data": row, "timestamp": _now()}

    @app.get("/api/realflow-jobs")
    def list_jobs(
        unmatched: UnmatchedPolicy | None = Query(default=None),
        service: RealflowService = Depends(get_service),
    ) -> dict:
        result = service.reconcile_jobs(unmatched_policy=unmatched)
        return {
            "success": True,
            "data": result.to_dicts(),
            "count": result.count,
            "totalRecords": result.records_consumed,
            "timestamp": _now(),
        }

    return app
