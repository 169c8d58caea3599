"""
Health Check Endpoints.

``/health`` reports the modules served by the front controller, ``/health/db``
checks the database of every module that configures one, and ``/version``
names the framework release.
"""

from typing import Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.concurrency import run_in_threadpool

from plinth.core.logging_config import get_logger
from plinth.mvc.application import Application

from ..core import constant

logger = get_logger(__name__)

router = APIRouter()


def check_databases(mvc: Application) -> Dict[str, str]:
    """Run ``SELECT 1`` on each module database: ``ok``, ``error`` or ``none`` (no ``[database]``)."""
    results: Dict[str, str] = {}
    for module in mvc.get_modules():
        try:
            if mvc.get_config(module).database is None:
                results[module] = "none"
                continue
            with mvc.get_engine(module).connect() as conn:
                conn.execute(text("SELECT 1"))
            results[module] = "ok"
        except Exception as e:
            logger.warning(f"Database check failed for module '{module}': {e}")
            results[module] = "error"
    return results


@router.get(
    "/health",
    summary="Health Check",
    description="Check that the server is up and list the modules it serves.",
    response_description="Status and module names.",
)
async def health_check(request: Request):
    mvc: Application = request.app.state.mvc
    return {"status": "ok", "modules": mvc.get_modules(), "default_module": mvc.default_module}


@router.get(
    "/health/db",
    summary="Database Health Check",
    description="Check the database connection of every module.",
    response_description="Per-module database status; 503 when any check failed.",
)
async def database_health_check(request: Request):
    """
    Database health check endpoint.

    Module configs and engines are loaded on demand, the same way requests
    to the modules load them.
    """
    databases = await run_in_threadpool(check_databases, request.app.state.mvc)
    healthy = "error" not in databases.values()
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"status": "ok" if healthy else "degraded", "databases": databases},
    )


@router.get(
    "/version",
    summary="Get Version",
    description="Retrieve the framework version.",
    response_description="Version object.",
)
async def version():
    return {"name": constant.PROJECT_NAME, "version": constant.VERSION}
