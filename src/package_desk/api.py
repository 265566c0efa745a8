"""
FastAPI Application for the Package Desk.

This module exposes the check-in, check-out and residents surfaces over REST.
One check-out view lives for the whole server lifetime, so the packages
change subscription is opened at startup and released at shutdown.
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from package_desk import __version__
from package_desk.config import get_config
from package_desk.schemas.database_models import Package, Resident, StorageLocation
from package_desk.schemas.view_schemas import ErrorCode, Notification
from package_desk.services import CollectionKind, ServiceFactory, get_service_factory

# Configure logging
config = get_config()
logging.basicConfig(level=config.logging.level, format=config.logging.format)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorCode.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ALREADY_CHECKED_OUT: status.HTTP_409_CONFLICT,
    ErrorCode.STORE: status.HTTP_502_BAD_GATEWAY,
}


# Pydantic Models for API
class CheckInRequest(BaseModel):
    """Package check-in request. Required fields are validated by the view."""
    package_id: str = Field("", description="Externally assigned package label, e.g. PKG-001")
    resident_id: str = Field("", description="Owning resident ID")
    storage_location_id: str = Field("", description="Shelf or bin ID")
    description: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    notes: Optional[str] = None
    checked_in_by: Optional[str] = Field(None, description="Operator name")


class CheckOutRequest(BaseModel):
    """Package check-out request."""
    checked_out_by: Optional[str] = Field(None, description="Operator name; defaults to the desk label")


class ResidentRequest(BaseModel):
    """Resident add/edit request."""
    name: str = ""
    house_number: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: str = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    live_updates: bool = Field(..., description="Whether the packages change feed is active")
    store: Dict[str, Any] = Field(default_factory=dict, description="Record store health check results")
    cache_versions: Dict[str, int] = Field(default_factory=dict)


def _raise_for_error(notification: Optional[Notification]) -> Optional[Notification]:
    """Turn an error notification into an HTTP error; pass successes through."""
    if notification is None or not notification.is_error:
        return notification
    code = notification.error_code or ErrorCode.STORE
    raise HTTPException(
        status_code=ERROR_STATUS[code],
        detail={
            "message": notification.description,
            "error_code": code.value,
            "field_errors": notification.field_errors,
        },
    )


def create_app(service_factory: Optional[ServiceFactory] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        service_factory: Services to use; defaults to the global factory
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager for startup and shutdown events."""
        logger.info("Starting Package Desk API server...")
        factory = service_factory or get_service_factory()
        app.state.services = factory
        app.state.check_in_view = factory.create_check_in_view()
        app.state.check_out_view = factory.create_check_out_view()
        app.state.residents_view = factory.create_residents_view()

        notification = await app.state.check_out_view.enter()
        if notification is not None:
            logger.warning(f"Initial check-out data load failed: {notification.description}")
        notification = await app.state.check_in_view.enter()
        if notification is not None:
            logger.warning(f"Initial check-in data load failed: {notification.description}")

        yield

        logger.info("Shutting down Package Desk API server...")
        await app.state.check_out_view.exit()
        await factory.store.close()

    app = FastAPI(
        title="Package Desk API",
        description="Residential package check-in and check-out desk",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Accept", "Content-Type", "Authorization", "X-Requested-With"],
    )

    # Middleware for request logging
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all incoming requests."""
        start_time = time.time()
        logger.info(f"Request: {request.method} {request.url.path}")

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(f"Response: {response.status_code} - {process_time:.3f}s")
        return response

    @app.get("/", response_model=Dict[str, str])
    async def root():
        """Root endpoint with API information."""
        return {
            "message": "Package Desk API",
            "version": __version__,
            "status": "running",
            "docs": "/docs",
        }

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """Health check endpoint."""
        check_out_view = request.app.state.check_out_view
        cache = request.app.state.services.get_view_cache()
        live = check_out_view.listener.is_active
        store_health = await request.app.state.services.store.health_check()
        store_ok = store_health.get("status") == "healthy"
        return HealthResponse(
            status="healthy" if live and store_ok else "degraded",
            timestamp=datetime.now(timezone.utc).isoformat(),
            version=__version__,
            live_updates=live,
            store=store_health,
            cache_versions={kind.value: cache.version(kind) for kind in CollectionKind},
        )

    # Residents
    @app.get("/residents", response_model=List[Resident])
    async def list_residents(request: Request):
        view = request.app.state.residents_view
        _raise_for_error(await view.enter())
        return list(view.residents)

    @app.post("/residents", response_model=Notification, status_code=status.HTTP_201_CREATED)
    async def create_resident(body: ResidentRequest, request: Request):
        return _raise_for_error(await request.app.state.residents_view.save(body.model_dump()))

    @app.put("/residents/{resident_id}", response_model=Notification)
    async def update_resident(resident_id: str, body: ResidentRequest, request: Request):
        return _raise_for_error(
            await request.app.state.residents_view.save(body.model_dump(), resident_id=resident_id)
        )

    @app.delete("/residents/{resident_id}", response_model=Notification)
    async def delete_resident(resident_id: str, request: Request):
        return _raise_for_error(await request.app.state.residents_view.delete(resident_id))

    # Storage locations
    @app.get("/storage-locations", response_model=List[StorageLocation])
    async def list_storage_locations(request: Request):
        view = request.app.state.check_in_view
        _raise_for_error(await view.enter())
        return list(view.storage_locations)

    # Packages
    @app.post("/packages/check-in", response_model=Notification, status_code=status.HTTP_201_CREATED)
    async def check_in_package(body: CheckInRequest, request: Request):
        return _raise_for_error(await request.app.state.check_in_view.submit(body.model_dump()))

    @app.get("/residents/{resident_id}/packages", response_model=List[Package])
    async def list_available_packages(resident_id: str, request: Request):
        """Packages waiting in storage for one resident, newest first."""
        view = request.app.state.check_out_view
        resident, notification = await view.select_resident_reloading(resident_id)
        _raise_for_error(notification)
        if resident is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"message": f"Resident {resident_id} not found", "error_code": ErrorCode.NOT_FOUND.value},
            )
        return view.available_packages

    @app.post("/packages/{package_record_id}/check-out", response_model=Notification)
    async def check_out_package(package_record_id: str, request: Request, body: Optional[CheckOutRequest] = None):
        operator = body.checked_out_by if body else None
        return _raise_for_error(
            await request.app.state.check_out_view.check_out(package_record_id, operator or "")
        )

    @app.get("/packages/recent-check-outs", response_model=List[Package])
    async def list_recent_check_outs(request: Request):
        return request.app.state.check_out_view.recent_check_outs

    return app


app = create_app()
