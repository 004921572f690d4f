"""FastAPI dependency injection — maintenance service, connection registry, configuration.

All dependencies read from app.state, which is populated during lifespan startup.
"""

from __future__ import annotations

from fastapi import Request

from calmaint.config import Settings
from calmaint.enforcement.enforcer import ConnectionRegistry
from calmaint.maintenance.service import MaintenanceService


def get_service(request: Request) -> MaintenanceService:
    """Get the MaintenanceService instance from app state."""
    return request.app.state.service


def get_registry(request: Request) -> ConnectionRegistry:
    """Get the ConnectionRegistry the gate routes feed."""
    return request.app.state.registry


def get_settings(request: Request) -> Settings:
    """Get the Settings instance from app state."""
    return request.app.state.settings
