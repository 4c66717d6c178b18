"""Control surface: pull lifecycle operations and catalog management."""

from .catalog import CatalogService, InvalidInputError
from .models import ControlResponse
from .service import ControlService

__all__ = [
    "CatalogService",
    "ControlResponse",
    "ControlService",
    "InvalidInputError",
]
