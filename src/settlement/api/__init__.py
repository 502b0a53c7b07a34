"""HTTP surface: admin campaign routes and error mapping."""

from settlement.api.errors import register_error_handlers
from settlement.api.routes import router

__all__ = ["register_error_handlers", "router"]
