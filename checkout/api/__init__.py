"""
HTTP surface.

    app = create_app(service)          # tests, embedding
    app = create_app()                 # lifespan builds a database-backed service
"""

from checkout.api._app import STATUS_CODES, error_response, get_service, create_app
from checkout.api import _schemas as schemas

__all__ = ("STATUS_CODES", "error_response", "get_service", "create_app", "schemas")
