"""
Shared FastAPI dependencies.
"""

from fastapi import Request

from ..core.db import EntityStore
from ..core.errors import StoreError


def get_store(request: Request) -> EntityStore:
    """The entity store attached to the running application."""
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise StoreError("Entity store is not initialized")
    return store
