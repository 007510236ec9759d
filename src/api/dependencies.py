"""FastAPI dependencies shared by the route modules."""

from fastapi import Request

from src.services.runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    """Return the Runtime started by the application lifespan."""
    return request.app.state.runtime
