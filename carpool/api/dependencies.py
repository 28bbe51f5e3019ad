"""FastAPI dependency injection helpers."""

from fastapi import Request

from carpool.container import Services


def get_services(request: Request) -> Services:
    """The ``Services`` built for this application instance."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Application services are not initialised")
    return services
