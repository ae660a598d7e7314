"""
FastAPI dependencies.

Route handlers receive the service container built at startup instead of
reaching for module-level singletons.

Usage:
    from app.dependencies import get_container

    @router.get("/thing")
    async def thing(container: ServiceContainer = Depends(get_container)):
        ...
"""

from fastapi import Request

from repurposer.container import ServiceContainer


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container
