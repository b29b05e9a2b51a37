from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from fastapi import APIRouter, Depends

from quill.api.dependencies import authenticate_request


@dataclass(frozen=True)
class RouteDefinition:
    path: str
    endpoint: Callable[..., Any]
    methods: tuple[str, ...] = ("GET",)
    # Public routes are reachable without a bearer token
    public: bool = False
    status_code: int = 200
    summary: Optional[str] = None


def build_router(prefix: str, tags: list[str], routes: Sequence[RouteDefinition]) -> APIRouter:
    """Register a route table, putting the access guard in front of every non-public route"""
    router = APIRouter(prefix=prefix, tags=tags)
    for route in routes:
        dependencies = [] if route.public else [Depends(authenticate_request)]
        router.add_api_route(
            route.path,
            route.endpoint,
            methods=list(route.methods),
            status_code=route.status_code,
            dependencies=dependencies,
            summary=route.summary,
        )
    return router
