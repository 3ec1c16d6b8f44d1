from typing import Any, Callable, List, Optional

from fastapi import APIRouter

from buddynet.api.common.decorators import handle_route_errors, log_route_call

Endpoint = Callable[..., Any]


class BaseRouter:
    """
    Wraps an APIRouter so every JSON endpoint is logged and has its service
    errors mapped to HTTP responses.
    """

    def __init__(self, router: APIRouter, default_tags: Optional[List[str]] = None):
        self.router = router
        self.default_tags = list(default_tags or [])

    def add_api_route(
        self,
        path: str,
        endpoint: Endpoint,
        *,
        methods: List[str],
        tags: Optional[List[str]] = None,
        **kwargs: Any,
    ) -> None:
        wrapped = log_route_call(handle_route_errors(endpoint))
        self.router.add_api_route(
            path,
            wrapped,
            methods=methods,
            tags=sorted(set(self.default_tags + list(tags or []))),
            **kwargs,
        )

    def _route(self, method: str, path: str, **kwargs: Any) -> Callable[[Endpoint], Endpoint]:
        def decorator(endpoint: Endpoint) -> Endpoint:
            self.add_api_route(path, endpoint, methods=[method], **kwargs)
            return endpoint

        return decorator

    def get(self, path: str, **kwargs: Any) -> Callable[[Endpoint], Endpoint]:
        return self._route("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> Callable[[Endpoint], Endpoint]:
        return self._route("POST", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> Callable[[Endpoint], Endpoint]:
        return self._route("PUT", path, **kwargs)
