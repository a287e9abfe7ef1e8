"""Route-level role declarations.

Every named route is listed here with the roles allowed to call it. An empty
set means the route is public. ``verify_route_policy`` is run at startup so a
route without a declaration fails loudly instead of defaulting to open.
"""

from collections.abc import Iterable

from fastapi.routing import APIRoute
from starlette.routing import BaseRoute

from docvault.core.auth import Role

PUBLIC: frozenset[Role] = frozenset()
ADMIN_ONLY: frozenset[Role] = frozenset({Role.ADMIN})
WRITERS: frozenset[Role] = frozenset({Role.ADMIN, Role.EDITOR})
READERS: frozenset[Role] = frozenset({Role.ADMIN, Role.EDITOR, Role.VIEWER})

ROUTE_ROLES: dict[str, frozenset[Role]] = {
    "health.root": PUBLIC,
    "health.healthz": PUBLIC,
    "auth.login": PUBLIC,
    "auth.signup": PUBLIC,
    "auth.refresh": PUBLIC,
    "auth.me": PUBLIC,
    "auth.logout": PUBLIC,
    "document.create": WRITERS,
    "document.list": READERS,
    "document.get": READERS,
    "document.update": WRITERS,
    "document.delete": WRITERS,
    "user.create": ADMIN_ONLY,
    "user.list": ADMIN_ONLY,
    "user.get": ADMIN_ONLY,
    "user.update": ADMIN_ONLY,
    "user.delete": ADMIN_ONLY,
    "ingestion.trigger": PUBLIC,
    "ingestion.list": PUBLIC,
    "ingestion.get": PUBLIC,
    "ingestion.update": PUBLIC,
}


class UndeclaredRouteError(LookupError):
    """Raised when a route has no entry in the role policy."""


def required_roles(route_name: str) -> frozenset[Role]:
    try:
        return ROUTE_ROLES[route_name]
    except KeyError as exc:
        raise UndeclaredRouteError(f"no role policy declared for route {route_name!r}") from exc


def verify_route_policy(routes: Iterable[BaseRoute]) -> None:
    missing = sorted(
        f"{sorted(route.methods or [])} {route.path} (name={route.name!r})"
        for route in routes
        if isinstance(route, APIRoute) and route.name not in ROUTE_ROLES
    )
    if missing:
        raise UndeclaredRouteError(f"routes without role policy: {missing}")
