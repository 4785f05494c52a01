import logging
import re
from collections.abc import Iterable
from enum import IntEnum

logger = logging.getLogger(__name__)

DEFAULT_TARGET_ROUTE = "/api/health"

AUTH_MARKERS = ("auth", "login", "register")
STATEFUL_MARKERS = ("cart", "orders", "users")

# :id, {id}, <id>, [id] and wildcards
_PLACEHOLDER = re.compile(r"(^|/):[^/]+|\{[^/}]*\}|<[^/>]*>|\[[^/\]]*\]|\*")


class RouteClass(IntEnum):
    """Suitability of a route as a load target; lower is better."""

    HEALTH = 0
    READ_ONLY = 1
    UNPROTECTED = 2
    RESTRICTED = 3


def has_placeholder(route: str) -> bool:
    return bool(_PLACEHOLDER.search(route))


def classify_route(route: str) -> RouteClass:
    path = route.lower()
    if "health" in path:
        return RouteClass.HEALTH
    if has_placeholder(path):
        return RouteClass.RESTRICTED
    if any(m in path for m in AUTH_MARKERS):
        return RouteClass.RESTRICTED
    if any(m in path for m in STATEFUL_MARKERS):
        return RouteClass.UNPROTECTED
    return RouteClass.READ_ONLY


def _normalize(route: str) -> str:
    route = route.strip()
    if route and not route.startswith("/"):
        route = "/" + route
    return route


def select_target_route(
    candidates: Iterable[str], default: str = DEFAULT_TARGET_ROUTE
) -> str:
    """Pick the single route every probe of a run will hit.

    Precedence, first match wins: a health-check route, then a read-only
    route with no path parameter outside auth/cart/orders/users, then any
    parameter-free route that does not look like authentication. If none
    qualifies the first candidate is used, and ``default`` when there are no
    candidates at all. Ties keep input order, so the choice is deterministic.
    """
    routes = [_normalize(r) for r in candidates if r and r.strip()]
    if not routes:
        logger.info(f"No candidate routes supplied; using default {default}")
        return default

    best = min(routes, key=classify_route)
    if classify_route(best) is RouteClass.RESTRICTED:
        best = routes[0]
        logger.warning(f"No unauthenticated parameter-free route found; falling back to {best}")
    else:
        logger.info(f"Selected target route {best} ({classify_route(best).name.lower()})")
    return best
