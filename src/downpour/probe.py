import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

import aiohttp

from .models import ErrorKind, ProbeOutcome
from .utils import now, elapsed_ms, join_url

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_S = 5.0
DEFAULT_ALIVE_STATUSES = frozenset({401, 403, 404})
DEFAULT_HEADERS = {
    "User-Agent": "downpour/0.1 (load-stress probe)",
    "Accept": "application/json, text/html;q=0.9, */*;q=0.8",
    "Connection": "keep-alive",
}


class Classification(str, Enum):
    OK = "ok"
    ALIVE = "alive"  # auth/not-found answers: the server responded
    SERVER_ERROR = "server_error"
    REJECTED = "rejected"

    @property
    def succeeded(self) -> bool:
        return self in (Classification.OK, Classification.ALIVE)

    @property
    def error_kind(self) -> ErrorKind:
        if self is Classification.SERVER_ERROR:
            return ErrorKind.SERVER_ERROR
        if self is Classification.REJECTED:
            return ErrorKind.OTHER
        return ErrorKind.NONE


@dataclass(frozen=True)
class StatusPolicy:
    """Decides which HTTP statuses count as a responsive server.

    Anything in [200, 400) is ``OK``. Statuses listed in ``alive_statuses``
    are also counted as successes: a load test measures responsiveness, and
    401/403/404 prove the server answered even though the route wants
    credentials or does not exist.
    """

    alive_statuses: frozenset[int] = field(default=DEFAULT_ALIVE_STATUSES)

    def classify(self, status: int) -> Classification:
        if 200 <= status < 400:
            return Classification.OK
        if status in self.alive_statuses:
            return Classification.ALIVE
        if 500 <= status < 600:
            return Classification.SERVER_ERROR
        return Classification.REJECTED


class RequestProbe:
    """Issues one timed GET against a fixed route and reports the outcome.

    The per-request timeout lives on the ``aiohttp.ClientSession`` passed in.
    A probe never raises for network trouble and never retries.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str,
        route: str,
        policy: StatusPolicy | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.session = session
        self.url = join_url(base_url, route)
        self.policy = policy or StatusPolicy()
        self.headers = {**DEFAULT_HEADERS, **(headers or {})}

    async def probe(self) -> ProbeOutcome:
        start = now()
        try:
            async with self.session.get(self.url, headers=self.headers) as resp:
                await resp.read()
                latency = elapsed_ms(start)
                status = resp.status
        except asyncio.TimeoutError:
            logger.debug(f"Timeout for {self.url}")
            return ProbeOutcome(False, elapsed_ms(start), None, ErrorKind.TIMEOUT)
        except aiohttp.ClientConnectionError as e:
            logger.debug(f"Connection error for {self.url}: {e}")
            return ProbeOutcome(False, elapsed_ms(start), None, ErrorKind.CONNECTION)
        except Exception as e:
            logger.warning(f"Unexpected error fetching {self.url}: {e!r}")
            return ProbeOutcome(False, elapsed_ms(start), None, ErrorKind.OTHER)

        verdict = self.policy.classify(status)
        logger.debug(f"Fetched {self.url}: status={status} ({verdict.value}), {latency:.1f}ms")
        return ProbeOutcome(verdict.succeeded, latency, status, verdict.error_kind)


def build_session(
    timeout_s: float = DEFAULT_PROBE_TIMEOUT_S,
) -> aiohttp.ClientSession:
    # limit=0: the connector must never cap the concurrency of a wave
    connector = aiohttp.TCPConnector(limit=0)
    timeout = aiohttp.ClientTimeout(total=timeout_s)
    return aiohttp.ClientSession(connector=connector, timeout=timeout)
