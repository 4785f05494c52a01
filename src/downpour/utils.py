import logging
import signal
import time
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

# ────────────────────────────────
# Time Helpers
# ────────────────────────────────


def now() -> float:
    return time.perf_counter()


def elapsed_ms(start: float) -> float:
    return (now() - start) * 1000.0


# ────────────────────────────────
# URL Helpers
# ────────────────────────────────


def join_url(base_url: str, route: str) -> str:
    base = base_url.rstrip("/")
    if not route:
        return base + "/"
    if not route.startswith("/"):
        route = "/" + route
    return base + route


def describe_host(url: str) -> str:
    netloc = urlparse(url).netloc
    if not netloc:
        logger.debug(f"URL {url} has no netloc, using 'default'")
        return "default"
    return netloc


# ────────────────────────────────
# Signal Handling
# ────────────────────────────────


class GracefulKiller:
    """Cooperative stop flag checked by the phase runners between batches."""

    def __init__(self):
        self.kill_now = False

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGINT, self.exit_gracefully)
        signal.signal(signal.SIGTERM, self.exit_gracefully)

    def request_stop(self) -> None:
        if not self.kill_now:
            logger.info("Stop requested; finishing the in-flight batch")
        self.kill_now = True

    def reset(self) -> None:
        self.kill_now = False

    def exit_gracefully(self, signum, frame):
        print("\n[!] Received shutdown signal. Draining current batch...")
        self.request_stop()
