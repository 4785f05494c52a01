# downpour/logging_config.py
import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that drown out wave progress at DEBUG
NOISY_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio")


def _build_handlers(log_file: str | None) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def _log_uncaught(root: logging.Logger):
    def hook(exc_type, exc_value, exc_traceback):
        # Ctrl-C keeps the interpreter's default short message
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        root.critical(
            "Run aborted by an unhandled error", exc_info=(exc_type, exc_value, exc_traceback)
        )

    return hook


def setup_logging(level: str = "INFO", log_file: str | None = None) -> logging.Logger:
    """Route every downpour module's records through one root configuration.

    Records go to stdout, plus ``log_file`` when one is given. Calling this
    again swaps out the previous handlers, so the CLI and tests can reconfigure
    freely. aiohttp and asyncio chatter is held at WARNING or above.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    for old in list(root.handlers):
        root.removeHandler(old)
    for handler in _build_handlers(log_file):
        root.addHandler(handler)

    quiet_level = max(root.level, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    sys.excepthook = _log_uncaught(root)
    if log_file:
        root.info(f"Writing a copy of the log to {log_file}")
    return root
