import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Union

from .models import LoadReport, StressReport

logger = logging.getLogger(__name__)

Report = Union[LoadReport, StressReport]


def _write_json(payload: dict[str, Any], path: str) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(
            {"timestamp": datetime.now(timezone.utc).isoformat(), **payload}, f, indent=2
        )


def save_report(report: Report, path: str) -> str:
    """Write ``report`` as JSON for an external report generator."""
    _write_json(report.to_dict(), path)
    logger.info(f"Report saved to {path}")
    return path


def save_reports(reports: list[Report], path: str) -> str:
    _write_json({"results": [r.to_dict() for r in reports]}, path)
    logger.info(f"{len(reports)} reports saved to {path}")
    return path
