__all__ = [
    "LoadStressEngine",
    "LoadReport",
    "StressReport",
    "WaveSummary",
    "ProbeOutcome",
    "StatusPolicy",
    "ConfigurationError",
    "select_target_route",
    "compute_summary",
]


from .core import LoadStressEngine
from .errors import ConfigurationError
from .metrics import compute_summary
from .models import LoadReport, ProbeOutcome, StressReport, WaveSummary
from .probe import StatusPolicy
from .routes import select_target_route
