"""Health subsystem — probe registry, aggregation engine, report formatting."""

from .engine import HealthCheckService
from .errors import ConfigurationError, DuplicateProbeError
from .formatting import http_status_for, render_report, report_to_dict
from .models import CheckOutcome, HealthReport, ProbeResult, ProbeStatus, worst_status
from .registry import ProbeRegistration, ProbeRegistry
