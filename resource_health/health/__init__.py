"""Health subsystem: collectors, rule engine, check service, scheduler."""

from .collectors import CollectorDispatch
from .errors import HealthCheckError, PolicyDisabledError, ResourceNotFoundError
from .rules import evaluate_rules
from .scheduler import Scheduler, parse_interval_seconds
from .service import HealthService
