"""Submit mobile test matrices to Firebase Test Lab and reduce their results to one verdict."""

__version__ = "1.0.0"

from .errors import (
    ConfigurationError,
    FatalError,
    FtlJobError,
    JobFailedError,
    PollCancelledError,
    PollTimeoutError,
    ProtocolError,
    TransportError,
    UnknownMatrixStateError,
)
from .models import MatrixState, Platform, StepOutcome
from .schemas import AggregateOutcome, DeviceDescriptor, DeviceSummary, JobRequest, parse_job_request
from .builder import build_payload
from .client import TestLabClient
from .poller import PollResult, StatusPoller
from .aggregator import ResultAggregator
from .runner import TestLabRunner

__all__ = [
    "__version__",
    "AggregateOutcome",
    "ConfigurationError",
    "DeviceDescriptor",
    "DeviceSummary",
    "FatalError",
    "FtlJobError",
    "JobFailedError",
    "JobRequest",
    "MatrixState",
    "Platform",
    "PollCancelledError",
    "PollResult",
    "PollTimeoutError",
    "ProtocolError",
    "ResultAggregator",
    "StatusPoller",
    "StepOutcome",
    "TestLabClient",
    "TestLabRunner",
    "TransportError",
    "UnknownMatrixStateError",
    "build_payload",
    "parse_job_request",
]
