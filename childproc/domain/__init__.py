"""Domain models and error taxonomy used across application layer boundaries."""

from .errors import (
	AggregateFailureError,
	InvalidConfigError,
	OrchestratorError,
	PayloadNotFoundError,
	RemoteCallFailedError,
	SuspensionStateError,
	WaitTimeoutError,
)
from .models import (
	FAILURE_STATUSES,
	AggregateOutcome,
	AggregateResult,
	ChildFailure,
	ExecutionContext,
	HealthStatus,
	KillOutcome,
	ProcessHandle,
	ProcessStatus,
	SuspensionRecord,
	WaitSet,
	domain_parse_process_status,
)

__all__ = [
	"FAILURE_STATUSES",
	"AggregateFailureError",
	"AggregateOutcome",
	"AggregateResult",
	"ChildFailure",
	"ExecutionContext",
	"HealthStatus",
	"InvalidConfigError",
	"KillOutcome",
	"OrchestratorError",
	"PayloadNotFoundError",
	"ProcessHandle",
	"ProcessStatus",
	"RemoteCallFailedError",
	"SuspensionRecord",
	"SuspensionStateError",
	"WaitSet",
	"WaitTimeoutError",
	"domain_parse_process_status",
]
