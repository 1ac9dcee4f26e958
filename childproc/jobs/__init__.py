"""Job layer package for child process lifecycle orchestration."""

from .completion_waiter import CompletionWaiter
from .host_scheduler import InMemoryHostScheduler
from .interfaces import HostSchedulerPort, JobExecutionResult, JobOrchestratorPort
from .job_config import (
	JobConfig,
	JobConfigMode,
	job_config_build,
	job_config_normalize_instance_ids,
	job_config_normalize_string_items,
	job_config_parse_flag,
)
from .kill_coordinator import KillCoordinator
from .launcher import ProcessLauncher
from .orchestrator import (
	JOB_OUT_VARIABLE,
	JOBS_VARIABLE,
	ChildProcessOrchestrator,
	ProcessServiceFactory,
	job_error_code,
	job_normalize_action,
	job_result_from_error,
)
from .payload import job_payload_prepare, job_payload_resolve, job_payload_zip_directory
from .request_translator import job_request_build, job_request_build_submit_fields
from .result_aggregator import OUTPUT_ARTIFACT_NAME, ResultAggregator, job_result_extract_error_detail
from .retry import FixedRetryPolicy
from .suspension import (
	SUSPENSION_RECORD_KEY,
	SuspendResumeBridge,
	SuspensionState,
	job_suspension_build_wait_condition,
)

__all__ = [
	"JOB_OUT_VARIABLE",
	"JOBS_VARIABLE",
	"OUTPUT_ARTIFACT_NAME",
	"SUSPENSION_RECORD_KEY",
	"ChildProcessOrchestrator",
	"CompletionWaiter",
	"FixedRetryPolicy",
	"HostSchedulerPort",
	"InMemoryHostScheduler",
	"JobConfig",
	"JobConfigMode",
	"JobExecutionResult",
	"JobOrchestratorPort",
	"KillCoordinator",
	"ProcessLauncher",
	"ProcessServiceFactory",
	"ResultAggregator",
	"SuspendResumeBridge",
	"SuspensionState",
	"job_config_build",
	"job_config_normalize_instance_ids",
	"job_config_normalize_string_items",
	"job_config_parse_flag",
	"job_error_code",
	"job_normalize_action",
	"job_payload_prepare",
	"job_payload_resolve",
	"job_payload_zip_directory",
	"job_request_build",
	"job_request_build_submit_fields",
	"job_result_extract_error_detail",
	"job_result_from_error",
	"job_suspension_build_wait_condition",
]
