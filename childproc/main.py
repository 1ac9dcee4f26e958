"""Main module entrypoint for local runtime execution.

This module validates startup configuration and either launches the FastAPI
service or runs one entry operation for a parent execution.
"""

import argparse
import json
from pathlib import Path
from typing import Any

import uvicorn

from childproc.bootstrap import bootstrap_create_application, bootstrap_create_cli_orchestrator
from childproc.config import config_load_settings
from childproc.domain import ExecutionContext, OrchestratorError
from childproc.jobs import JobExecutionResult, job_result_from_error

_ACTION_COMMANDS = ("start", "start-external", "fork", "kill")


def main(argv: list[str] | None = None) -> None:
    """Run selected runtime command with validated startup configuration.

    Args:
        argv: Optional argument list, defaults to `sys.argv[1:]`.

    Returns:
        None: This function does not return a runtime value.

    Raises:
        SettingsLoadError: Raised when configuration validation fails.
        SystemExit: Raised with code 1 when an entry operation fails.
    """

    argument_parser = main_build_argument_parser()
    parsed_arguments = argument_parser.parse_args(argv)

    if parsed_arguments.command == "api":
        settings = config_load_settings()
        application = bootstrap_create_application()
        uvicorn.run(
            application,
            host=settings.application_host,
            port=settings.application_port,
        )
        return

    if not parsed_arguments.instance_id:
        argument_parser.error(f"--instance-id is required for `{parsed_arguments.command}`")

    params = main_load_params(argument_parser, parsed_arguments.params)
    ctx = ExecutionContext(
        instance_id=parsed_arguments.instance_id,
        work_dir=Path(parsed_arguments.work_dir) if parsed_arguments.work_dir else Path.cwd(),
        org_name=parsed_arguments.org,
    )
    orchestrator = bootstrap_create_cli_orchestrator(defaults_path=parsed_arguments.defaults)

    try:
        if parsed_arguments.command == "resume":
            execution_result = orchestrator.job_resume(ctx, parsed_arguments.event)
        else:
            execution_result = orchestrator.job_execute(ctx, parsed_arguments.command, params)
    except OrchestratorError as error:
        main_print_result(job_result_from_error(parsed_arguments.command, error))
        raise SystemExit(1) from error

    main_print_result(execution_result)


def main_build_argument_parser() -> argparse.ArgumentParser:
    """Build the runtime argument parser.

    Returns:
        argparse.ArgumentParser: Configured parser.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    argument_parser = argparse.ArgumentParser(description="Child process orchestrator runtime entrypoint")
    argument_parser.add_argument(
        "command",
        nargs="?",
        default="api",
        choices=("api", *_ACTION_COMMANDS, "resume"),
        help="Runtime command: `api` starts server, `start`/`start-external`/`fork`/`kill` run one entry "
        "operation, `resume` delivers a resume event to a suspended execution",
        type=str,
    )
    argument_parser.add_argument("--instance-id", dest="instance_id", type=str, help="Parent execution identifier")
    argument_parser.add_argument(
        "--params",
        dest="params",
        type=Path,
        help="JSON file holding the parameter mapping of the entry operation",
    )
    argument_parser.add_argument(
        "--work-dir",
        dest="work_dir",
        type=str,
        help="Parent work directory used to resolve payload paths (default: current directory)",
    )
    argument_parser.add_argument("--org", dest="org", type=str, help="Organization of the parent execution")
    argument_parser.add_argument("--event", dest="event", type=str, help="Resume event name for `resume`")
    argument_parser.add_argument(
        "--defaults",
        dest="defaults",
        type=Path,
        help="JSON file holding process-level job defaults (overrides JOB_DEFAULTS_PATH)",
    )
    return argument_parser


def main_load_params(argument_parser: argparse.ArgumentParser, params_path: Path | None) -> dict[str, Any]:
    """Load the entry operation parameters from a JSON file.

    Args:
        argument_parser: Parser used to report invalid input.
        params_path: Optional JSON file path.

    Returns:
        dict[str, Any]: Parameter mapping, empty when no file was given.

    Raises:
        SystemExit: Raised through `argument_parser.error` when the file is unreadable or not a JSON object.
    """

    if params_path is None:
        return {}
    try:
        params = json.loads(params_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as error:
        argument_parser.error(f"cannot read --params file {params_path}: {error}")
    if not isinstance(params, dict):
        argument_parser.error(f"--params file {params_path} must hold a JSON object")
    return params


def main_print_result(execution_result: JobExecutionResult) -> None:
    """Print an execution result as JSON to stdout."""

    print(json.dumps(execution_result.result_to_payload(), indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
