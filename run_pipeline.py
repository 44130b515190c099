"""CLI entry point for the container pipeline."""

import argparse
import dataclasses
import json
import signal
import sys
import threading
from pathlib import Path

from dotenv import load_dotenv

from src.catalog import PIPELINES, available_pipelines, get_pipeline, load_pipeline_file
from src.logging_config import configure_logging
from src.orchestrator import OrchestratorConfig, PipelineOrchestrator
from src.pipeline import (
    EnvironmentUnavailableError,
    PipelineCancelledError,
    PipelineReport,
    PipelineValidationError,
    select_components,
)

EXIT_SUCCESS = 0
EXIT_TEST_FAILURE = 1
EXIT_INVALID = 2
EXIT_BUILD_FAILURE = 3
EXIT_ENVIRONMENT_UNAVAILABLE = 4
EXIT_CANCELLED = 130


def exit_code_for(report: PipelineReport) -> int:
    """Map a report to a process exit code. Build failures take precedence."""
    if report.build_failures:
        return EXIT_BUILD_FAILURE
    if not report.success:
        return EXIT_TEST_FAILURE
    return EXIT_SUCCESS


def print_summary(report: PipelineReport) -> None:
    print(f"\n--- Pipeline Summary: {report.pipeline} ---")
    for result in report.results:
        if result.passed:
            status = "PASSED"
        else:
            status = f"FAILED ({result.failure.value if result.failure else 'unknown'})"
        print(f"  {result.component}: {status} ({result.duration_seconds}s)")
        if result.error:
            print(f"    error: {result.error}")
        if result.output and not result.passed:
            print("    output:")
            for line in result.output.rstrip().splitlines():
                print(f"      {line}")

    overall = "SUCCESS" if report.success else "FAILURE"
    print(f"\nResult: {overall}")


def print_pipelines() -> None:
    for name in available_pipelines():
        components = ", ".join(d.name for d in get_pipeline(name))
        print(f"{name}: {components}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Build and smoke-test pipeline components in containers"
    )
    parser.add_argument(
        "target",
        nargs="?",
        default="smoke",
        help=f"Built-in pipeline to run: {', '.join(sorted(PIPELINES))} (default: smoke)",
    )
    parser.add_argument(
        "--file",
        metavar="PATH",
        help="Load the pipeline from a JSON definition file instead of a built-in target",
    )
    parser.add_argument(
        "--only",
        metavar="NAME",
        action="append",
        help="Run only the named component (repeatable)",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Maximum concurrent components (overrides PIPELINE_MAX_WORKERS)",
    )
    parser.add_argument(
        "--build-timeout",
        type=float,
        default=None,
        help="Seconds allowed per build (overrides PIPELINE_BUILD_TIMEOUT)",
    )
    parser.add_argument(
        "--test-timeout",
        type=float,
        default=None,
        help="Seconds allowed per smoke test (overrides PIPELINE_TEST_TIMEOUT)",
    )
    parser.add_argument(
        "--probe-timeout",
        type=float,
        default=None,
        help="Seconds a service has to become ready (overrides PIPELINE_PROBE_TIMEOUT)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON instead of a text summary",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List built-in pipelines and their components, then exit",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Set logging level (overrides LOG_LEVEL env var)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()

    args = build_parser().parse_args(argv)
    configure_logging(level_override=args.log_level)

    if args.list:
        print_pipelines()
        return EXIT_SUCCESS

    overrides = {
        "max_workers": args.max_workers,
        "build_timeout": args.build_timeout,
        "test_timeout": args.test_timeout,
        "probe_timeout": args.probe_timeout,
    }
    try:
        config = OrchestratorConfig.from_env()
        config = dataclasses.replace(
            config, **{k: v for k, v in overrides.items() if v is not None}
        )
        if args.file:
            name, descriptors = load_pipeline_file(Path(args.file))
        else:
            name, descriptors = args.target, get_pipeline(args.target)
        descriptors = select_components(descriptors, args.only)
    except (PipelineValidationError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_INVALID

    # Ctrl-C cancels the run instead of killing worker threads mid-build
    cancel_event = threading.Event()
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: cancel_event.set())

    orchestrator = PipelineOrchestrator(config=config)
    try:
        report = orchestrator.run(descriptors, pipeline_name=name, cancel_event=cancel_event)
    except PipelineValidationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_INVALID
    except EnvironmentUnavailableError as e:
        print(f"ERROR: execution environment unavailable: {e}", file=sys.stderr)
        return EXIT_ENVIRONMENT_UNAVAILABLE
    except PipelineCancelledError:
        print("Pipeline cancelled", file=sys.stderr)
        return EXIT_CANCELLED
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print_summary(report)
    return exit_code_for(report)


if __name__ == "__main__":
    sys.exit(main())
