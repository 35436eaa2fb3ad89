import json
import sys
from typing import Dict, List, Optional

import click

from .client import TestLabClient
from .config import Settings, configure_logging
from .credentials import authorized_session
from .errors import ConfigurationError, FatalError
from .models import Platform
from .schemas import AggregateOutcome, parse_job_request
from .storage import GcsBlobStore
from .runner import TestLabRunner

EXIT_TESTS_FAILED = 1
EXIT_FATAL = FatalError.exit_code


def parse_key_values(values, what: str) -> List[Dict[str, str]]:
    """Parse repeated 'k=v,k=v' options into dictionaries."""
    parsed = []
    for raw in values:
        entry = {}
        for part in raw.split(","):
            part = part.strip()
            if not part:
                continue
            key, sep, value = part.partition("=")
            if not sep or not key.strip():
                raise ConfigurationError(f"Invalid {what} '{raw}': expected key=value pairs")
            entry[key.strip()] = value.strip()
        parsed.append(entry)
    return parsed


def _echo_fatal(error: Exception):
    click.echo(click.style(f"✗ {error}", fg="red"), err=True)


def _console_link_printer(link: str):
    click.echo(f"Go to {click.style(link, fg='blue')} for more information about this run")


def _build_runner(key_file: Optional[str], requests_timeout: Optional[float]) -> TestLabRunner:
    settings = Settings.from_env()
    session = authorized_session(key_file)
    client = TestLabClient(session, settings)
    store = GcsBlobStore(session, settings, timeout=requests_timeout)
    return TestLabRunner(client, store, settings,
                         on_console_link=_console_link_printer,
                         on_message=click.echo)


def render_outcome(outcome: AggregateOutcome):
    if not outcome.finished:
        click.echo(click.style("✓ Job(s) have been submitted to Firebase Test Lab", fg="green"))
        return

    for device in outcome.devices:
        color = {"success": "green", "skipped": "yellow"}.get(device.outcome.value, "red")
        click.echo("-" * 25)
        click.echo(click.style(device.device or device.step_id, bold=True))
        click.echo(device.summary.rstrip("\n"))
        click.echo(f"Result: {click.style(device.outcome.value, fg=color)}")
        if device.details_link:
            click.echo(f"For details, go to {device.details_link}")
    click.echo("-" * 25)

    if outcome.started_at:
        click.echo(f"Time started: {outcome.started_at}")
    if not outcome.executions_completed:
        click.echo(click.style(
            f"✗ {outcome.unfinished_executions} execution(s) have failed to complete.", fg="red"))
    if outcome.failures:
        click.echo(click.style(f"✗ {outcome.failures} step(s) have failed.", fg="red"))
    if outcome.inconclusive:
        click.echo(click.style(f"✗ {outcome.inconclusive} step(s) yielded inconclusive outcomes.", fg="red"))
    if outcome.success:
        click.echo(click.style("✓ All executions are completed successfully!", fg="green"))


def _finish(outcome: AggregateOutcome, summary_json: Optional[str]):
    render_outcome(outcome)
    if summary_json:
        with open(summary_json, "w", encoding="utf-8") as f:
            json.dump(outcome.to_dict(), f, indent=2, ensure_ascii=False)
        click.echo(f"Summary written to {summary_json}")
    if not outcome.success:
        sys.exit(EXIT_TESTS_FAILED)


@click.group()
@click.option("--log-level", envvar="LOG_LEVEL", default="WARNING", help="Logging level")
def cli(log_level):
    """Run mobile tests on Firebase Test Lab and report one verdict"""
    configure_logging(log_level.upper())


@cli.command()
@click.option("--project", envvar="GOOGLE_CLOUD_PROJECT", required=True, help="Google Cloud project ID")
@click.option("--key-file", envvar="GOOGLE_APPLICATION_CREDENTIALS", help="Service account key file")
@click.option("--platform", default="ios", type=click.Choice([p.value for p in Platform]), help="Target platform")
@click.option("--app", "app_path", required=True, help="iOS test zip or Android app APK (local or gs://)")
@click.option("--test-app", "test_app_path", help="Android instrumentation test APK (local or gs://)")
@click.option("--device", "devices", multiple=True, required=True,
              help="Device as model=...,version=...[,locale=...][,orientation=...]")
@click.option("--timeout-sec", default=180, type=int, help="Seconds before tests are terminated")
@click.option("--async", "async_mode", is_flag=True, help="Do not wait for test results")
@click.option("--skip-validation", is_flag=True, help="Do not validate the app before uploading")
@click.option("--result-storage", help="gs:// path to store test results")
@click.option("--download/--no-download", "download_results", default=True, help="Download result artifacts")
@click.option("--download-file", "download_files", multiple=True,
              help="File to download from every device folder (repeatable)")
@click.option("--output-dir", default="firebase", help="Directory to save downloaded results")
@click.option("--xcode-version", help="Xcode version used by Test Lab")
@click.option("--test-target", "test_targets", multiple=True, help="Android test target filter (repeatable)")
@click.option("--client-info", "client_info", multiple=True, help="Extra client info as key=value")
@click.option("--retry-if-failed", is_flag=True, help="Rerun the test suite once when it fails")
@click.option("--print-successful-tests", is_flag=True, help="List passing test cases in the summary")
@click.option("--disable-video-recording", is_flag=True, help="Disable video recording")
@click.option("--disable-performance-metrics", is_flag=True, help="Disable performance metrics")
@click.option("--gcp-requests-timeout", type=float, help="Timeout in seconds for storage requests")
@click.option("--deadline", type=float, help="Give up waiting after this many seconds")
@click.option("--summary-json", help="Write the result summary to this JSON file")
def run(project, key_file, platform, app_path, test_app_path, devices, timeout_sec, async_mode, skip_validation,
        result_storage, download_results, download_files, output_dir, xcode_version, test_targets, client_info,
        retry_if_failed, print_successful_tests, disable_video_recording, disable_performance_metrics,
        gcp_requests_timeout, deadline, summary_json):
    """Submit a test matrix and wait for its verdict"""
    try:
        extra_info = {}
        for entry in parse_key_values(client_info, "client info"):
            extra_info.update(entry)
        request = parse_job_request({
            "project": project,
            "platform": platform,
            "app_path": app_path,
            "test_app_path": test_app_path,
            "devices": parse_key_values(devices, "device"),
            "timeout_sec": timeout_sec,
            "async_mode": async_mode,
            "skip_validation": skip_validation,
            "result_storage": result_storage,
            "download_results": download_results,
            "download_file_list": [name for raw in download_files for name in raw.split()],
            "output_dir": output_dir,
            "xcode_version": xcode_version,
            "android_test_targets": list(test_targets),
            "client_info": extra_info,
            "retry_if_failed": retry_if_failed,
            "print_successful_tests": print_successful_tests,
            "disable_video_recording": disable_video_recording,
            "disable_performance_metrics": disable_performance_metrics,
        })
        runner = _build_runner(key_file, gcp_requests_timeout)
        outcome = runner.run(request, deadline_sec=deadline)
    except FatalError as e:
        _echo_fatal(e)
        sys.exit(EXIT_FATAL)
    except KeyboardInterrupt:
        click.echo("\n✗ Run cancelled by user", err=True)
        sys.exit(EXIT_FATAL)

    _finish(outcome, summary_json)


@cli.command()
@click.option("--project", envvar="GOOGLE_CLOUD_PROJECT", required=True, help="Google Cloud project ID")
@click.option("--key-file", envvar="GOOGLE_APPLICATION_CREDENTIALS", help="Service account key file")
@click.option("--matrix-id", required=True, help="Test matrix ID to check")
@click.option("--verbose", "-v", is_flag=True, help="Show execution details")
def status(project, key_file, matrix_id, verbose):
    """Check the state of a test matrix"""
    try:
        settings = Settings.from_env()
        client = TestLabClient(authorized_session(key_file), settings)
        matrix = client.get_matrix(project, matrix_id)
    except FatalError as e:
        _echo_fatal(e)
        sys.exit(EXIT_FATAL)

    state_color = "green" if matrix.raw_state == "FINISHED" else (
        "blue" if matrix.state.is_in_flight else "red")
    click.echo(f"Matrix ID: {click.style(matrix_id, fg='blue')}")
    click.echo(f"State: {click.style(matrix.raw_state, fg=state_color)}")
    if matrix.invalid_matrix_details:
        click.echo(f"Invalid details: {matrix.invalid_matrix_details}")
    if matrix.result_location:
        location = matrix.result_location
        click.echo(f"Console: {settings.console_link(project, location.history_id, location.execution_id)}")
    if matrix.result_storage_path:
        click.echo(f"Results: {matrix.result_storage_path}")
    if verbose:
        for execution in matrix.executions:
            color = "green" if execution.finished else "yellow"
            click.echo(f"  {execution.execution_id}: {click.style(execution.state, fg=color)}")
            for msg in execution.progress_messages:
                click.echo(f"    {msg}")


@cli.command()
@click.option("--project", envvar="GOOGLE_CLOUD_PROJECT", required=True, help="Google Cloud project ID")
@click.option("--key-file", envvar="GOOGLE_APPLICATION_CREDENTIALS", help="Service account key file")
@click.option("--matrix-id", required=True, help="Test matrix ID to wait for")
@click.option("--print-successful-tests", is_flag=True, help="List passing test cases in the summary")
@click.option("--download/--no-download", "download_results", default=False, help="Download result artifacts")
@click.option("--download-file", "download_files", multiple=True,
              help="File to download from every device folder (repeatable)")
@click.option("--output-dir", default="firebase", help="Directory to save downloaded results")
@click.option("--deadline", type=float, help="Give up waiting after this many seconds")
@click.option("--summary-json", help="Write the result summary to this JSON file")
def wait(project, key_file, matrix_id, print_successful_tests, download_results, download_files, output_dir,
         deadline, summary_json):
    """Wait for a previously submitted matrix and report its verdict"""
    try:
        runner = _build_runner(key_file, None)
        outcome = runner.resume(
            project, matrix_id,
            print_successful_tests=print_successful_tests,
            download_results=download_results,
            output_dir=output_dir,
            download_file_list=[name for raw in download_files for name in raw.split()],
            deadline_sec=deadline,
        )
    except FatalError as e:
        _echo_fatal(e)
        sys.exit(EXIT_FATAL)
    except KeyboardInterrupt:
        click.echo("\n✗ Wait cancelled by user", err=True)
        sys.exit(EXIT_FATAL)

    _finish(outcome, summary_json)


def main():
    cli()


if __name__ == "__main__":
    main()
