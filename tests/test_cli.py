import json
from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner

from ftljob import cli as cli_module
from ftljob.cli import EXIT_FATAL, EXIT_TESTS_FAILED, cli, parse_key_values
from ftljob.errors import ConfigurationError, TransportError, UnknownMatrixStateError
from ftljob.models import StepOutcome
from ftljob.schemas import AggregateOutcome, DeviceSummary

from conftest import make_matrix

RUN_ARGS = [
    "run", "--project", "my-project", "--app", "gs://bucket/bundle.zip",
    "--device", "model=iphone13pro,version=15.2", "--no-download",
]


def _outcome(success=True):
    device = DeviceSummary(
        device="iphone13pro 15.2", step_id="s1",
        outcome=StepOutcome.SUCCESS if success else StepOutcome.FAILURE,
        total_tests=5, passed_tests=5 if success else 4, percentage=100 if success else 80,
        summary="✅ Tests run: 5/5, *100% success*.\n" if success else "⚠️ Tests run: 4/5, *80% success*.\n",
    )
    return AggregateOutcome(matrix_id="matrix-1", success=success, failures=0 if success else 1,
                            devices=[device], started_at="09:41 UTC")


@pytest.fixture
def runner_mock(monkeypatch):
    runner = MagicMock()
    built = {}

    def fake_build(key_file, requests_timeout):
        built["key_file"] = key_file
        return runner

    monkeypatch.setattr(cli_module, "_build_runner", fake_build)
    runner.built = built
    return runner


def test_parse_key_values():
    assert parse_key_values(["model=Pixel2, version=28"], "device") == [{"model": "Pixel2", "version": "28"}]
    with pytest.raises(ConfigurationError):
        parse_key_values(["Pixel2"], "device")


def test_run_success_exits_zero(runner_mock):
    runner_mock.run.return_value = _outcome(True)

    result = CliRunner().invoke(cli, RUN_ARGS)

    assert result.exit_code == 0, result.output
    assert "100% success" in result.output
    request = runner_mock.run.call_args[0][0]
    assert request.devices[0].model == "iphone13pro"
    assert request.devices[0].locale == "en_US"
    assert request.download_results is False


def test_run_test_failure_exits_one(runner_mock, tmp_path):
    runner_mock.run.return_value = _outcome(False)
    summary_path = tmp_path / "summary.json"

    result = CliRunner().invoke(cli, RUN_ARGS + ["--summary-json", str(summary_path)])

    assert result.exit_code == EXIT_TESTS_FAILED
    assert "1 step(s) have failed" in result.output
    summary = json.loads(summary_path.read_text(encoding="utf-8"))
    assert "80% success" in summary["iphone13pro 15.2"]
    assert summary["Time started"] == "09:41 UTC"


def test_run_fatal_error_uses_distinct_exit_code(runner_mock):
    runner_mock.run.side_effect = UnknownMatrixStateError("INFEASIBLE")

    result = CliRunner().invoke(cli, RUN_ARGS)

    assert result.exit_code == EXIT_FATAL
    assert EXIT_FATAL != EXIT_TESTS_FAILED
    assert "INFEASIBLE" in result.output


def test_run_invalid_device_is_fatal_before_submission(runner_mock):
    args = ["run", "--project", "my-project", "--app", "gs://bucket/bundle.zip", "--device", "version=15.2"]

    result = CliRunner().invoke(cli, args)

    assert result.exit_code == EXIT_FATAL
    runner_mock.run.assert_not_called()


def test_run_async_reports_submission(runner_mock):
    runner_mock.run.return_value = AggregateOutcome(matrix_id="matrix-1", success=True, finished=False)

    result = CliRunner().invoke(cli, RUN_ARGS + ["--async"])

    assert result.exit_code == 0
    assert "submitted" in result.output
    assert runner_mock.run.call_args[0][0].async_mode is True


def test_wait_resumes_existing_matrix(runner_mock):
    runner_mock.resume.return_value = _outcome(True)

    result = CliRunner().invoke(cli, ["wait", "--project", "my-project", "--matrix-id", "matrix-1",
                                      "--deadline", "600"])

    assert result.exit_code == 0, result.output
    args, kwargs = runner_mock.resume.call_args
    assert args == ("my-project", "matrix-1")
    assert kwargs["deadline_sec"] == 600


def test_status_prints_state_and_console_link(monkeypatch):
    client = MagicMock()
    client.get_matrix.return_value = make_matrix("RUNNING", "h1", "x1")
    monkeypatch.setattr(cli_module, "authorized_session", lambda key_file: object())
    monkeypatch.setattr(cli_module, "TestLabClient", lambda session, settings: client)

    result = CliRunner().invoke(cli, ["status", "--project", "my-project", "--matrix-id", "matrix-1"])

    assert result.exit_code == 0, result.output
    assert "RUNNING" in result.output
    assert "/project/my-project/testlab/histories/h1/matrices/x1" in result.output
    client.get_matrix.assert_called_once_with("my-project", "matrix-1")


def test_incomplete_executions_report_count(runner_mock):
    runner_mock.run.return_value = AggregateOutcome(matrix_id="matrix-1", success=False,
                                                    executions_completed=False, unfinished_executions=2)

    result = CliRunner().invoke(cli, RUN_ARGS)

    assert result.exit_code == EXIT_TESTS_FAILED
    assert "2 execution(s) have failed to complete." in result.output


def test_transport_failure_exits_fatal(runner_mock):
    runner_mock.run.side_effect = TransportError("Network error when submitting the test matrix, type: RefreshError")

    result = CliRunner().invoke(cli, RUN_ARGS)

    assert result.exit_code == EXIT_FATAL
