import logging
import re
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from .client import TestLabClient
from .config import Settings
from .errors import ProtocolError
from .models import ExecutionRecord, ResultLocation, StepOutcome, StepReport, TestMatrix
from .schemas import AggregateOutcome, DeviceSummary

logger = logging.getLogger(__name__)

NO_TEST_CASES = "❓ No test cases ❓"

_FRACTION_RE = re.compile(r"\.(\d+)")


def _minutes_seconds(seconds: int) -> str:
    return f"{seconds // 60} min {seconds % 60} sec"


def format_started_at(timestamp: Optional[str]) -> Optional[str]:
    """Render an RFC 3339 timestamp as 'HH:MM UTC'."""
    if not timestamp:
        return None
    normalized = timestamp.replace("Z", "+00:00")
    # fromisoformat accepts at most microseconds
    normalized = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), normalized, count=1)
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        logger.warning(f"Could not parse matrix timestamp {timestamp!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime("%H:%M UTC")


def require_result_location(matrix: TestMatrix) -> ResultLocation:
    if not matrix.has_tool_results_execution or not matrix.result_storage_path:
        raise ProtocolError("Unexpected response from Firebase Test Lab: Cannot retrieve result info")
    if matrix.result_location is None:
        raise ProtocolError("Unexpected response from Firebase Test Lab: No history or execution ID")
    return matrix.result_location


def summarize_executions(executions: Iterable[ExecutionRecord]) -> Tuple[bool, int]:
    """Return (all executions completed, number of unfinished executions)."""
    failures = 0
    for execution in executions:
        info = f"{execution.execution_id}: {execution.state}"
        if execution.finished:
            logger.info(info)
        else:
            failures += 1
            logger.error(info)
        for msg in execution.progress_messages:
            logger.info(msg)

    if failures > 0:
        logger.error(f"{failures} execution(s) have failed to complete.")
    else:
        logger.info("All jobs have ran and completed.")
    return failures == 0, failures


def summarize_step(report: StepReport, include_passed_cases: bool = False,
                   details_link: Optional[str] = None) -> DeviceSummary:
    step = report.step
    total = 0
    passed = 0
    case_lines: List[str] = []

    if report.test_cases is None:
        case_lines.append(NO_TEST_CASES)
    else:
        for case in report.test_cases:
            if case.passed:
                total += 1
                passed += 1
                if include_passed_cases:
                    case_lines.append(f"✅ {case.name}")
            elif not case.skipped:
                total += 1
                case_lines.append(f"🔥 {case.name}")

    tests_run = f"Tests run: {passed}/{total}"
    if total == 0:
        percentage = None
        run_line = f"❓ {tests_run}, no test cases."
    else:
        percentage = passed * 100 // total
        if passed == total:
            run_line = f"✅ {tests_run}, *{percentage}% success*."
        else:
            run_line = f"⚠️ {tests_run}, *{percentage}% success*."

    timing = (f"⏳ Test: {_minutes_seconds(step.test_process_seconds)} "
              f"⌛️ Total: {_minutes_seconds(step.run_duration_seconds)}.")
    summary = f"{run_line}\n{timing}\n" + "".join(line + "\n" for line in case_lines)

    return DeviceSummary(
        device=step.device,
        step_id=step.step_id,
        outcome=step.outcome,
        total_tests=total,
        passed_tests=passed,
        percentage=percentage,
        summary=summary,
        details_link=details_link,
    )


def build_outcome(matrix_id: str, executions_completed: bool, devices: List[DeviceSummary],
                  console_link: Optional[str] = None, started_at: Optional[str] = None,
                  unfinished_executions: int = 0) -> AggregateOutcome:
    failures = sum(1 for d in devices if d.outcome == StepOutcome.FAILURE)
    inconclusive = sum(1 for d in devices if d.outcome == StepOutcome.INCONCLUSIVE)

    if failures == 0 and inconclusive == 0:
        logger.info("All executions are completed successfully!")
    if failures > 0:
        logger.error(f"{failures} step(s) have failed.")
    if inconclusive > 0:
        logger.error(f"{inconclusive} step(s) yielded inconclusive outcomes.")

    return AggregateOutcome(
        matrix_id=matrix_id,
        success=executions_completed and failures == 0 and inconclusive == 0,
        executions_completed=executions_completed,
        unfinished_executions=unfinished_executions,
        failures=failures,
        inconclusive=inconclusive,
        devices=devices,
        console_link=console_link,
        started_at=started_at,
    )


class ResultAggregator:
    """Folds a finished matrix's executions, steps and test cases into one outcome."""

    def __init__(self, client: TestLabClient, project: str, settings: Optional[Settings] = None,
                 include_passed_cases: bool = False):
        self.client = client
        self.project = project
        self.settings = settings or client.settings
        self.include_passed_cases = include_passed_cases

    def collect_reports(self, location: ResultLocation) -> List[StepReport]:
        steps = self.client.list_steps(self.project, location.history_id, location.execution_id)
        reports = []
        for step in steps:
            cases = self.client.list_test_cases(
                self.project, location.history_id, location.execution_id, step.step_id)
            reports.append(StepReport(step=step, test_cases=cases))
        return reports

    def step_link(self, location: ResultLocation, step_id: str) -> str:
        base = self.settings.console_link(self.project, location.history_id, location.execution_id)
        return f"{base}/executions/{step_id}"

    def aggregate(self, matrix: TestMatrix, console_link: Optional[str] = None) -> AggregateOutcome:
        location = require_result_location(matrix)
        if console_link is None:
            console_link = self.settings.console_link(self.project, location.history_id, location.execution_id)

        logger.info("Test job(s) are finalized")
        executions_completed, unfinished = summarize_executions(matrix.executions)

        devices = []
        for report in self.collect_reports(location):
            summary = summarize_step(report, self.include_passed_cases,
                                     self.step_link(location, report.step.step_id))
            logger.info(f"Test step {summary.step_id} on {summary.device}: {summary.outcome.value}")
            devices.append(summary)

        return build_outcome(
            matrix_id=matrix.matrix_id,
            executions_completed=executions_completed,
            unfinished_executions=unfinished,
            devices=devices,
            console_link=console_link,
            started_at=format_started_at(matrix.timestamp),
        )
