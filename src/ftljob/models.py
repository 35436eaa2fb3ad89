from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Platform(str, Enum):
    IOS = "ios"
    ANDROID = "android"


class MatrixState(str, Enum):
    VALIDATING = "VALIDATING"
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    FINISHED = "FINISHED"
    ERROR = "ERROR"
    UNSUPPORTED_ENVIRONMENT = "UNSUPPORTED_ENVIRONMENT"
    INCOMPATIBLE_ENVIRONMENT = "INCOMPATIBLE_ENVIRONMENT"
    INCOMPATIBLE_ARCHITECTURE = "INCOMPATIBLE_ARCHITECTURE"
    CANCELLED = "CANCELLED"
    INVALID = "INVALID"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN

    @property
    def is_in_flight(self) -> bool:
        return self in IN_FLIGHT_STATES

    @property
    def is_error(self) -> bool:
        return self in ERROR_STATES


IN_FLIGHT_STATES = frozenset({MatrixState.VALIDATING, MatrixState.PENDING, MatrixState.RUNNING})

ERROR_STATES = frozenset({
    MatrixState.ERROR,
    MatrixState.UNSUPPORTED_ENVIRONMENT,
    MatrixState.INCOMPATIBLE_ENVIRONMENT,
    MatrixState.INCOMPATIBLE_ARCHITECTURE,
    MatrixState.CANCELLED,
    MatrixState.INVALID,
})


class StepOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    INCONCLUSIVE = "inconclusive"
    SKIPPED = "skipped"
    UNSET = "unset"

    @classmethod
    def _missing_(cls, value):
        return cls.UNSET


def _seconds(duration: Optional[Dict[str, Any]]) -> int:
    # Duration protos serialize seconds as a string
    if not duration:
        return 0
    return int(duration.get("seconds") or 0)


@dataclass(frozen=True)
class ResultLocation:
    history_id: str
    execution_id: str


@dataclass(frozen=True)
class ExecutionRecord:
    execution_id: str
    state: str
    progress_messages: Tuple[str, ...] = ()

    @property
    def finished(self) -> bool:
        return self.state == MatrixState.FINISHED.value

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "ExecutionRecord":
        details = data.get("testDetails") or {}
        return cls(
            execution_id=str(data.get("id", "")),
            state=str(data.get("state", "")),
            progress_messages=tuple(details.get("progressMessages") or ()),
        )


@dataclass(frozen=True)
class TestMatrix:
    __test__ = False

    matrix_id: str
    state: MatrixState
    raw_state: str
    result_location: Optional[ResultLocation] = None
    result_storage_path: Optional[str] = None
    invalid_matrix_details: Optional[str] = None
    executions: Tuple[ExecutionRecord, ...] = ()
    timestamp: Optional[str] = None
    has_tool_results_execution: bool = False

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "TestMatrix":
        raw_state = str(data.get("state"))
        storage = data.get("resultStorage") or {}
        tool_results = storage.get("toolResultsExecution")

        location = None
        if tool_results:
            history_id = tool_results.get("historyId")
            execution_id = tool_results.get("executionId")
            if history_id and execution_id:
                location = ResultLocation(history_id=history_id, execution_id=execution_id)

        return cls(
            matrix_id=str(data.get("testMatrixId", "")),
            state=MatrixState(raw_state),
            raw_state=raw_state,
            result_location=location,
            result_storage_path=(storage.get("googleCloudStorage") or {}).get("gcsPath"),
            invalid_matrix_details=data.get("invalidMatrixDetails"),
            executions=tuple(ExecutionRecord.from_json(e) for e in data.get("testExecutions") or []),
            timestamp=data.get("timestamp"),
            has_tool_results_execution=tool_results is not None,
        )


@dataclass(frozen=True)
class TestCaseResult:
    __test__ = False

    name: str
    status: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.status is None

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "TestCaseResult":
        reference = data.get("testCaseReference") or {}
        return cls(name=str(reference.get("name", "")), status=data.get("status"))


@dataclass(frozen=True)
class StepResult:
    step_id: str
    dimension_values: Tuple[str, ...] = ()
    outcome: StepOutcome = StepOutcome.UNSET
    test_process_seconds: int = 0
    run_duration_seconds: int = 0

    @property
    def device(self) -> str:
        return " ".join(self.dimension_values).strip()

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "StepResult":
        timing = (data.get("testExecutionStep") or {}).get("testTiming") or {}
        return cls(
            step_id=str(data.get("stepId", "")),
            dimension_values=tuple(str(d.get("value", "")) for d in data.get("dimensionValue") or []),
            outcome=StepOutcome((data.get("outcome") or {}).get("summary")),
            test_process_seconds=_seconds(timing.get("testProcessDuration")),
            run_duration_seconds=_seconds(data.get("runDuration")),
        )


@dataclass
class StepReport:
    """A step paired with the test cases recorded for it."""

    step: StepResult
    test_cases: Optional[List[TestCaseResult]] = field(default=None)
