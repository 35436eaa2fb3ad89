"""
Shared fixtures for the ftljob test suite.

Every Google API is replaced by FakeSession so the tests never touch the network.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pytest

from ftljob.config import Settings
from ftljob.models import TestMatrix


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None,
                 content: bytes = b"", stream_error: Optional[Exception] = None):
        self.status_code = status_code
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text
        self.content = content
        self.stream_error = stream_error
        self.closed = False

    def json(self):
        return json.loads(self.text)

    def iter_content(self, chunk_size=1):
        yield self.content
        if self.stream_error is not None:
            raise self.stream_error

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


@dataclass
class Call:
    method: str
    url: str
    timeout: Any
    kwargs: Dict[str, Any] = field(default_factory=dict)


class FakeSession:
    """Routes requests by method and URL substring; the longest matching path wins."""

    def __init__(self):
        self.routes: List[list] = []
        self.calls: List[Call] = []

    def add(self, method: str, path: str, *responses):
        self.routes.append([method, path, list(responses)])
        return self

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append(Call(method, url, timeout, kwargs))
        matches = [r for r in self.routes if r[0] == method and r[1] in url]
        if not matches:
            raise AssertionError(f"unexpected request {method} {url}")
        route = max(matches, key=lambda r: len(r[1]))
        responses = route[2]
        response = responses.pop(0) if len(responses) > 1 else responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    def calls_to(self, fragment: str) -> List[Call]:
        return [c for c in self.calls if fragment in c.url]


def matrix_json(state: str = "RUNNING", history_id: Optional[str] = None, execution_id: Optional[str] = None,
                executions=None, gcs_path: Optional[str] = "gs://bucket/run", invalid_details=None,
                timestamp: str = "2024-03-01T09:41:27.123456789Z") -> Dict[str, Any]:
    data: Dict[str, Any] = {"testMatrixId": "matrix-1", "state": state, "timestamp": timestamp}
    storage: Dict[str, Any] = {}
    if gcs_path:
        storage["googleCloudStorage"] = {"gcsPath": gcs_path}
    if history_id or execution_id:
        tool_results = {}
        if history_id:
            tool_results["historyId"] = history_id
        if execution_id:
            tool_results["executionId"] = execution_id
        storage["toolResultsExecution"] = tool_results
    if storage:
        data["resultStorage"] = storage
    if executions is not None:
        data["testExecutions"] = executions
    if invalid_details:
        data["invalidMatrixDetails"] = invalid_details
    return data


def make_matrix(*args, **kwargs) -> TestMatrix:
    return TestMatrix.from_json(matrix_json(*args, **kwargs))


def step_json(step_id: str, dimensions, outcome: str = "success", process_seconds="75",
              run_seconds="130") -> Dict[str, Any]:
    return {
        "stepId": step_id,
        "dimensionValue": [{"key": k, "value": v} for k, v in dimensions],
        "outcome": {"summary": outcome},
        "testExecutionStep": {"testTiming": {"testProcessDuration": {"seconds": process_seconds}}},
        "runDuration": {"seconds": run_seconds},
    }


def case_json(name: str, status: Optional[str] = None) -> Dict[str, Any]:
    case: Dict[str, Any] = {"testCaseReference": {"name": name}}
    if status is not None:
        case["status"] = status
    return case


@pytest.fixture
def settings():
    return Settings(
        testing_endpoint="https://testing.example",
        toolresults_endpoint="https://toolresults.example",
        storage_endpoint="https://storage.example",
        console_host="https://console.example",
        poll_interval=15.0,
    )


@pytest.fixture
def session():
    return FakeSession()
