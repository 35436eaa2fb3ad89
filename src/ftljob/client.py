import logging
from typing import Any, Dict, List, Optional

import requests
from google.auth.exceptions import GoogleAuthError

from .config import Settings
from .errors import ProtocolError, TransportError
from .messages import summarize_google_error
from .models import StepResult, TestCaseResult, TestMatrix

logger = logging.getLogger(__name__)

TOOLRESULTS_GET_SETTINGS_API_V3 = "/toolresults/v1beta3/projects/{project}/settings"
TOOLRESULTS_INITIALIZE_SETTINGS_API_V3 = "/toolresults/v1beta3/projects/{project}:initializeSettings"
TOOLRESULTS_EXECUTION_API_V3 = "/toolresults/v1beta3/projects/{project}/histories/{history_id}/executions/{execution_id}"
TOOLRESULTS_LIST_STEPS_API_V3 = TOOLRESULTS_EXECUTION_API_V3 + "/steps"
TOOLRESULTS_LIST_TEST_CASES_API_V3 = TOOLRESULTS_LIST_STEPS_API_V3 + "/{step_id}/testCases"

FTL_CREATE_API = "/v1/projects/{project}/testMatrices"
FTL_RESULTS_API = "/v1/projects/{project}/testMatrices/{matrix}"

TEST_CASES_PAGE_SIZE = 200


class TestLabClient:
    """Thin request/response wrapper around the Test Lab and Tool Results APIs.

    Every call is a single attempt. Transport failures and non-200 responses
    raise fatal errors; polling and retry policy belong to the caller.
    """

    __test__ = False

    def __init__(self, session: requests.Session, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or Settings()
        self._default_bucket: Optional[str] = None

    def _request(self, method: str, url: str, action: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(method, url, timeout=self.settings.timeouts, **kwargs)
        except (requests.exceptions.RequestException, GoogleAuthError) as e:
            logger.error(f"Network error when {action}: {e}")
            raise TransportError(
                f"Network error when {action}, type: {type(e).__name__}, message: {e}"
            ) from e

    def _json(self, resp: requests.Response, failure: str) -> Dict[str, Any]:
        if resp.status_code != 200:
            summarized = summarize_google_error(resp.text)
            logger.error(f"{failure} (HTTP {resp.status_code}): {summarized}")
            raise ProtocolError(f"{failure}: {summarized}")
        try:
            return resp.json()
        except ValueError as e:
            raise ProtocolError(f"{failure}: response is not valid JSON") from e

    def _toolresults(self, path: str) -> str:
        return self.settings.toolresults_endpoint + path

    def _testing(self, path: str) -> str:
        return self.settings.testing_endpoint + path

    def initialize_settings(self, project: str) -> None:
        url = self._toolresults(TOOLRESULTS_INITIALIZE_SETTINGS_API_V3.format(project=project))
        self._request("POST", url, "initializing Firebase Test Lab")

    def resolve_default_bucket(self, project: str) -> str:
        if self._default_bucket is not None:
            return self._default_bucket

        self.initialize_settings(project)
        url = self._toolresults(TOOLRESULTS_GET_SETTINGS_API_V3.format(project=project))
        resp = self._request("GET", url, "obtaining Firebase Test Lab default GCS bucket")

        if resp.status_code != 200:
            summarized = summarize_google_error(resp.text)
            message = f"Failed to obtain default bucket for Firebase Test Lab: {summarized}"
            if "Not Authorized for project" in summarized:
                message += (
                    ". Please make sure that the account associated with your Google credential is the "
                    "project editor or owner. You can do this at the Google Developer Console "
                    f"https://console.cloud.google.com/iam-admin/iam?project={project}"
                )
            logger.error(message)
            raise ProtocolError(message)

        bucket = self._json(resp, "Failed to obtain default bucket for Firebase Test Lab").get("defaultBucket")
        if not bucket:
            raise ProtocolError("Tool Results settings did not include a default bucket")
        self._default_bucket = bucket
        logger.info(f"Default result bucket for {project}: {bucket}")
        return bucket

    def submit_job(self, project: str, payload: Dict[str, Any]) -> str:
        url = self._testing(FTL_CREATE_API.format(project=project))
        resp = self._request(
            "POST", url, "submitting the test matrix",
            json=payload,
            headers={"X-Goog-User-Project": project},
        )
        result = self._json(resp, "Failed to start Firebase Test Lab jobs")
        matrix_id = result.get("testMatrixId")
        if not matrix_id:
            raise ProtocolError("No matrix ID received.")
        logger.info(f"Submitted test matrix {matrix_id}")
        return matrix_id

    def get_matrix(self, project: str, matrix_id: str) -> TestMatrix:
        url = self._testing(FTL_RESULTS_API.format(project=project, matrix=matrix_id))
        resp = self._request("GET", url, "attempting to get test results")
        data = self._json(resp, "Failed to obtain test results")
        data.setdefault("testMatrixId", matrix_id)
        return TestMatrix.from_json(data)

    def _paginate(self, url: str, action: str, key: str,
                  params: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
        """Collect `key` across pages; None when no page carried the key at all."""
        items: Optional[List[Dict[str, Any]]] = None
        params = dict(params)
        while True:
            resp = self._request("GET", url, action, params=dict(params))
            page = self._json(resp, "Failed to obtain the metadata of test artifacts")
            if key in page:
                items = (items or []) + list(page[key] or [])
            token = page.get("nextPageToken")
            if not token:
                return items
            params["pageToken"] = token

    def list_steps(self, project: str, history_id: str, execution_id: str) -> List[StepResult]:
        url = self._toolresults(TOOLRESULTS_LIST_STEPS_API_V3.format(
            project=project, history_id=history_id, execution_id=execution_id))
        steps = self._paginate(url, "obtaining the metadata of test artifacts", "steps", {})
        return [StepResult.from_json(step) for step in steps or []]

    def list_test_cases(self, project: str, history_id: str, execution_id: str, step_id: str,
                        page_size: int = TEST_CASES_PAGE_SIZE) -> Optional[List[TestCaseResult]]:
        """Return the step's test cases, or None when the response has no testCases field."""
        url = self._toolresults(TOOLRESULTS_LIST_TEST_CASES_API_V3.format(
            project=project, history_id=history_id, execution_id=execution_id, step_id=step_id))
        cases = self._paginate(url, "obtaining test cases", "testCases", {"pageSize": page_size})
        if cases is None:
            return None
        return [TestCaseResult.from_json(case) for case in cases]
