import logging
import secrets
import threading
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from .aggregator import ResultAggregator, require_result_location
from .builder import build_payload
from .client import TestLabClient
from .config import Settings
from .downloader import ArtifactDownloader
from .poller import StatusPoller
from .schemas import AggregateOutcome, JobRequest
from .storage import GcsBlobStore
from .validators import validate_ios_app

logger = logging.getLogger(__name__)

DEFAULT_APP_BUNDLE_NAME = "bundle"
ANDROID_APP_NAME = "app-debug.apk"
ANDROID_TEST_APP_NAME = "app-debug-androidTest.apk"


def generate_directory_name(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"ftljob-{now.strftime('%Y%m%d-%H%M%SZ')}-{secrets.token_hex(3)}"


class TestLabRunner:
    """Submit a job, wait for it, and fold the results into one outcome."""

    __test__ = False

    def __init__(self, client: TestLabClient, store: GcsBlobStore, settings: Optional[Settings] = None,
                 on_console_link: Optional[Callable[[str], None]] = None,
                 on_message: Optional[Callable[[str], None]] = None,
                 poller_factory: Callable[..., StatusPoller] = StatusPoller):
        self.client = client
        self.store = store
        self.settings = settings or client.settings
        self.on_console_link = on_console_link
        self.on_message = on_message or (lambda msg: None)
        self.poller_factory = poller_factory

    def _upload(self, local_path: str, bucket: str, work_folder: str, name: str) -> str:
        if local_path.startswith("gs://"):
            return local_path
        return self.store.upload(local_path, f"gs://{bucket}/{work_folder}/{name}")

    def stage_artifacts(self, request: JobRequest, work_folder: str) -> JobRequest:
        """Upload local artifacts and fill in result storage, returning a new request."""
        updates = {}
        needs_upload = not request.app_path.startswith("gs://") or (
            not request.is_ios and not request.test_app_path.startswith("gs://"))

        if request.is_ios and needs_upload:
            if request.skip_validation:
                self.on_message("Skipping validation of app.")
            else:
                validate_ios_app(request.app_path)

        if needs_upload:
            self.on_message("Uploading the app(s) to GCS...")
            bucket = self.client.resolve_default_bucket(request.project)
            if request.is_ios:
                updates["app_path"] = self._upload(request.app_path, bucket, work_folder, DEFAULT_APP_BUNDLE_NAME)
            else:
                updates["app_path"] = self._upload(request.app_path, bucket, work_folder, ANDROID_APP_NAME)
                updates["test_app_path"] = self._upload(
                    request.test_app_path, bucket, work_folder, ANDROID_TEST_APP_NAME)

        if request.result_storage is None:
            bucket = self.client.resolve_default_bucket(request.project)
            updates["result_storage"] = f"gs://{bucket}/{work_folder}"

        return request.model_copy(update=updates) if updates else request

    def run(self, request: JobRequest, deadline_sec: Optional[float] = None,
            cancel_event: Optional[threading.Event] = None) -> AggregateOutcome:
        work_folder = generate_directory_name()
        staged = self.stage_artifacts(request, work_folder)
        self.on_message(f"Test Results bucket: {staged.result_storage}")

        self.on_message("Submitting job(s) to Firebase Test Lab")
        matrix_id = self.client.submit_job(staged.project, build_payload(staged))
        self.on_message(f"Matrix ID for this submission: {matrix_id}")

        return self.wait(staged, matrix_id, deadline_sec=deadline_sec, cancel_event=cancel_event)

    def wait(self, request: JobRequest, matrix_id: str, deadline_sec: Optional[float] = None,
             cancel_event: Optional[threading.Event] = None) -> AggregateOutcome:
        return self.resume(
            request.project, matrix_id,
            async_mode=request.async_mode,
            print_successful_tests=request.print_successful_tests,
            download_results=request.download_results,
            output_dir=request.output_dir,
            download_file_list=request.download_file_list,
            result_storage=request.result_storage,
            deadline_sec=deadline_sec,
            cancel_event=cancel_event,
        )

    def resume(self, project: str, matrix_id: str, async_mode: bool = False,
               print_successful_tests: bool = False, download_results: bool = False,
               output_dir: str = "firebase", download_file_list: Sequence[str] = (),
               result_storage: Optional[str] = None, deadline_sec: Optional[float] = None,
               cancel_event: Optional[threading.Event] = None) -> AggregateOutcome:
        """Poll an already submitted matrix and aggregate it once finished."""
        poller = self.poller_factory(self.client, project, self.settings, on_console_link=self.on_console_link)
        result = poller.poll(matrix_id, async_mode=async_mode, deadline_sec=deadline_sec, cancel_event=cancel_event)

        if async_mode and result.console_link is not None:
            self.on_message("Job(s) have been submitted to Firebase Test Lab")
            return AggregateOutcome(matrix_id=matrix_id, success=True, console_link=result.console_link,
                                    finished=False)

        matrix = result.matrix
        require_result_location(matrix)
        aggregator = ResultAggregator(self.client, project, self.settings,
                                      include_passed_cases=print_successful_tests)
        outcome = aggregator.aggregate(matrix, console_link=result.console_link)

        # Failing tests still get their artifacts downloaded
        if download_results:
            storage_path = result_storage or matrix.result_storage_path
            ArtifactDownloader(self.store).download(storage_path, output_dir, download_file_list)

        if outcome.success:
            logger.info(f"Matrix {matrix_id} passed on {len(outcome.devices)} device(s)")
        else:
            logger.warning(f"Matrix {matrix_id} did not pass: {outcome.failures} failed, "
                           f"{outcome.inconclusive} inconclusive step(s)")
        return outcome
