import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .client import TestLabClient
from .config import Settings
from .errors import JobFailedError, PollCancelledError, PollTimeoutError, UnknownMatrixStateError
from .messages import ERROR_STATE_TO_MESSAGE, INVALID_MATRIX_DETAIL_TO_MESSAGE
from .models import MatrixState, TestMatrix

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollResult:
    matrix: TestMatrix
    console_link: Optional[str]
    polls: int

    @property
    def finished(self) -> bool:
        return self.matrix.state == MatrixState.FINISHED


class StatusPoller:
    """Polls a test matrix until it is finished, failed, or (in async mode) traceable.

    The interval is a constant pause that begins after each fetch returns.
    """

    def __init__(self, client: TestLabClient, project: str, settings: Optional[Settings] = None,
                 on_console_link: Optional[Callable[[str], None]] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.client = client
        self.project = project
        self.settings = settings or client.settings
        self.on_console_link = on_console_link
        self.sleep = sleep
        self.clock = clock

    def _raise_for_error_state(self, matrix: TestMatrix):
        message = ERROR_STATE_TO_MESSAGE[matrix.state.value]
        detail_message = None
        if matrix.invalid_matrix_details:
            detail_message = INVALID_MATRIX_DETAIL_TO_MESSAGE.get(matrix.invalid_matrix_details)
            logger.error(f"Matrix {matrix.matrix_id} invalid details: {matrix.invalid_matrix_details}")
        logger.error(f"Matrix {matrix.matrix_id} ended in {matrix.raw_state}: {message}")
        raise JobFailedError(matrix.raw_state, message, detail_message)

    def _wait(self, cancel_event: Optional[threading.Event]):
        if cancel_event is None:
            self.sleep(self.settings.poll_interval)
        elif cancel_event.wait(self.settings.poll_interval):
            raise PollCancelledError("Polling was cancelled before the test matrix finished")

    def poll(self, matrix_id: str, async_mode: bool = False, deadline_sec: Optional[float] = None,
             cancel_event: Optional[threading.Event] = None) -> PollResult:
        started = self.clock()
        console_link = None
        polls = 0

        while True:
            matrix = self.client.get_matrix(self.project, matrix_id)
            polls += 1
            logger.debug(f"Matrix {matrix_id} poll {polls}: {matrix.raw_state}")

            if console_link is None and matrix.result_location is not None:
                location = matrix.result_location
                console_link = self.settings.console_link(self.project, location.history_id, location.execution_id)
                logger.info(f"Console link for matrix {matrix_id}: {console_link}")
                if self.on_console_link:
                    self.on_console_link(console_link)
                if async_mode:
                    return PollResult(matrix=matrix, console_link=console_link, polls=polls)

            state = matrix.state
            if state.is_error:
                self._raise_for_error_state(matrix)
            if state == MatrixState.FINISHED:
                logger.info(f"Matrix {matrix_id} finished after {polls} poll(s)")
                return PollResult(matrix=matrix, console_link=console_link, polls=polls)
            if not state.is_in_flight:
                logger.error(f"Matrix {matrix_id} is in an unrecognized state {matrix.raw_state}")
                raise UnknownMatrixStateError(matrix.raw_state)

            if cancel_event is not None and cancel_event.is_set():
                raise PollCancelledError("Polling was cancelled before the test matrix finished")
            if deadline_sec is not None and self.clock() - started >= deadline_sec:
                raise PollTimeoutError(
                    f"Test matrix {matrix_id} still {matrix.raw_state} after {deadline_sec:.0f}s"
                )
            self._wait(cancel_event)
