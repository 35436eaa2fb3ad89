from typing import Optional


class FtlJobError(Exception):
    """Base class for every error raised by ftljob."""


class FatalError(FtlJobError):
    """Aborts the whole run. No partial result is returned."""

    exit_code = 2


class ConfigurationError(FatalError):
    pass


class TransportError(FatalError):
    pass


class ProtocolError(FatalError):
    pass


class JobFailedError(FatalError):
    def __init__(self, state: str, message: str, detail_message: Optional[str] = None):
        self.state = state
        self.message = message
        self.detail_message = detail_message
        super().__init__(message)

    def __str__(self):
        if self.detail_message:
            return f"{self.message} {self.detail_message}"
        return self.message


class UnknownMatrixStateError(FatalError):
    def __init__(self, raw_state: str):
        self.raw_state = raw_state
        super().__init__(
            f"The test execution is in an unknown state: {raw_state}. "
            "Please report this state to the ftljob maintainers so it can be handled."
        )


class PollTimeoutError(FatalError):
    pass


class PollCancelledError(FatalError):
    pass
