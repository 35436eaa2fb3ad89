import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .errors import ConfigurationError

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level=None):
    logging.basicConfig(
        level=level or os.getenv("LOG_LEVEL", "INFO"),
        format=LOG_FORMAT,
    )


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'")
    if not value > 0:
        raise ConfigurationError(f"{name} must be greater than zero, got '{raw}'")
    return value


@dataclass(frozen=True)
class Settings:
    testing_endpoint: str = "https://testing.googleapis.com"
    toolresults_endpoint: str = "https://www.googleapis.com"
    storage_endpoint: str = "https://storage.googleapis.com"
    console_host: str = "https://console.firebase.google.com"
    request_timeout: float = 15.0
    connect_timeout: float = 5.0
    poll_interval: float = 15.0

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        defaults = cls()
        return cls(
            testing_endpoint=os.getenv("FTLJOB_TESTING_ENDPOINT", defaults.testing_endpoint).rstrip("/"),
            toolresults_endpoint=os.getenv("FTLJOB_TOOLRESULTS_ENDPOINT", defaults.toolresults_endpoint).rstrip("/"),
            storage_endpoint=os.getenv("FTLJOB_STORAGE_ENDPOINT", defaults.storage_endpoint).rstrip("/"),
            console_host=os.getenv("FTLJOB_CONSOLE_HOST", defaults.console_host).rstrip("/"),
            request_timeout=_float_env("FTLJOB_REQUEST_TIMEOUT", defaults.request_timeout),
            connect_timeout=_float_env("FTLJOB_CONNECT_TIMEOUT", defaults.connect_timeout),
            poll_interval=_float_env("FTLJOB_POLL_INTERVAL", defaults.poll_interval),
        )

    @property
    def timeouts(self):
        return (self.connect_timeout, self.request_timeout)

    def console_link(self, project: str, history_id: str, execution_id: str) -> str:
        return (f"{self.console_host}/project/{project}/testlab/"
                f"histories/{history_id}/matrices/{execution_id}")
