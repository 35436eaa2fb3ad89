import pytest

from ftljob.config import Settings
from ftljob.errors import ConfigurationError


def test_defaults_without_environment(monkeypatch):
    for name in ("FTLJOB_REQUEST_TIMEOUT", "FTLJOB_CONNECT_TIMEOUT", "FTLJOB_POLL_INTERVAL"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings.from_env()
    assert settings.timeouts == (5.0, 15.0)
    assert settings.poll_interval == 15.0


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("FTLJOB_POLL_INTERVAL", "2.5")
    monkeypatch.setenv("FTLJOB_TESTING_ENDPOINT", "https://testing.example/")
    settings = Settings.from_env()
    assert settings.poll_interval == 2.5
    assert settings.testing_endpoint == "https://testing.example"


@pytest.mark.parametrize("name", ["FTLJOB_REQUEST_TIMEOUT", "FTLJOB_CONNECT_TIMEOUT", "FTLJOB_POLL_INTERVAL"])
@pytest.mark.parametrize("value", ["0", "-1", "soon"])
def test_timings_must_be_positive_numbers(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigurationError, match=name):
        Settings.from_env()
