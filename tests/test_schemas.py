import pytest

from ftljob.errors import ConfigurationError
from ftljob.models import Platform, StepOutcome
from ftljob.schemas import AggregateOutcome, DeviceDescriptor, DeviceSummary, parse_job_request


def _request(**overrides):
    data = {
        "project": "my-project",
        "platform": "ios",
        "app_path": "gs://bucket/bundle.zip",
        "devices": [{"model": "iphone13pro", "version": "15.2"}],
    }
    data.update(overrides)
    return data


def test_device_defaults_locale_and_orientation():
    device = DeviceDescriptor(model="iphone13pro", version="15.2")
    assert device.locale == "en_US"
    assert device.orientation == "portrait"


def test_device_explicit_none_gets_defaults():
    device = DeviceDescriptor(model="Pixel2", version="28", locale=None, orientation="")
    assert device.locale == "en_US"
    assert device.orientation == "portrait"


def test_device_keeps_given_values():
    device = DeviceDescriptor(model="Pixel2", version="28", locale="de_DE", orientation="landscape")
    assert (device.locale, device.orientation) == ("de_DE", "landscape")


@pytest.mark.parametrize("device", [
    {"version": "15.2"},
    {"model": "iphone13pro"},
    {"model": "", "version": "15.2"},
    {"model": "iphone13pro", "version": "  "},
])
def test_missing_model_or_version_is_configuration_error(device):
    with pytest.raises(ConfigurationError):
        parse_job_request(_request(devices=[device]))


def test_empty_device_list_rejected():
    with pytest.raises(ConfigurationError, match="Devices cannot be empty"):
        parse_job_request(_request(devices=[]))


@pytest.mark.parametrize("timeout", [0, -5])
def test_non_positive_timeout_rejected(timeout):
    with pytest.raises(ConfigurationError, match="Timeout"):
        parse_job_request(_request(timeout_sec=timeout))


def test_result_storage_must_be_gcs():
    with pytest.raises(ConfigurationError, match="Invalid GCS path"):
        parse_job_request(_request(result_storage="s3://bucket/results"))


def test_android_requires_test_apk():
    with pytest.raises(ConfigurationError):
        parse_job_request(_request(platform="android", app_path="app.apk"))


def test_valid_request_is_frozen():
    request = parse_job_request(_request())
    assert request.platform == Platform.IOS
    assert request.devices[0].locale == "en_US"
    with pytest.raises(Exception):
        request.timeout_sec = 10


def _summary(device, text="ok"):
    return DeviceSummary(device=device, step_id="s", outcome=StepOutcome.SUCCESS,
                         total_tests=1, passed_tests=1, percentage=100, summary=text)


def test_outcome_to_dict_keeps_duplicate_labels_apart():
    outcome = AggregateOutcome(
        matrix_id="m", success=True,
        devices=[_summary("iphone 15.2", "first"), _summary("iphone 15.2", "second")],
        console_link="https://console.example/x",
        started_at="09:41 UTC",
    )
    result = outcome.to_dict()
    assert result["iphone 15.2"] == "first"
    assert result["iphone 15.2 (2)"] == "second"
    assert result["Time started"] == "09:41 UTC"
    assert "https://console.example/x" in result["Firebase Test Lab link"]
