from typing import Any, Dict, List

from . import __version__
from .errors import ConfigurationError
from .schemas import DeviceDescriptor, JobRequest

CLIENT_NAME = "ftljob"


def _ios_device(device: DeviceDescriptor) -> Dict[str, str]:
    return {
        "iosModelId": device.model,
        "iosVersionId": device.version,
        "locale": device.locale,
        "orientation": device.orientation,
    }


def _android_device(device: DeviceDescriptor) -> Dict[str, str]:
    return {
        "androidModelId": device.model,
        "androidVersionId": device.version,
        "locale": device.locale,
        "orientation": device.orientation,
    }


def _client_info(request: JobRequest) -> Dict[str, Any]:
    details = dict(request.client_info)
    details["version"] = __version__
    return {
        "name": CLIENT_NAME,
        "clientInfoDetails": [{"key": k, "value": str(v)} for k, v in details.items()],
    }


def _require_gcs(value, what: str) -> str:
    if not value or not value.startswith("gs://"):
        raise ConfigurationError(f"{what} must be uploaded to GCS before submitting, got '{value}'")
    return value


def build_payload(request: JobRequest) -> Dict[str, Any]:
    """Translate a staged JobRequest into a testMatrices.create body."""
    result_storage = _require_gcs(request.result_storage, "Result storage")

    test_specification: Dict[str, Any] = {
        "testTimeout": {"seconds": request.timeout_sec},
        "disableVideoRecording": request.disable_video_recording,
        "disablePerformanceMetrics": request.disable_performance_metrics,
    }

    if request.is_ios:
        xc_test: Dict[str, Any] = {"testsZip": {"gcsPath": _require_gcs(request.app_path, "iOS test bundle")}}
        if request.xcode_version:
            xc_test["xcodeVersion"] = request.xcode_version
        test_specification["iosTestSetup"] = {}
        test_specification["iosXcTest"] = xc_test
        environment_matrix = {
            "iosDeviceList": {"iosDevices": [_ios_device(d) for d in request.devices]}
        }
    else:
        instrumentation: Dict[str, Any] = {
            "appApk": {"gcsPath": _require_gcs(request.app_path, "App APK")},
            "testApk": {"gcsPath": _require_gcs(request.test_app_path, "Test APK")},
            "orchestratorOption": "USE_ORCHESTRATOR",
        }
        targets: List[str] = [t for t in request.android_test_targets if t]
        if targets:
            instrumentation["testTargets"] = targets
        test_specification["testSetup"] = {
            "environmentVariables": [{"key": "clearPackageData", "value": "true"}]
        }
        test_specification["androidInstrumentationTest"] = instrumentation
        environment_matrix = {
            "androidDeviceList": {"androidDevices": [_android_device(d) for d in request.devices]}
        }

    return {
        "projectId": request.project,
        "testSpecification": test_specification,
        "environmentMatrix": environment_matrix,
        "resultStorage": {"googleCloudStorage": {"gcsPath": result_storage}},
        "flakyTestAttempts": 1 if request.retry_if_failed else 0,
        "clientInfo": _client_info(request),
    }
