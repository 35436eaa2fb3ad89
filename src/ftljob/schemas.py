from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ConfigurationError
from .models import Platform, StepOutcome

DEFAULT_LOCALE = "en_US"
DEFAULT_ORIENTATION = "portrait"


class DeviceDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    model: str
    version: str
    locale: str = DEFAULT_LOCALE
    orientation: str = DEFAULT_ORIENTATION

    @field_validator("model", "version")
    @classmethod
    def required_non_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("locale", "orientation", mode="before")
    @classmethod
    def default_when_missing(cls, value, info):
        if value is None or value == "":
            return DEFAULT_LOCALE if info.field_name == "locale" else DEFAULT_ORIENTATION
        return value


class JobRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    project: str
    platform: Platform = Platform.IOS
    app_path: str
    test_app_path: Optional[str] = None
    devices: Tuple[DeviceDescriptor, ...]
    timeout_sec: int = 180
    disable_video_recording: bool = False
    disable_performance_metrics: bool = False
    retry_if_failed: bool = False
    async_mode: bool = False
    result_storage: Optional[str] = None
    xcode_version: Optional[str] = None
    android_test_targets: Tuple[str, ...] = ()
    client_info: Dict[str, str] = Field(default_factory=dict)
    skip_validation: bool = False
    download_results: bool = True
    download_file_list: Tuple[str, ...] = ()
    output_dir: str = "firebase"
    print_successful_tests: bool = False

    @field_validator("project")
    @classmethod
    def project_required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("GCP project must not be empty")
        return value

    @field_validator("devices")
    @classmethod
    def devices_required(cls, value):
        if not value:
            raise ValueError("Devices cannot be empty")
        return value

    @field_validator("timeout_sec")
    @classmethod
    def timeout_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Timeout must be more than zero")
        return value

    @field_validator("result_storage")
    @classmethod
    def result_storage_is_gcs(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.startswith("gs://"):
            raise ValueError(f"Invalid GCS path: '{value}'")
        return value

    @model_validator(mode="after")
    def android_needs_test_apk(self):
        if self.platform == Platform.ANDROID and not self.test_app_path:
            raise ValueError("Android runs require a test APK")
        return self

    @property
    def is_ios(self) -> bool:
        return self.platform == Platform.IOS


def parse_job_request(data: Dict[str, Any]) -> JobRequest:
    """Build a JobRequest, turning validation failures into configuration errors."""
    try:
        return JobRequest.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid job configuration: {problems}") from e


class DeviceSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    device: str
    step_id: str
    outcome: StepOutcome
    total_tests: int
    passed_tests: int
    percentage: Optional[int] = None
    summary: str
    details_link: Optional[str] = None


class AggregateOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    matrix_id: str
    success: bool
    executions_completed: bool = True
    unfinished_executions: int = 0
    failures: int = 0
    inconclusive: int = 0
    devices: List[DeviceSummary] = Field(default_factory=list)
    console_link: Optional[str] = None
    started_at: Optional[str] = None
    finished: bool = True

    def to_dict(self) -> Dict[str, str]:
        """Flatten to the device label -> summary mapping used by report sinks."""
        results: Dict[str, str] = {}
        for device in self.devices:
            label = device.device
            suffix = 2
            while label in results:
                label = f"{device.device} ({suffix})"
                suffix += 1
            results[label] = device.summary
        if self.started_at:
            results["Time started"] = self.started_at
        if self.console_link:
            results["Firebase Test Lab link"] = (
                f"Go to <{self.console_link}|Firebase console> for more information about this run"
            )
        return results
