import time
import uuid
from enum import Enum
from typing import List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field

from describer.exceptions import ConfigurationError
from describer.prompts import DEFAULT_PROMPT

DEFAULT_BASE_URL = "https://api.aihubmix.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"


def new_id() -> str:
    return uuid.uuid4().hex


class ResultStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    PROVIDER = "provider"


class WorkItem(BaseModel):
    id: str = Field(default_factory=new_id)
    image_url: Optional[str] = None
    image_data: Optional[bytes] = None
    file_name: Optional[str] = None
    note: str = ""

    @property
    def image_reference(self):
        """The URL if one was given, else the raw bytes, else None."""
        if self.image_url:
            return self.image_url
        if self.image_data:
            return self.image_data
        return None

    @property
    def display_name(self) -> str:
        if self.file_name:
            return self.file_name
        if self.image_url and not self.image_url.startswith("data:"):
            name = urlparse(self.image_url).path.rsplit("/", 1)[-1]
            if name:
                return name
        return "image.jpg"


class ResultRecord(BaseModel):
    id: str
    display_name: str
    image_url: str = ""
    status: ResultStatus = ResultStatus.PENDING
    output: Optional[str] = None
    failure_message: Optional[str] = None
    progress: int = 0

    @classmethod
    def for_item(cls, item: WorkItem) -> "ResultRecord":
        image_url = item.image_url or ""
        if image_url.startswith("data:"):
            image_url = ""
        return cls(id=item.id, display_name=item.display_name, image_url=image_url)

    def mark_processing(self):
        self.status = ResultStatus.PROCESSING
        self.output = None
        self.failure_message = None
        self.progress = 0

    def mark_completed(self, text: str):
        self.status = ResultStatus.COMPLETED
        self.output = text
        self.failure_message = None
        self.progress = 100

    def mark_failed(self, message: str):
        self.status = ResultStatus.FAILED
        self.output = None
        self.failure_message = message
        self.progress = 100


class GenerationOutcome(BaseModel):
    succeeded: bool
    text: str = ""
    error_detail: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def success(cls, text: str) -> "GenerationOutcome":
        return cls(succeeded=True, text=text)

    @classmethod
    def failure(cls, detail: str, kind: ErrorKind) -> "GenerationOutcome":
        return cls(succeeded=False, error_detail=detail, error_kind=kind)


class Credentials(BaseModel):
    api_key: str = ""
    base_url: str = ""

    def validate_config(self):
        """Raise ConfigurationError unless both fields are set and the URL is http(s)."""
        if not self.api_key or not self.base_url:
            raise ConfigurationError("Please configure the API key and service URL first")
        scheme = urlparse(self.base_url).scheme
        if scheme not in ("http", "https"):
            raise ConfigurationError(f"Service URL must use http or https, got {self.base_url!r}")


class Settings(BaseModel):
    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    prompt: str = DEFAULT_PROMPT
    use_mock: bool = False

    @property
    def credentials(self) -> Credentials:
        return Credentials(api_key=self.api_key, base_url=self.base_url)


class RunConfig(BaseModel):
    """Model, prompt and credentials a batch was started with; reused by retries."""
    model: str
    prompt: str
    credentials: Credentials


class HistoryEntry(BaseModel):
    id: str = Field(default_factory=new_id)
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))
    note: str
    model: str
    prompt: str
    result: str


# ---------------------------------------------------------------------------
# Service API payloads
# ---------------------------------------------------------------------------

class ServiceStatus(str, Enum):
    OK = "OK"
    BUSY = "busy"
    SERVICE_UNAVAILABLE = "service_unavailable"


class BatchItemIn(BaseModel):
    image_url: str = ""
    note: str = ""
    file_name: Optional[str] = None


class BatchRequest(BaseModel):
    items: List[BatchItemIn]


class DescribeRequest(BaseModel):
    image_url: Optional[str] = None
    image_base64: Optional[str] = None
    note: str = ""


class StatusCounts(BaseModel):
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0


class BatchSnapshot(BaseModel):
    status: ServiceStatus = ServiceStatus.OK
    running: bool = False
    counts: StatusCounts = StatusCounts()
    results: List[ResultRecord] = []


class SettingsUpdate(BaseModel):
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model: Optional[str] = None
    prompt: Optional[str] = None
    use_mock: Optional[bool] = None
