"""
Module containing data models for the deployer.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from .errors import ConfigurationError

CELLAR_ENDPOINT = "https://cellar-c2.services.clever-cloud.com"
CELLAR_HOSTNAME = "cellar-c2.services.clever-cloud.com"
DEFAULT_REGION = "us-east-1"
DEFAULT_WORKERS = 16
BATCH_DELETE_SIZE = 1000


@dataclass(frozen=True)
class SyncConfig:
    """Credentials and targets for one deployment run."""
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    local_folder_path: Path
    worker_count: int = DEFAULT_WORKERS
    endpoint_url: Optional[str] = CELLAR_ENDPOINT
    region: str = DEFAULT_REGION

    def __post_init__(self):
        """Validate the configuration."""
        if not self.access_key_id:
            raise ConfigurationError("access_key_id cannot be empty")
        if not self.secret_access_key:
            raise ConfigurationError("secret_access_key cannot be empty")
        if not self.bucket_name:
            raise ConfigurationError("bucket_name cannot be empty")
        if not isinstance(self.worker_count, int) or self.worker_count < 1:
            raise ConfigurationError(f"worker_count must be a positive integer, got {self.worker_count!r}")
        folder = Path(self.local_folder_path)
        if not folder.exists():
            raise ConfigurationError(f"Folder {folder} does not exist")
        if not folder.is_dir():
            raise ConfigurationError(f"{folder} is not a directory")
        object.__setattr__(self, 'local_folder_path', folder)


@dataclass(frozen=True)
class RemoteObjectRef:
    """An object key found in the bucket."""
    key: str


@dataclass(frozen=True)
class ListingPage:
    """One page of a bucket listing.

    ``is_truncated`` is a continuation hint, not a cursor.
    """
    objects: List[RemoteObjectRef]
    is_truncated: bool = False

    def __len__(self) -> int:
        return len(self.objects)


@dataclass(frozen=True)
class UploadTask:
    """A local file and the key it is uploaded to."""
    local_path: Path
    key: str

    def __post_init__(self):
        if not self.key:
            raise ValueError(f"Empty key for {self.local_path}")


@dataclass
class UploadResult:
    """Represents the result of a single file upload."""
    file_path: Path
    key: str
    success: bool
    error: Optional[str] = None
    size_bytes: Optional[int] = None
    content_type: Optional[str] = None


@dataclass
class UploadSummary:
    """Represents a summary of an upload pass."""
    total_files: int
    successful_uploads: int
    failed_uploads: int
    elapsed_seconds: float
    rate: float
    results: List[UploadResult] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return self.failed_uploads > 0

    @property
    def failed_results(self) -> List[UploadResult]:
        return [r for r in self.results if not r.success]


@dataclass
class ClearSummary:
    """Represents a summary of a clear pass."""
    deleted: int
    failed: int
    batches: int
    elapsed_seconds: float
    rate: float
    failed_keys: List[str] = field(default_factory=list)

    @property
    def already_empty(self) -> bool:
        return self.batches == 0

    @property
    def has_errors(self) -> bool:
        return self.failed > 0


class BucketStatus(Enum):
    """Outcome of a bucket accessibility check."""
    ACCESSIBLE = "accessible"
    NOT_FOUND = "not_found"
    INVALID_ACCESS_KEY = "invalid_access_key"
    INVALID_SECRET = "invalid_secret"
    ACCESS_FAILED = "access_failed"


class DeployState(Enum):
    """Stages of a deployment run."""
    INIT = "init"
    BUCKET_CHECK = "bucket_check"
    CREATE_BUCKET = "create_bucket"
    CLEAR = "clear"
    UPLOAD = "upload"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class DeployResult:
    """Represents the outcome of a full deployment."""
    bucket_name: str
    state: DeployState
    clear_summary: Optional[ClearSummary] = None
    upload_summary: Optional[UploadSummary] = None
    bucket_created: bool = False

    @property
    def site_url(self) -> str:
        return f"https://{self.bucket_name}"


@dataclass
class DnsCheckResult:
    """Represents the result of a CNAME check for a domain."""
    domain: str
    success: bool
    cname_target: Optional[str] = None
    error: Optional[str] = None
    details: Optional[str] = None
