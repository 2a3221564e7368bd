from .clearer import BucketClearer
from .coordinator import DeployCoordinator
from .dns_check import check_cname
from .gateway import CellarGateway, create_gateway_client
from .models import SyncConfig, UploadResult, UploadSummary, ClearSummary, DeployResult
from .scanner import FileScanner
from .tracker import ConsoleReporter, ProgressCounters
from .uploader import UploadScheduler

__version__ = "0.1.0"

__all__ = [
    "BucketClearer",
    "DeployCoordinator",
    "check_cname",
    "CellarGateway",
    "create_gateway_client",
    "SyncConfig",
    "UploadResult",
    "UploadSummary",
    "ClearSummary",
    "DeployResult",
    "FileScanner",
    "ConsoleReporter",
    "ProgressCounters",
    "UploadScheduler",
]
