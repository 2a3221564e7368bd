"""
Module for sequencing a deployment: bucket check, clear, upload.
"""
import logging
from typing import Optional

from .clearer import BucketClearer
from .errors import DeployAborted
from .gateway import CellarGateway, create_gateway_client
from .models import BucketStatus, DeployResult, DeployState, SyncConfig
from .tracker import ConsoleReporter, DeploymentLog
from .uploader import UploadScheduler

logger = logging.getLogger(__name__)

CONSOLE_URL = "https://console.clever-cloud.com/"

_STATUS_MESSAGES = {
    BucketStatus.INVALID_ACCESS_KEY: ("invalid access key", "Please check your access key credentials."),
    BucketStatus.INVALID_SECRET: ("invalid secret key", "Please check your secret key credentials."),
}


class DeployCoordinator:
    """Runs one clear-then-upload deployment of a folder to a bucket."""

    def __init__(self, config: SyncConfig,
                 gateway: Optional[CellarGateway] = None,
                 reporter: Optional[ConsoleReporter] = None,
                 deployment_log: Optional[DeploymentLog] = None):
        """Initialize the coordinator.

        Args:
            config: Sync configuration for this run
            gateway: Store gateway, built from ``config`` when omitted
            reporter: Console writer shared by every phase
            deployment_log: Optional JSON log of finished runs
        """
        self.config = config
        self.gateway = gateway or create_gateway_client(config)
        self.reporter = reporter or ConsoleReporter()
        self.deployment_log = deployment_log
        self.state = DeployState.INIT

    def _transition(self, state: DeployState) -> None:
        logger.debug(f"Deployment state {self.state.value} -> {state.value}")
        self.state = state

    def _abort(self, message: str, cause: Optional[BaseException] = None) -> DeployAborted:
        failed_state = self.state
        self._transition(DeployState.ABORTED)
        logger.error(f"Deployment aborted during {failed_state.value}: {message}")
        return DeployAborted(failed_state, message, cause)

    def show_manual_bucket_instructions(self) -> None:
        name = self.config.bucket_name
        self.reporter.line()
        self.reporter.line("Manual Setup Required:")
        self.reporter.line(f"   Please create the bucket '{name}' manually:")
        self.reporter.line(f"   1. Go to {CONSOLE_URL}")
        self.reporter.line("   2. Navigate to your Cellar addon")
        self.reporter.line(f"   3. Create a new bucket: {name}")
        self.reporter.line("   4. Then run this tool again")

    def ensure_bucket(self) -> bool:
        """Make sure the bucket exists, creating it when it is missing.

        Returns:
            True if the bucket had to be created

        Raises:
            DeployAborted: If the bucket is unusable or cannot be created
        """
        name = self.config.bucket_name
        self._transition(DeployState.BUCKET_CHECK)
        self.reporter.write(f"Checking bucket '{name}'... ")
        status = self.gateway.check_bucket()

        if status is BucketStatus.ACCESSIBLE:
            self.reporter.line("exists and accessible")
            return False

        if status is BucketStatus.NOT_FOUND:
            self.reporter.line("not found")
            self._transition(DeployState.CREATE_BUCKET)
            self.reporter.write(f"Creating bucket '{name}'... ")
            if self.gateway.create_bucket(name):
                self.reporter.line("created successfully")
                return True
            self.reporter.line("creation failed")
            self.show_manual_bucket_instructions()
            raise self._abort(f"Could not create bucket {name}")

        if status in _STATUS_MESSAGES:
            short, hint = _STATUS_MESSAGES[status]
            self.reporter.line(short)
            self.reporter.error(f"   {hint}")
            raise self._abort(f"Bucket {name} rejected the credentials: {short}")

        self.reporter.line("access failed")
        self.reporter.line("   This could be due to:")
        self.reporter.line("   - Invalid credentials")
        self.reporter.line("   - Network connectivity issues")
        self.reporter.line("   - Bucket access permissions")
        raise self._abort(f"Bucket {name} is not accessible")

    def run(self) -> DeployResult:
        """Run the deployment.

        Returns:
            DeployResult in the done state

        Raises:
            DeployAborted: On any fatal failure
        """
        result = DeployResult(bucket_name=self.config.bucket_name, state=self.state)
        logger.info(
            f"Deploying {self.config.local_folder_path} to {self.config.bucket_name} "
            f"with {self.config.worker_count} workers"
        )

        try:
            result.bucket_created = self.ensure_bucket()

            self._transition(DeployState.CLEAR)
            self.reporter.line()
            try:
                result.clear_summary = BucketClearer(self.gateway, self.reporter).clear()
            except Exception as e:
                raise self._abort(f"Clearing bucket failed: {e}", e) from e

            self._transition(DeployState.UPLOAD)
            self.reporter.line()
            scheduler = UploadScheduler(
                self.gateway,
                self.reporter,
                worker_count=self.config.worker_count
            )
            try:
                result.upload_summary = scheduler.upload_folder(self.config.local_folder_path)
            except Exception as e:
                raise self._abort(f"Upload failed: {e}", e) from e

            self._transition(DeployState.DONE)
        finally:
            result.state = self.state
            if self.deployment_log:
                self._record(result)

        return result

    def _record(self, result: DeployResult) -> None:
        try:
            self.deployment_log.record(result)
        except OSError as e:
            logger.error(f"Error writing deployment log: {e}")
