"""
Command-line interface for the deployer.
"""
import argparse
import getpass
import json
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Optional

from .coordinator import DeployCoordinator
from .dns_check import check_cname, display_dns_result, validate_subdomain
from .errors import CellarDeployError, ConfigurationError
from .models import CELLAR_ENDPOINT, DEFAULT_REGION, DEFAULT_WORKERS, SyncConfig
from .tracker import ConsoleReporter, DeploymentLog

logger = logging.getLogger(__name__)

ACCESS_KEY_ENV = "CELLAR_ADDON_KEY_ID"
SECRET_KEY_ENV = "CELLAR_ADDON_KEY_SECRET"

EPILOG = f"""
Environment Variables:
  {ACCESS_KEY_ENV}      Cellar Access Key ID
  {SECRET_KEY_ENV}  Cellar Secret Access Key

Examples:
  cellar-deploy deploy
  cellar-deploy deploy --domain www.example.com --path ./dist
  cellar-deploy deploy -k ACCESS_KEY_ID -d www.example.com -p ./dist -w 32
  cellar-deploy check-dns www.example.com

Options that are not provided are prompted for interactively.
"""


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Args:
        verbose: Whether to enable debug logging
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    if not verbose:
        # botocore is chatty at INFO
        logging.getLogger('botocore').setLevel(logging.WARNING)


def load_config(config_file: Optional[Path] = None) -> dict:
    """Load configuration from a JSON file.

    Args:
        config_file: Path to config file

    Returns:
        Dictionary of configuration values

    Raises:
        ConfigurationError: If the file cannot be read or parsed
    """
    if not config_file:
        return {}

    try:
        with open(config_file) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Error loading config file {config_file}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_file} must contain a JSON object")
    return data


def _required(label: str) -> Callable[[str], Optional[str]]:
    def check(value: str) -> Optional[str]:
        return None if value.strip() else f"{label} is required"
    return check


def _directory(value: str) -> Optional[str]:
    if not value.strip():
        return "Folder path is required"
    path = Path(value.strip()).expanduser()
    if not path.exists():
        return "Directory does not exist"
    if not path.is_dir():
        return "Path must be a directory"
    return None


def prompt(message: str, validate: Callable[[str], Optional[str]],
           secret: bool = False) -> str:
    """Ask for a value until it passes validation.

    Args:
        message: Prompt shown to the user
        validate: Returns an error message for invalid input, None otherwise
        secret: Hide the typed value

    Returns:
        The validated, stripped answer
    """
    while True:
        answer = getpass.getpass(message) if secret else input(message)
        if (error := validate(answer)) is None:
            return answer.strip()
        print(f">> {error}")


def parse_workers(value) -> int:
    try:
        workers = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid worker count: {value!r}")
    if workers < 1:
        raise ConfigurationError(f"Worker count must be positive, got {workers}")
    return workers


def build_sync_config(args: argparse.Namespace, config: Optional[dict] = None,
                      environ: Optional[dict] = None) -> SyncConfig:
    """Assemble the sync configuration from flags, environment, config file and prompts.

    Args:
        args: Parsed ``deploy`` arguments
        config: Values loaded from the config file
        environ: Environment mapping, ``os.environ`` by default

    Returns:
        Validated SyncConfig
    """
    config = config or {}
    environ = os.environ if environ is None else environ

    access_key = args.access_key or environ.get(ACCESS_KEY_ENV)
    if not access_key:
        access_key = prompt("Enter your Cellar Access Key ID: ", _required("Access Key ID"))

    secret_key = environ.get(SECRET_KEY_ENV)
    if not secret_key:
        secret_key = prompt("Enter your Cellar Secret Access Key: ",
                            _required("Secret Access Key"), secret=True)

    bucket = args.domain or prompt("Enter the domain (bucket name): ", _required("Domain"))
    folder = args.path or prompt("Enter the folder path to upload: ", _directory)

    workers = args.workers if args.workers is not None else config.get('workers', DEFAULT_WORKERS)

    return SyncConfig(
        access_key_id=access_key.strip(),
        secret_access_key=secret_key.strip(),
        bucket_name=bucket.strip(),
        local_folder_path=Path(folder).expanduser(),
        worker_count=parse_workers(workers),
        endpoint_url=args.endpoint or config.get('endpoint', CELLAR_ENDPOINT),
        region=config.get('region', DEFAULT_REGION)
    )


def handle_deploy(args: argparse.Namespace) -> int:
    """Handle the deploy command.

    Args:
        args: Command line arguments

    Returns:
        Process exit code
    """
    reporter = ConsoleReporter()
    reporter.line("Cellar Static Deployer")
    reporter.line("=" * 26)
    reporter.line()

    file_config = load_config(args.config)
    sync_config = build_sync_config(args, file_config)

    reporter.line("Configuration:")
    reporter.line(f"   Workers: {sync_config.worker_count}")
    reporter.line(f"   Domain: {sync_config.bucket_name}")
    reporter.line(f"   Endpoint: {sync_config.endpoint_url}")
    reporter.line(f"   Folder: {sync_config.local_folder_path}")
    reporter.line()

    log_dir = args.log_dir or file_config.get('log_dir')
    coordinator = DeployCoordinator(
        sync_config,
        reporter=reporter,
        deployment_log=DeploymentLog(Path(log_dir)) if log_dir else None
    )

    try:
        result = coordinator.run()
    except CellarDeployError:
        reporter.line()
        reporter.line("Deployment aborted")
        raise

    reporter.line()
    if result.upload_summary and result.upload_summary.has_errors:
        reporter.line(
            f"Deployment finished with {result.upload_summary.failed_uploads} failed uploads."
        )
    else:
        reporter.line("Deployment completed successfully!")
    reporter.line(f"Your site should be available at: {result.site_url}")
    return 0


def handle_check_dns(args: argparse.Namespace) -> int:
    """Handle the check-dns command.

    Args:
        args: Command line arguments

    Returns:
        0 when the CNAME is valid, 1 otherwise
    """
    domain = args.domain or prompt("Enter the domain to check: ", validate_subdomain)
    reporter = ConsoleReporter()
    reporter.line(f"Checking DNS CNAME record for {domain}...")
    result = check_cname(domain)
    display_dns_result(result, reporter)
    return 0 if result.success else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cellar-deploy",
        description="Deploy static files to Clever Cloud Cellar (S3-compatible storage)",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help="Enable verbose logging")
    parser.add_argument('-c', '--config', type=Path,
                        help="Path to JSON config file")

    subparsers = parser.add_subparsers(dest='command', required=True)

    # Deploy command
    deploy_parser = subparsers.add_parser('deploy',
                                          help="Clear the bucket and upload a folder")
    deploy_parser.add_argument('-k', '--access-key', type=str,
                               help=f"Cellar Access Key ID (or use {ACCESS_KEY_ENV})")
    deploy_parser.add_argument('-d', '--domain', type=str,
                               help="Domain (bucket name)")
    deploy_parser.add_argument('-p', '--path', type=str,
                               help="Folder path to upload")
    deploy_parser.add_argument('-w', '--workers', type=str, default=None,
                               help=f"Number of parallel upload workers (default: {DEFAULT_WORKERS})")
    deploy_parser.add_argument('-e', '--endpoint', type=str,
                               help=f"S3 endpoint URL (default: {CELLAR_ENDPOINT})")
    deploy_parser.add_argument('-l', '--log-dir', type=Path,
                               help="Directory for JSON deployment logs")

    # Check DNS command
    dns_parser = subparsers.add_parser('check-dns',
                                       help="Check the CNAME record of a domain")
    dns_parser.add_argument('domain', nargs='?', type=str,
                            help="Domain to check")

    return parser


def main(argv: Optional[list] = None) -> None:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        if args.command == 'deploy':
            code = handle_deploy(args)
        else:
            code = handle_check_dns(args)

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)

    except CellarDeployError as e:
        logger.debug("Fatal error", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(code)


if __name__ == '__main__':
    main()
