"""
Test fixtures for the deployer.
"""
import io
import threading
import time
from pathlib import Path

import boto3
import pytest
from moto import mock_aws as moto_mock_aws

from cellar_deploy.gateway import create_gateway_client
from cellar_deploy.models import BucketStatus, ListingPage, RemoteObjectRef, SyncConfig
from cellar_deploy.tracker import ConsoleReporter

TEST_BUCKET = "www.example.com"


class FakeGateway:
    """In-memory gateway recording every call made to it."""

    def __init__(self, keys=(), status=BucketStatus.ACCESSIBLE, bucket_name=TEST_BUCKET):
        self.bucket_name = bucket_name
        self.objects = {key: b"" for key in keys}
        self.status = status
        self.create_result = True
        self.failing_deletes = set()
        self.failing_puts = set()
        self.put_delay = 0.0
        self.list_calls = []
        self.delete_calls = []
        self.put_calls = []
        self.created = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def check_bucket(self):
        return self.status

    def bucket_accessible(self):
        return self.status is BucketStatus.ACCESSIBLE

    def create_bucket(self, name=None):
        self.created.append(name or self.bucket_name)
        if self.create_result:
            self.status = BucketStatus.ACCESSIBLE
        return self.create_result

    def list_objects(self, max_keys):
        with self._lock:
            keys = sorted(self.objects)[:max_keys]
            self.list_calls.append(len(keys))
        return ListingPage(
            objects=[RemoteObjectRef(key=k) for k in keys],
            is_truncated=len(keys) == max_keys
        )

    def delete_object(self, key):
        with self._lock:
            self.delete_calls.append(key)
            if key in self.failing_deletes:
                return False
            self.objects.pop(key, None)
            return True

    def put_object(self, key, body, content_type):
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.put_delay:
                time.sleep(self.put_delay)
            with self._lock:
                self.put_calls.append((key, content_type))
                if key in self.failing_puts:
                    raise OSError(f"simulated failure for {key}")
                self.objects[key] = body
        finally:
            with self._lock:
                self.in_flight -= 1


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Keep boto3 away from real credentials."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def site_dir(tmp_path):
    """Create a small static site."""
    root = tmp_path / "site"
    (root / "b").mkdir(parents=True)
    (root / "a.html").write_text("<html></html>")
    (root / "b" / "c.css").write_text("body {}")
    (root / "d.png").write_bytes(b"\x89PNG\r\n")
    return root


@pytest.fixture
def sync_config(site_dir):
    """Create a sync config pointing at the default AWS endpoint for moto."""
    return SyncConfig(
        access_key_id="testing",
        secret_access_key="testing",
        bucket_name=TEST_BUCKET,
        local_folder_path=site_dir,
        worker_count=2,
        endpoint_url=None
    )


@pytest.fixture
def mock_aws():
    """Mock S3 client using moto."""
    with moto_mock_aws():
        s3 = boto3.client('s3', region_name='us-east-1')
        s3.create_bucket(Bucket=TEST_BUCKET)
        yield s3


@pytest.fixture
def gateway(mock_aws, sync_config):
    """Create a gateway backed by moto."""
    return create_gateway_client(sync_config)


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def reporter():
    """Console reporter writing to in-memory streams."""
    return ConsoleReporter(stream=io.StringIO(), err_stream=io.StringIO())


def output_of(reporter):
    return reporter.stream.getvalue()


def bucket_keys(s3, bucket=TEST_BUCKET):
    keys = []
    paginator = s3.get_paginator('list_objects_v2')
    for page in paginator.paginate(Bucket=bucket):
        keys.extend(item['Key'] for item in page.get('Contents', []))
    return sorted(keys)


def write_files(root: Path, names):
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"content of {name}")
