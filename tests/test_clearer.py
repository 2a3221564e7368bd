"""
Tests for the batch clearer.
"""
from unittest.mock import MagicMock

import pytest

from cellar_deploy.clearer import BucketClearer
from cellar_deploy.errors import ClearError
from cellar_deploy.models import ListingPage, RemoteObjectRef

from conftest import FakeGateway, TEST_BUCKET, bucket_keys, output_of


def test_empty_bucket_is_already_empty(fake_gateway, reporter):
    """Test that an empty bucket needs one listing and no deletes."""
    summary = BucketClearer(fake_gateway, reporter).clear()

    assert summary.already_empty
    assert summary.deleted == 0
    assert fake_gateway.list_calls == [0]
    assert fake_gateway.delete_calls == []
    assert "already empty" in output_of(reporter)


def test_clear_2500_objects_in_three_batches(reporter):
    """Test paging: 1000 + 1000 + 500 with the short page ending the pass."""
    gateway = FakeGateway(keys=[f"obj/{i:05d}" for i in range(2500)])

    summary = BucketClearer(gateway, reporter, batch_size=1000).clear()

    assert gateway.list_calls == [1000, 1000, 500]
    assert len(gateway.delete_calls) == 2500
    assert len(set(gateway.delete_calls)) == 2500
    assert gateway.objects == {}
    assert summary.deleted == 2500
    assert summary.failed == 0
    assert summary.batches == 3
    assert "All objects deleted! Total: 2500 files" in output_of(reporter)


def test_exact_page_multiple_ends_on_empty_listing(reporter):
    gateway = FakeGateway(keys=[f"k{i}" for i in range(20)])

    summary = BucketClearer(gateway, reporter, batch_size=10).clear()

    assert gateway.list_calls == [10, 10, 0]
    assert summary.deleted == 20


def test_store_truncation_flag_keeps_short_pages_going(reporter):
    """Test that a short page flagged as truncated is not treated as the last one."""
    gateway = MagicMock()
    gateway.bucket_name = TEST_BUCKET
    gateway.list_objects.side_effect = [
        ListingPage([RemoteObjectRef("a"), RemoteObjectRef("b")], is_truncated=True),
        ListingPage([RemoteObjectRef("c")], is_truncated=False),
    ]
    gateway.delete_object.return_value = True

    summary = BucketClearer(gateway, reporter, batch_size=10).clear()

    assert gateway.list_objects.call_count == 2
    assert summary.deleted == 3


def test_delete_failure_is_counted_not_fatal(reporter):
    """Test that one failed delete does not abort the batch."""
    gateway = FakeGateway(keys=["a", "b", "c", "d"])
    gateway.failing_deletes = {"b"}

    summary = BucketClearer(gateway, reporter, batch_size=10).clear()

    assert summary.deleted == 3
    assert summary.failed == 1
    assert summary.failed_keys == ["b"]
    assert summary.has_errors
    assert sorted(gateway.objects) == ["b"]
    assert "completed with errors" in output_of(reporter)


def test_failed_keys_are_not_retried(reporter):
    """Test that a key failing in one batch is skipped when listed again."""
    gateway = FakeGateway(keys=[f"k{i}" for i in range(6)])
    gateway.failing_deletes = {"k0"}

    summary = BucketClearer(gateway, reporter, batch_size=3).clear()

    assert gateway.delete_calls.count("k0") == 1
    assert summary.deleted == 5
    assert summary.failed == 1


def test_full_page_of_failed_keys_raises(reporter):
    gateway = FakeGateway(keys=["a", "b", "c"])
    gateway.failing_deletes = {"a", "b"}

    with pytest.raises(ClearError):
        BucketClearer(gateway, reporter, batch_size=2).clear()


def test_listing_failure_is_fatal(reporter):
    """Test that an unexpected error aborts the pass and propagates."""
    gateway = MagicMock()
    gateway.list_objects.side_effect = RuntimeError("listing broke")

    with pytest.raises(RuntimeError, match="listing broke"):
        BucketClearer(gateway, reporter).clear()

    assert "failed" in output_of(reporter)


def test_clear_with_moto(gateway, mock_aws, reporter):
    """Test clearing a real (mocked) bucket across several pages."""
    for i in range(25):
        mock_aws.put_object(Bucket=TEST_BUCKET, Key=f"dir/{i}.txt", Body=b"x")

    summary = BucketClearer(gateway, reporter, batch_size=10).clear()

    assert summary.deleted == 25
    assert bucket_keys(mock_aws) == []


def test_invalid_batch_size(fake_gateway):
    with pytest.raises(ValueError):
        BucketClearer(fake_gateway, batch_size=0)
