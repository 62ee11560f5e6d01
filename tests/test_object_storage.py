from __future__ import annotations

import sys
from unittest.mock import MagicMock, patch

import pytest

from offer_checker.config import AppConfig
from offer_checker.object_storage import (
    LocalObjectStorage,
    S3ObjectStorage,
    create_object_storage,
    parse_storage_uri,
)


def test_local_storage_round_trips_bytes_and_writes_metadata(tmp_path):
    storage = LocalObjectStorage(root=str(tmp_path), bucket="offers")
    uri = storage.put_object(
        object_type="offers",
        object_id="offer_1",
        filename="my quote (final).pdf",
        content_bytes=b"%PDF",
        content_type="application/pdf",
    )
    assert uri == "object://local/offers/offers/offer_1/my_quote_final_.pdf"
    assert storage.get_object(storage_uri=uri) == b"%PDF"
    assert storage.filename_from_uri(uri) == "my_quote_final_.pdf"
    assert (tmp_path / "offers" / "offers" / "offer_1" / "my_quote_final_.pdf.meta.json").exists()


def test_local_storage_rejects_foreign_backend(tmp_path):
    storage = LocalObjectStorage(root=str(tmp_path), bucket="offers")
    with pytest.raises(ValueError, match="mismatch"):
        storage.get_object(storage_uri="object://s3/offers/offers/a.pdf")


def test_parse_storage_uri_rejects_garbage():
    with pytest.raises(ValueError):
        parse_storage_uri("https://example.com/a.pdf")


def test_s3_storage_puts_and_gets_via_boto3():
    fake_boto3 = MagicMock()
    fake_client = MagicMock()
    fake_boto3.session.Session.return_value.client.return_value = fake_client
    fake_client.get_object.return_value = {"Body": MagicMock(read=MagicMock(return_value=b"%PDF"))}

    with patch.dict(sys.modules, {"boto3": fake_boto3}):
        storage = S3ObjectStorage(bucket="offers", endpoint="http://localhost:9000", region="us-east-1")
        uri = storage.put_object(
            object_type="offers",
            object_id="offer_1",
            filename="a.pdf",
            content_bytes=b"%PDF",
            content_type="application/pdf",
        )
        assert storage.get_object(storage_uri=uri) == b"%PDF"

    assert uri == "object://s3/offers/offers/offer_1/a.pdf"
    put_kwargs = fake_client.put_object.call_args.kwargs
    assert put_kwargs["Bucket"] == "offers"
    assert put_kwargs["Key"] == "offers/offer_1/a.pdf"
    fake_client.get_object.assert_called_once_with(Bucket="offers", Key="offers/offer_1/a.pdf")


def test_create_object_storage_rejects_unknown_backend(tmp_path):
    with pytest.raises(RuntimeError, match="unsupported"):
        create_object_storage(AppConfig(object_storage_backend="ftp", object_storage_root=str(tmp_path)))


def test_local_storage_delete_removes_object_and_metadata(tmp_path):
    storage = LocalObjectStorage(root=str(tmp_path), bucket="offers")
    uri = storage.put_object(object_type="offers", object_id="offer_1", filename="a.pdf", content_bytes=b"%PDF")

    storage.delete_object(storage_uri=uri)
    storage.delete_object(storage_uri=uri)

    assert [path for path in tmp_path.rglob("*") if path.is_file()] == []


def test_s3_storage_delete_targets_object_key():
    fake_boto3 = MagicMock()
    fake_client = MagicMock()
    fake_boto3.session.Session.return_value.client.return_value = fake_client

    with patch.dict(sys.modules, {"boto3": fake_boto3}):
        storage = S3ObjectStorage(bucket="offers")
        storage.delete_object(storage_uri="object://s3/offers/offers/offer_1/a.pdf")

    fake_client.delete_object.assert_called_once_with(Bucket="offers", Key="offers/offer_1/a.pdf")
