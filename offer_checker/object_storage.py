from __future__ import annotations

import json
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from offer_checker.config import AppConfig


def _now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


def _clean_segment(value: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", value.strip())
    return cleaned or "object"


def parse_storage_uri(uri: str) -> dict[str, str]:
    if not uri.startswith("object://"):
        raise ValueError("invalid storage uri")
    raw = uri[len("object://") :]
    parts = raw.split("/", 2)
    if len(parts) != 3:
        raise ValueError("invalid storage uri")
    return {"backend": parts[0], "bucket": parts[1], "key": parts[2]}


def build_key(*, object_type: str, object_id: str, filename: str) -> str:
    return f"{_clean_segment(object_type)}/{_clean_segment(object_id)}/{_clean_segment(filename)}"


class ObjectStorageBackend:
    """Staging area for uploaded vendor documents."""

    backend_name = "base"

    def put_object(
        self,
        *,
        object_type: str,
        object_id: str,
        filename: str,
        content_bytes: bytes,
        content_type: str | None = None,
    ) -> str:
        raise NotImplementedError

    def get_object(self, *, storage_uri: str) -> bytes:
        raise NotImplementedError

    def delete_object(self, *, storage_uri: str) -> None:
        raise NotImplementedError

    @staticmethod
    def filename_from_uri(storage_uri: str) -> str:
        return parse_storage_uri(storage_uri)["key"].rsplit("/", 1)[-1]


class LocalObjectStorage(ObjectStorageBackend):
    backend_name = "local"

    def __init__(self, *, root: str, bucket: str) -> None:
        self._bucket = bucket
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)

    def put_object(
        self,
        *,
        object_type: str,
        object_id: str,
        filename: str,
        content_bytes: bytes,
        content_type: str | None = None,
    ) -> str:
        key = build_key(object_type=object_type, object_id=object_id, filename=filename)
        path = self._root / self._bucket / key
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content_bytes)
        meta = {"content_type": content_type or "application/octet-stream", "created_at": _now_iso()}
        Path(f"{path}.meta.json").write_text(json.dumps(meta, ensure_ascii=True, sort_keys=True), encoding="utf-8")
        return f"object://{self.backend_name}/{self._bucket}/{key}"

    def get_object(self, *, storage_uri: str) -> bytes:
        path = self._path_for_uri(storage_uri)
        if not path.exists():
            raise FileNotFoundError(storage_uri)
        return path.read_bytes()

    def delete_object(self, *, storage_uri: str) -> None:
        path = self._path_for_uri(storage_uri)
        path.unlink(missing_ok=True)
        Path(f"{path}.meta.json").unlink(missing_ok=True)

    def reset(self) -> None:
        if not self._root.exists():
            return
        for path in sorted(self._root.rglob("*"), reverse=True):
            if path.is_file():
                path.unlink()
            elif path.is_dir():
                path.rmdir()

    def _path_for_uri(self, storage_uri: str) -> Path:
        parsed = parse_storage_uri(storage_uri)
        if parsed["backend"] != self.backend_name:
            raise ValueError("storage backend mismatch")
        return self._root / parsed["bucket"] / parsed["key"]


class S3ObjectStorage(ObjectStorageBackend):
    backend_name = "s3"

    def __init__(
        self,
        *,
        bucket: str,
        endpoint: str = "",
        region: str = "",
        access_key: str = "",
        secret_key: str = "",
    ) -> None:
        import boto3  # type: ignore
        from botocore.config import Config  # type: ignore

        self._bucket = bucket
        session = boto3.session.Session(
            aws_access_key_id=access_key or None,
            aws_secret_access_key=secret_key or None,
            region_name=region or None,
        )
        self._client: Any = session.client(
            "s3",
            endpoint_url=endpoint or None,
            config=Config(s3={"addressing_style": "path" if endpoint else "auto"}),
        )

    def put_object(
        self,
        *,
        object_type: str,
        object_id: str,
        filename: str,
        content_bytes: bytes,
        content_type: str | None = None,
    ) -> str:
        key = build_key(object_type=object_type, object_id=object_id, filename=filename)
        self._client.put_object(
            Bucket=self._bucket,
            Key=key,
            Body=content_bytes,
            ContentType=content_type or "application/octet-stream",
        )
        return f"object://{self.backend_name}/{self._bucket}/{key}"

    def get_object(self, *, storage_uri: str) -> bytes:
        parsed = parse_storage_uri(storage_uri)
        response = self._client.get_object(Bucket=parsed["bucket"], Key=parsed["key"])
        return response["Body"].read()

    def delete_object(self, *, storage_uri: str) -> None:
        parsed = parse_storage_uri(storage_uri)
        self._client.delete_object(Bucket=parsed["bucket"], Key=parsed["key"])


def create_object_storage(config: AppConfig) -> ObjectStorageBackend:
    if config.object_storage_backend == "s3":
        return S3ObjectStorage(
            bucket=config.object_storage_bucket,
            endpoint=config.object_storage_endpoint,
            region=config.object_storage_region,
            access_key=config.object_storage_access_key,
            secret_key=config.object_storage_secret_key,
        )
    if config.object_storage_backend != "local":
        raise RuntimeError(f"unsupported object storage backend: {config.object_storage_backend}")
    return LocalObjectStorage(root=config.object_storage_root, bucket=config.object_storage_bucket)
