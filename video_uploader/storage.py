import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from video_uploader.config import Settings

logger = logging.getLogger(__name__)

METADATA_SUFFIX = ".meta.json"


class StorageError(Exception):
    """Raised when the blob store rejects or fails an operation."""


@dataclass
class StoredObject:
    key: str
    size: int
    uploaded: datetime


def public_url(account_id: str, public_domain: str, key: str) -> str:
    return f"https://pub-{account_id}.{public_domain}/{key}"


class R2BucketStorage:
    """Cloudflare R2 bucket accessed through the S3-compatible API."""

    def __init__(
        self,
        *,
        account_id: str,
        bucket: str,
        access_key_id: str,
        secret_access_key: str,
        endpoint_url: str = "",
        public_domain: str = "r2.dev",
        client=None,
    ):
        self.account_id = account_id
        self.bucket = bucket
        self.public_domain = public_domain
        self.endpoint_url = endpoint_url or f"https://{account_id}.r2.cloudflarestorage.com"
        self.client = client or boto3.client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name="auto",
        )

    def init(self) -> None:
        logger.info("Using R2 bucket %s at %s", self.bucket, self.endpoint_url)

    def url_for(self, key: str) -> str:
        return public_url(self.account_id, self.public_domain, key)

    def put(self, key: str, data: bytes, *, content_type: str, metadata: dict[str, str]) -> None:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                Metadata=metadata,
            )
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(str(exc)) from exc

    def get(self, key: str) -> bytes | None:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                return None
            raise StorageError(str(exc)) from exc
        except BotoCoreError as exc:
            raise StorageError(str(exc)) from exc
        return response["Body"].read()

    def list(self) -> list[StoredObject]:
        objects = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket):
                for item in page.get("Contents", []):
                    objects.append(
                        StoredObject(key=item["Key"], size=item["Size"], uploaded=item["LastModified"])
                    )
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(str(exc)) from exc
        return objects


class LocalBucketStorage:
    """Filesystem-backed bucket for development; metadata kept in a sidecar file."""

    def __init__(self, root_dir: str, *, account_id: str = "local", public_domain: str = "r2.dev"):
        self.root = Path(root_dir)
        self.account_id = account_id
        self.bucket = self.root.name
        self.public_domain = public_domain

    def init(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info("Using local bucket directory %s", self.root)

    def url_for(self, key: str) -> str:
        return public_url(self.account_id, self.public_domain, key)

    def _path(self, key: str) -> Path:
        target = (self.root / key).resolve()
        if self.root.resolve() not in target.parents:
            raise StorageError(f"invalid key: {key}")
        return target

    def put(self, key: str, data: bytes, *, content_type: str, metadata: dict[str, str]) -> None:
        target = self._path(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            sidecar = target.with_name(target.name + METADATA_SUFFIX)
            sidecar.write_text(json.dumps({"contentType": content_type, "metadata": metadata}))
        except OSError as exc:
            raise StorageError(str(exc)) from exc

    def get(self, key: str) -> bytes | None:
        target = self._path(key)
        if not target.exists():
            return None
        return target.read_bytes()

    def list(self) -> list[StoredObject]:
        if not self.root.exists():
            return []
        objects = []
        for path in sorted(self.root.rglob("*")):
            if not path.is_file() or path.name.endswith(METADATA_SUFFIX):
                continue
            stat = path.stat()
            objects.append(
                StoredObject(
                    key=path.relative_to(self.root).as_posix(),
                    size=stat.st_size,
                    uploaded=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                )
            )
        return objects


def missing_r2_settings(settings: Settings) -> list[str]:
    required = {
        "r2_account_id": settings.r2_account_id,
        "r2_bucket": settings.r2_bucket,
        "r2_access_key_id": settings.r2_access_key_id,
        "r2_secret_access_key": settings.r2_secret_access_key,
    }
    return [name for name, value in required.items() if not value]


def build_storage(settings: Settings):
    """Resolve the configured blob store once at startup; None when unavailable."""
    backend = settings.storage_backend.lower()
    if backend == "local":
        return LocalBucketStorage(
            settings.local_storage_dir,
            account_id=settings.r2_account_id or "local",
            public_domain=settings.public_domain,
        )
    if backend == "r2":
        missing = missing_r2_settings(settings)
        if missing:
            logger.warning("R2 storage not configured, missing: %s", ", ".join(missing))
            return None
        return R2BucketStorage(
            account_id=settings.r2_account_id,
            bucket=settings.r2_bucket,
            access_key_id=settings.r2_access_key_id,
            secret_access_key=settings.r2_secret_access_key,
            endpoint_url=settings.r2_endpoint_url,
            public_domain=settings.public_domain,
        )
    logger.warning("Unknown storage backend %r", settings.storage_backend)
    return None
