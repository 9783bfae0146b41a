"""Local file and S3 object handles used as conversion inputs and outputs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import ConfigError, InputNotFound, WriteFailure
from .settings import S3Settings
from .utils import atomic_write

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LocalFile:
    path: Path

    @property
    def name(self) -> str:
        return str(self.path)

    def exists(self) -> bool:
        return self.path.is_file()

    def read_text(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise InputNotFound(f"Could not read {self.path}: {exc}") from exc

    def write(self, data: bytes) -> None:
        try:
            atomic_write(self.path, data)
        except OSError as exc:
            raise WriteFailure(f"Could not write {self.path}: {exc}") from exc

    def delete(self) -> None:
        self.path.unlink(missing_ok=True)


@dataclass(slots=True)
class S3Object:
    client: Any
    bucket: str
    key: str

    @classmethod
    def from_url(cls, client: Any, url: str) -> "S3Object":
        parts = urlsplit(url)
        key = parts.path.lstrip("/")
        if not parts.netloc or not key:
            raise ConfigError(f"Invalid S3 URL, expected s3://bucket/key: {url}")
        return cls(client=client, bucket=parts.netloc, key=key)

    @property
    def name(self) -> str:
        return f"s3://{self.bucket}/{self.key}"

    def read_text(self) -> str:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=self.key)
            body = response["Body"].read()
        except (ClientError, BotoCoreError) as exc:
            raise InputNotFound(f"Could not read {self.name}: {exc}") from exc
        return body.decode("utf-8", errors="replace")

    def write(self, data: bytes) -> None:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=self.key,
                Body=data,
                ContentType="application/pdf",
            )
        except (ClientError, BotoCoreError) as exc:
            raise WriteFailure(f"Could not write {self.name}: {exc}") from exc

    def delete(self) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=self.key)
        except (ClientError, BotoCoreError) as exc:
            raise WriteFailure(f"Could not delete {self.name}: {exc}") from exc


def create_s3_client(settings: S3Settings) -> Any:
    """Build a boto3 S3 client after checking the required credentials."""

    settings.require()
    logger.info("S3 path detected, setting up S3 client...")
    client = boto3.client(
        "s3",
        aws_access_key_id=settings.access_key_id,
        aws_secret_access_key=settings.secret_access_key,
        region_name=settings.region or None,
        endpoint_url=settings.endpoint,
    )
    logger.info("S3 client configured for %s", settings.endpoint)
    return client


def needs_s3(*paths: str) -> bool:
    return any(path.lower().startswith("s3://") for path in paths)


__all__ = ["LocalFile", "S3Object", "create_s3_client", "needs_s3"]
