"""Dataset repository interface and S3 implementation."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from bundlesize.common.errors import ConfigError, DatasetIOError, ObjectNotFound

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024
_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


def object_url(bucket: str, region: str, key: str) -> str:
    """Region-qualified virtual-hosted URL; analytics tools in other regions require this form."""
    return f"https://{bucket}.s3-{region}.amazonaws.com/{key}"


class DatasetRepository(Protocol):
    """Abstract interface for the blob store holding datasets and manifests."""

    def open_stream(self, key: str) -> AsyncIterator[bytes]:
        """Async byte stream of *key*; raises ObjectNotFound on first iteration if absent."""
        ...

    async def put(
        self,
        key: str,
        content: bytes,
        content_type: str,
        cache_control: str = "",
        access_policy: str = "",
    ) -> str:
        """Store *content* and return its URL."""
        ...

    async def upload_file(
        self,
        key: str,
        path: Path,
        content_type: str,
        cache_control: str = "",
        access_policy: str = "",
    ) -> str:
        ...

    def url_for(self, key: str) -> str:
        ...


def _translate_client_error(exc: ClientError, bucket: str, key: str) -> Exception:
    error = exc.response.get("Error", {}) if hasattr(exc, "response") else {}
    code = str(error.get("Code") or "")
    if code in _NOT_FOUND_CODES:
        return ObjectNotFound(key)
    message = error.get("Message") or str(exc)
    return DatasetIOError(
        f"S3 request for s3://{bucket}/{key} failed: {code or 'error'}: {message}",
        details={"bucket": bucket, "key": key, "code": code},
    )


class S3DatasetRepository:
    """S3-backed dataset storage.

    boto3 is synchronous; each blocking call runs in a worker thread so the
    event loop keeps driving the other consumer of a teed stream.
    """

    def __init__(
        self,
        bucket_name: str,
        region: Optional[str] = None,
        client: Optional[Any] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if not bucket_name:
            raise ConfigError("BUNDLESIZE_BUCKET config missing. Set it to the S3 bucket holding the dataset.")
        self.bucket_name = bucket_name
        self.region = region or "us-east-1"
        self._client = client
        self._chunk_size = chunk_size

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = boto3.client("s3", region_name=self.region)
        return self._client

    def url_for(self, key: str) -> str:
        return object_url(self.bucket_name, self.region, key)

    async def open_stream(self, key: str) -> AsyncIterator[bytes]:
        client = self._get_client()
        try:
            response = await asyncio.to_thread(client.get_object, Bucket=self.bucket_name, Key=key)
        except ClientError as exc:
            raise _translate_client_error(exc, self.bucket_name, key) from exc
        except BotoCoreError as exc:
            raise DatasetIOError(f"S3 request for s3://{self.bucket_name}/{key} failed: {exc}") from exc
        body = response["Body"]
        try:
            while True:
                try:
                    chunk = await asyncio.to_thread(body.read, self._chunk_size)
                except (BotoCoreError, OSError) as exc:
                    raise DatasetIOError(f"Reading s3://{self.bucket_name}/{key} failed: {exc}") from exc
                if not chunk:
                    break
                yield chunk
        finally:
            body.close()

    def _extra_args(self, content_type: str, cache_control: str, access_policy: str) -> Dict[str, str]:
        extra = {"ContentType": content_type}
        if cache_control:
            extra["CacheControl"] = cache_control
        if access_policy:
            extra["ACL"] = access_policy
        return extra

    async def put(
        self,
        key: str,
        content: bytes,
        content_type: str,
        cache_control: str = "",
        access_policy: str = "",
    ) -> str:
        client = self._get_client()
        logger.info("Uploading %s to %s...", key, self.bucket_name)
        try:
            await asyncio.to_thread(
                client.put_object,
                Bucket=self.bucket_name,
                Key=key,
                Body=content,
                **self._extra_args(content_type, cache_control, access_policy),
            )
        except ClientError as exc:
            raise _translate_client_error(exc, self.bucket_name, key) from exc
        except BotoCoreError as exc:
            raise DatasetIOError(f"Upload of s3://{self.bucket_name}/{key} failed: {exc}") from exc
        return self.url_for(key)

    async def upload_file(
        self,
        key: str,
        path: Path,
        content_type: str,
        cache_control: str = "",
        access_policy: str = "",
    ) -> str:
        client = self._get_client()
        logger.info("Uploading %s to %s...", key, self.bucket_name)
        try:
            await asyncio.to_thread(
                client.upload_file,
                str(path),
                self.bucket_name,
                key,
                ExtraArgs=self._extra_args(content_type, cache_control, access_policy),
            )
        except (ClientError, BotoCoreError, OSError) as exc:
            raise DatasetIOError(f"Upload of {path} to s3://{self.bucket_name}/{key} failed: {exc}") from exc
        return self.url_for(key)


class InMemoryDatasetRepository:
    """In-memory storage for tests and dry runs."""

    def __init__(self, bucket_name: str = "test-mem-bucket", region: str = "us-east-1", chunk_size: int = 16) -> None:
        self.bucket_name = bucket_name
        self.region = region
        self.objects: Dict[str, bytes] = {}
        self.metadata: Dict[str, Dict[str, str]] = {}
        self._chunk_size = chunk_size

    def url_for(self, key: str) -> str:
        return object_url(self.bucket_name, self.region, key)

    async def open_stream(self, key: str) -> AsyncIterator[bytes]:
        if key not in self.objects:
            raise ObjectNotFound(key)
        content = self.objects[key]
        for start in range(0, len(content), self._chunk_size):
            yield content[start:start + self._chunk_size]
            await asyncio.sleep(0)

    async def put(
        self,
        key: str,
        content: bytes,
        content_type: str,
        cache_control: str = "",
        access_policy: str = "",
    ) -> str:
        self.objects[key] = bytes(content)
        self.metadata[key] = {
            "content_type": content_type,
            "cache_control": cache_control,
            "access_policy": access_policy,
        }
        return self.url_for(key)

    async def upload_file(
        self,
        key: str,
        path: Path,
        content_type: str,
        cache_control: str = "",
        access_policy: str = "",
    ) -> str:
        return await self.put(key, Path(path).read_bytes(), content_type, cache_control, access_policy)
