"""
S3-compatible object store backend.

Each item is two objects in one bucket:

    files/<id>    blob bytes
    meta/<id>     Item metadata as JSON

Works against AWS S3 and against MinIO-style endpoints, which need
path-style addressing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, BinaryIO

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from share_service.logging import get_logger
from share_service.services.errors import (
    BlobMissingError,
    ItemNotFoundError,
    StorageIOError,
)
from share_service.services.item import Item
from share_service.services.storage import StorageBackend, as_stream, newest_first

if TYPE_CHECKING:
    from share_service.config import S3StorageConfig

logger = get_logger(__name__)

FILES_PREFIX = "files/"
META_PREFIX = "meta/"

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


def _is_not_found(error: ClientError) -> bool:
    code = error.response.get("Error", {}).get("Code", "")
    return code in _NOT_FOUND_CODES


class S3Storage(StorageBackend):
    """Stores blobs and metadata as objects in an S3 bucket."""

    name = "s3"

    def __init__(self, client: Any, bucket: str) -> None:
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_config(cls, config: S3StorageConfig) -> S3Storage:
        """Create a boto3 client from storage configuration."""
        credentials: dict[str, str] = {}
        if config.access_key_id and config.secret_access_key:
            credentials = {
                "aws_access_key_id": config.access_key_id,
                "aws_secret_access_key": config.secret_access_key,
            }

        client = boto3.client(
            "s3",
            endpoint_url=config.endpoint or None,
            region_name=config.region,
            config=BotoConfig(signature_version="s3v4", s3={"addressing_style": "path"}),
            **credentials,
        )
        return cls(client=client, bucket=config.bucket)

    @staticmethod
    def file_key(item_id: str) -> str:
        return f"{FILES_PREFIX}{item_id}"

    @staticmethod
    def meta_key(item_id: str) -> str:
        return f"{META_PREFIX}{item_id}"

    def put(self, item_id: str, content: bytes | BinaryIO, item: Item) -> Item:
        """
        Upload the blob, then the metadata.

        The body is read fully into memory first: the client needs a
        known length.
        """
        try:
            data = as_stream(content).read()
        except OSError as e:
            raise StorageIOError(f"Failed to read content for {item_id}: {e}") from e

        stored = item.model_copy(update={"size": len(data)})

        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=self.file_key(item_id),
                Body=data,
                ContentType=stored.content_type,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageIOError(f"Failed to upload file for {item_id}: {e}") from e

        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=self.meta_key(item_id),
                Body=stored.to_json(),
                ContentType="application/json",
            )
        except (ClientError, BotoCoreError) as e:
            self._discard(self.file_key(item_id))
            logger.warning(
                "Metadata upload failed, blob rolled back",
                extra={"item_id": item_id, "bucket": self.bucket, "reason": str(e)},
            )
            raise StorageIOError(f"Failed to upload metadata for {item_id}: {e}") from e

        return stored

    def get(self, item_id: str) -> tuple[BinaryIO, Item]:
        """Fetch metadata, then open the blob body."""
        item = self.get_meta(item_id)
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=self.file_key(item_id))
        except ClientError as e:
            if _is_not_found(e):
                raise BlobMissingError(item_id) from e
            raise StorageIOError(f"Failed to get file for {item_id}: {e}") from e
        except BotoCoreError as e:
            raise StorageIOError(f"Failed to get file for {item_id}: {e}") from e
        return response["Body"], item

    def get_meta(self, item_id: str) -> Item:
        """Fetch and decode the metadata object."""
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=self.meta_key(item_id))
        except ClientError as e:
            if _is_not_found(e):
                raise ItemNotFoundError(item_id) from e
            raise StorageIOError(f"Failed to get metadata for {item_id}: {e}") from e
        except BotoCoreError as e:
            raise StorageIOError(f"Failed to get metadata for {item_id}: {e}") from e

        body = response["Body"]
        try:
            raw = body.read()
        finally:
            body.close()

        try:
            return Item.from_json(raw)
        except ValidationError as e:
            raise StorageIOError(f"Corrupt metadata for {item_id}: {e}") from e

    def delete(self, item_id: str) -> None:
        """Delete both objects. Deleting an absent key succeeds in S3."""
        for key in (self.file_key(item_id), self.meta_key(item_id)):
            try:
                self.client.delete_object(Bucket=self.bucket, Key=key)
            except ClientError as e:
                if not _is_not_found(e):
                    raise StorageIOError(f"Failed to delete {key}: {e}") from e
            except BotoCoreError as e:
                raise StorageIOError(f"Failed to delete {key}: {e}") from e

    def list(self, owner_token: str) -> list[Item]:
        """
        Page through every metadata object and keep the owner's.

        One GET per stored item: slow for large buckets.
        """
        items: list[Item] = []
        paginator = self.client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self.bucket, Prefix=META_PREFIX):
                for obj in page.get("Contents", []):
                    item_id = obj["Key"][len(META_PREFIX) :]
                    if not item_id:
                        continue
                    try:
                        item = self.get_meta(item_id)
                    except (ItemNotFoundError, StorageIOError):
                        logger.debug("Skipping unreadable metadata", extra={"key": obj["Key"]})
                        continue
                    if item.owner_token == owner_token:
                        items.append(item)
        except (ClientError, BotoCoreError) as e:
            raise StorageIOError(f"Failed to list objects in {self.bucket}: {e}") from e

        return newest_first(items)

    def _discard(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.warning("Cleanup failed", extra={"key": key, "reason": str(e)})
