from datetime import datetime, timezone
from typing import List, NamedTuple, Optional
import logging
import time
import uuid
from botocore.exceptions import BotoCoreError, ClientError
from ..core.errors import UploadFailed

"""Blob storage helpers for putting, listing, signing and deleting images.
"""

logger = logging.getLogger(__name__)

# Object metadata key carrying the per-upload opaque access token
TOKEN_METADATA_KEY = "download-token"

# SigV4 presigned URLs cannot outlive seven days
SIGV4_MAX_EXPIRY = 7 * 24 * 60 * 60
SIGV4_VERSIONS = {"s3v4", "v4"}


def parse_expiry_date(value: str) -> datetime:
    """Parse a ``YYYY-MM-DD`` expiry date as midnight UTC."""
    return datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)


class StoredObject(NamedTuple):
    key: str
    size: int

    @property
    def name(self) -> str:
        return self.key.rsplit("/", 1)[-1]

    @property
    def is_pseudo_directory(self) -> bool:
        return self.key.endswith("/") and self.size == 0


class BlobStore:
    """S3 bucket addressed by deterministic object keys.

    Signed URLs either live for ``url_expiry`` seconds or, when that is not
    given, until the absolute ``expires_at`` date. The client's signature
    version must be able to honour that lifetime: a SigV4 client asked for
    more than seven days is rejected here, when the store is built.
    """

    def __init__(
        self,
        client,
        bucket_name: str,
        url_expiry: Optional[int] = None,
        expires_at: Optional[datetime] = None,
    ):
        if url_expiry is None and expires_at is None:
            raise ValueError("Either url_expiry or expires_at is required")
        self.client = client
        self.bucket_name = bucket_name
        self.url_expiry = int(url_expiry) if url_expiry is not None else None
        self.expires_at = expires_at
        self.signature_version = getattr(client.meta.config, "signature_version", None)
        lifetime = self.url_lifetime()
        if self.signature_version in SIGV4_VERSIONS and lifetime > SIGV4_MAX_EXPIRY:
            raise ValueError(
                f"Signature version {self.signature_version} cannot sign URLs valid for "
                f"{lifetime}s (max {SIGV4_MAX_EXPIRY}s); lower URL_EXPIRY or use "
                f"S3_SIGNATURE_VERSION=s3"
            )
        logger.info(
            "Signing URLs with %s for %ss", self.signature_version or "botocore default", lifetime
        )

    def url_lifetime(self) -> int:
        """Seconds a URL signed now stays valid."""
        if self.url_expiry is not None:
            return self.url_expiry
        return max(1, int(self.expires_at.timestamp() - time.time()))

    def put(self, key: str, data_bytes: bytes, content_type: str) -> None:
        """Store bytes at ``key``, overwriting whatever was there."""
        try:
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data_bytes,
                ContentType=content_type,
                Metadata={TOKEN_METADATA_KEY: uuid.uuid4().hex},
            )
        except (BotoCoreError, ClientError) as e:
            raise UploadFailed(f"Failed to store {key}: {e}") from e
        logger.info("Stored %s (%d bytes, %s)", key, len(data_bytes), content_type)

    def signed_url(self, key: str) -> str:
        """Create a long-lived read URL for an object."""
        try:
            return self.client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket_name, "Key": key},
                ExpiresIn=self.url_lifetime(),
            )
        except (BotoCoreError, ClientError) as e:
            raise UploadFailed(f"Failed to sign {key}: {e}") from e

    def list_objects(self, prefix: str) -> List[StoredObject]:
        """List every object under ``prefix``, following pagination."""
        objects: List[StoredObject] = []
        paginator = self.client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
            for obj in page.get("Contents", []):
                objects.append(StoredObject(key=obj["Key"], size=int(obj.get("Size", 0))))
        return objects

    def delete(self, key: str) -> None:
        self.client.delete_object(Bucket=self.bucket_name, Key=key)
