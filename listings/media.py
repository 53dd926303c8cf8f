"""Photo ingestion into S3.

Every input photo yields exactly one URL at the same position. Uploads run
concurrently, one task per photo; a task that fails is replaced by a
deterministic placeholder URL for its index and does not affect its
siblings. With no photos at all, a single placeholder is returned so every
property has at least one photo URL.

When no real bucket is configured, nothing is uploaded and the whole batch
gets placeholders.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError

from . import config

logger = logging.getLogger(__name__)

PLACEHOLDER_BASE_URL = "https://via.placeholder.com/800x600"

# Bucket value shipped in example env files
PLACEHOLDER_BUCKET_NAME = "your-s3-bucket-name"

KEY_PREFIX = "properties"


def placeholder_url(display_name: str, index: int) -> str:
    """Deterministic placeholder image URL for one photo slot.

    Encoded like JavaScript's encodeURIComponent so existing placeholder URLs
    stay stable ("Sunset Villas-0" -> "Sunset%20Villas-0").
    """
    text = quote(f"{display_name}-{index}", safe="!*'()")
    return f"{PLACEHOLDER_BASE_URL}?text={text}"


@dataclass(frozen=True)
class Blob:
    """An uploaded file held in memory."""

    filename: str
    content_type: str
    data: bytes


@dataclass(frozen=True)
class UploadOutcome:
    """Result of one upload task: the URL to store and whether it is a fallback."""

    index: int
    url: str
    is_placeholder: bool


@dataclass(frozen=True)
class MediaIngestResult:
    outcomes: list[UploadOutcome]

    @property
    def urls(self) -> list[str]:
        return [o.url for o in self.outcomes]

    @property
    def placeholders(self) -> list[bool]:
        return [o.is_placeholder for o in self.outcomes]


class MediaIngestor:
    """Upload listing photos to S3 with per-item placeholder fallback."""

    def __init__(
        self,
        bucket: str | None = config.S3_BUCKET_NAME,
        region: str = config.AWS_REGION,
        public_base_url: str = config.S3_PUBLIC_BASE_URL,
        client=None,
        log: logging.Logger | None = None,
    ):
        self.bucket = bucket
        self.region = region
        self.public_base_url = (public_base_url or "").rstrip("/")
        self._client = client
        self.log = log or logger

    @property
    def is_configured(self) -> bool:
        return bool(self.bucket) and self.bucket != PLACEHOLDER_BUCKET_NAME

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client("s3", region_name=self.region)
        return self._client

    async def ingest(self, blobs: list[Blob], display_name: str) -> MediaIngestResult:
        if not blobs:
            self.log.info("No photos supplied, using a placeholder")
            return MediaIngestResult([self._placeholder(display_name, 0)])

        if not self.is_configured:
            self.log.info(f"S3 not configured, using placeholders for {len(blobs)} photos")
            return MediaIngestResult(
                [self._placeholder(display_name, i) for i in range(len(blobs))]
            )

        try:
            client = self.client
        except BotoCoreError as e:
            self.log.warning(f"Could not create S3 client ({e}), using placeholders for {len(blobs)} photos")
            return MediaIngestResult(
                [self._placeholder(display_name, i) for i in range(len(blobs))]
            )

        # gather returns results in argument order, so outcome i is photo i
        outcomes = await asyncio.gather(
            *(self._upload_one(client, i, blob, display_name) for i, blob in enumerate(blobs))
        )

        failed = sum(1 for o in outcomes if o.is_placeholder)
        self.log.info(f"Uploaded {len(outcomes) - failed}/{len(outcomes)} photos")
        return MediaIngestResult(list(outcomes))

    async def _upload_one(self, client, index: int, blob: Blob, display_name: str) -> UploadOutcome:
        # the index keeps keys distinct when a batch repeats a filename
        key = f"{KEY_PREFIX}/{int(time.time() * 1000)}-{index}-{blob.filename}"
        try:
            await asyncio.to_thread(self._put_object, client, key, blob)
        except Exception:
            self.log.exception(f"Error uploading file {blob.filename}, using placeholder")
            return self._placeholder(display_name, index)
        return UploadOutcome(index=index, url=self.public_url(key), is_placeholder=False)

    def _put_object(self, client, key: str, blob: Blob) -> None:
        client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=blob.data,
            ContentType=blob.content_type,
        )

    def public_url(self, key: str) -> str:
        quoted = quote(key)
        if self.public_base_url:
            return f"{self.public_base_url}/{quoted}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{quoted}"

    @staticmethod
    def _placeholder(display_name: str, index: int) -> UploadOutcome:
        return UploadOutcome(
            index=index, url=placeholder_url(display_name, index), is_placeholder=True
        )
