"""
Cloudflare R2 (S3 API) blob store: ссылки на объекты подписывает boto3 presigner.
Срок жизни передаётся длительностью; часы presigner'а - его забота.
"""
import logging

import boto3
from botocore.config import Config

from app.core.config import settings
from app.storage.base import BlobStore

logger = logging.getLogger(__name__)


def create_r2_client():
    return boto3.client(
        "s3",
        endpoint_url=settings.r2_endpoint,
        aws_access_key_id=settings.r2_access_key_id,
        aws_secret_access_key=settings.r2_secret_access_key,
        region_name=settings.r2_region,
        config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
    )


class R2BlobStore(BlobStore):
    def __init__(self, client=None, bucket: str | None = None) -> None:
        self._client = client
        self.bucket = bucket or settings.r2_bucket_name

    @property
    def client(self):
        """Lazy initialization of the S3 client."""
        if self._client is None:
            self._client = create_r2_client()
        return self._client

    def url_for(self, key: str, expires_in: int) -> str:
        expires_in = max(1, int(expires_in))
        url = self.client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key.lstrip("/")},
            ExpiresIn=expires_in,
        )
        logger.debug("presigned_url_issued", extra={"key": key, "expires_in": expires_in})
        return url
