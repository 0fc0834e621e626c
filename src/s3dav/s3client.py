from botocore.config import Config
from botocore.exceptions import ClientError
from s3dav.errors import StoreError
from s3dav.interfaces import IObjectStore
from s3dav.models import ObjectSummary
from s3dav.models import StoredObject
from zope.interface import implementer

import base64
import boto3
import logging
import re


logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})

_PREFIX_RE = re.compile(r"[a-zA-Z0-9._/-]*")


def _checked_prefix(prefix):
    """Normalize the key namespace prefix, rejecting anything path-like."""
    prefix = (prefix or "").rstrip("/")
    if not _PREFIX_RE.fullmatch(prefix):
        raise ValueError(
            f"s3-prefix contains invalid characters: {prefix!r}; "
            "allowed are letters, digits, '.', '_', '-' and '/'"
        )
    if ".." in prefix:
        raise ValueError(f"s3-prefix must not contain '..': {prefix!r}")
    return prefix


def _sse_args(customer_key, use_ssl):
    """Request arguments for SSE-C, empty when no customer key is set."""
    if not customer_key:
        return {}
    if not use_ssl:
        raise ValueError("SSE-C keys are only sent over SSL; enable s3-use-ssl")
    raw_key = base64.b64decode(customer_key)
    if len(raw_key) != 32:
        raise ValueError(f"SSE-C key must decode to 32 bytes, got {len(raw_key)}")
    return {"SSECustomerAlgorithm": "AES256", "SSECustomerKey": raw_key}


@implementer(IObjectStore)
class S3ObjectStore:
    """Object store on an S3-compatible bucket (S3, R2, MinIO).

    Keys are stored below ``prefix`` when one is given, so several gateways
    can share a bucket.
    """

    def __init__(
        self,
        bucket_name,
        prefix="",
        endpoint_url=None,
        region_name=None,
        aws_access_key_id=None,
        aws_secret_access_key=None,
        use_ssl=True,
        addressing_style="auto",
        sse_customer_key=None,
    ):
        self.bucket_name = bucket_name
        self._prefix = _checked_prefix(prefix)
        self._sse_extra_args = _sse_args(sse_customer_key, use_ssl)

        options = {
            "endpoint_url": endpoint_url,
            "region_name": region_name,
            "aws_access_key_id": aws_access_key_id,
            "aws_secret_access_key": aws_secret_access_key,
        }
        kwargs = {name: value for name, value in options.items() if value}
        if not use_ssl:
            logger.warning("S3 SSL is disabled, objects travel unencrypted")
        self._client = boto3.client(
            "s3",
            use_ssl=use_ssl,
            config=Config(s3={"addressing_style": addressing_style}),
            **kwargs,
        )

    def _full_key(self, key):
        if self._prefix:
            return f"{self._prefix}/{key}"
        return key

    def _wrap_client_error(self, e, operation, key):
        """Wrap ClientError in a StoreError, logging the original at DEBUG."""
        logger.debug("S3 %s failed for key=%s: %s", operation, key, e)
        raise StoreError(
            f"S3 {operation} failed for key={key}: "
            f"{e.response['Error'].get('Code', 'Unknown')}"
        ) from e

    def get_object(self, key):
        try:
            response = self._client.get_object(
                Bucket=self.bucket_name,
                Key=self._full_key(key),
                **self._sse_extra_args,
            )
        except ClientError as e:
            if e.response["Error"].get("Code") in _NOT_FOUND_CODES:
                return None
            self._wrap_client_error(e, "get", key)
        body = response["Body"]
        try:
            content = body.read()
        finally:
            body.close()
        return StoredObject(
            key=key,
            content=content,
            content_type=response.get("ContentType"),
            size=response.get("ContentLength", len(content)),
            uploaded_at=response.get("LastModified"),
        )

    def put_object(self, key, content, content_type):
        try:
            self._client.put_object(
                Bucket=self.bucket_name,
                Key=self._full_key(key),
                Body=content,
                ContentType=content_type,
                **self._sse_extra_args,
            )
        except ClientError as e:
            self._wrap_client_error(e, "put", key)

    def delete_object(self, key):
        try:
            self._client.delete_object(Bucket=self.bucket_name, Key=self._full_key(key))
        except ClientError as e:
            self._wrap_client_error(e, "delete", key)

    def list_objects(self, prefix=""):
        full_prefix = self._full_key(prefix) if prefix else self._prefix
        if self._prefix and not prefix:
            full_prefix += "/"
        paginator = self._client.get_paginator("list_objects_v2")
        prefix_len = len(self._prefix) + 1 if self._prefix else 0
        try:
            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=full_prefix):
                for obj in page.get("Contents", []):
                    # Strip the namespace prefix so callers see logical keys
                    yield ObjectSummary(
                        key=obj["Key"][prefix_len:],
                        size=obj.get("Size", 0),
                        uploaded_at=obj.get("LastModified"),
                    )
        except ClientError as e:
            self._wrap_client_error(e, "list", prefix)
