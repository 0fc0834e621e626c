import base64

import boto3
import pytest
from moto import mock_aws

from s3dav.errors import StoreError
from s3dav.interfaces import IObjectStore
from s3dav.s3client import S3ObjectStore


@pytest.fixture
def s3_env():
    with mock_aws():
        boto3.client("s3", region_name="us-east-1").create_bucket(Bucket="test-bucket")
        yield


@pytest.fixture
def store(s3_env):
    return S3ObjectStore(bucket_name="test-bucket", region_name="us-east-1")


@pytest.fixture
def prefixed_store(s3_env):
    return S3ObjectStore(
        bucket_name="test-bucket", prefix="myprefix", region_name="us-east-1"
    )


class TestS3ObjectStoreInterface:
    def test_interface_provided(self, store):
        assert IObjectStore.providedBy(store)


class TestPutGet:
    def test_put_and_get_roundtrip(self, store):
        store.put_object("docs/hello.txt", b"hello world", "text/plain")

        obj = store.get_object("docs/hello.txt")

        assert obj is not None
        assert obj.key == "docs/hello.txt"
        assert obj.content == b"hello world"
        assert obj.size == 11
        assert obj.content_type == "text/plain"
        assert obj.uploaded_at is not None

    def test_get_missing_returns_none(self, store):
        assert store.get_object("missing.txt") is None

    def test_put_overwrites(self, store):
        store.put_object("a.bin", b"old content", "application/octet-stream")
        store.put_object("a.bin", b"new", "application/octet-stream")

        obj = store.get_object("a.bin")
        assert obj.content == b"new"
        assert obj.size == 3

    def test_binary_content_unchanged(self, store):
        data = bytes(range(256)) * 1024
        store.put_object("blob.bin", data, "application/octet-stream")
        assert store.get_object("blob.bin").content == data


class TestDeleteObject:
    def test_delete_object(self, store):
        store.put_object("del/key.txt", b"delete me", "text/plain")
        store.delete_object("del/key.txt")
        assert store.get_object("del/key.txt") is None

    def test_delete_nonexistent_does_not_raise(self, store):
        store.delete_object("nonexistent/key.txt")


class TestListObjects:
    def test_list_objects(self, store):
        for i in range(3):
            store.put_object(f"list/{i}.txt", b"x" * i, "text/plain")
        store.put_object("other/skip.txt", b"", "text/plain")

        summaries = list(store.list_objects("list/"))

        assert {s.key for s in summaries} == {"list/0.txt", "list/1.txt", "list/2.txt"}
        sizes = {s.key: s.size for s in summaries}
        assert sizes["list/2.txt"] == 2
        assert all(s.uploaded_at is not None for s in summaries)

    def test_list_objects_empty(self, store):
        assert list(store.list_objects("nonexistent/")) == []

    def test_list_includes_folder_markers(self, store):
        store.put_object("dir/", b"", "application/x-directory")
        summaries = list(store.list_objects("dir/"))
        assert [s.key for s in summaries] == ["dir/"]
        assert summaries[0].is_folder

    def test_list_missing_bucket_raises_store_error(self, s3_env):
        store = S3ObjectStore(bucket_name="no-such-bucket", region_name="us-east-1")
        with pytest.raises(StoreError) as exc_info:
            list(store.list_objects(""))
        assert "NoSuchBucket" in str(exc_info.value)


class TestErrors:
    def test_put_to_missing_bucket_raises_store_error(self, s3_env):
        store = S3ObjectStore(bucket_name="no-such-bucket", region_name="us-east-1")
        with pytest.raises(StoreError) as exc_info:
            store.put_object("a.txt", b"data", "text/plain")
        assert "put" in str(exc_info.value)
        assert "a.txt" in str(exc_info.value)


class TestPrefix:
    def test_prefix_applied_to_put(self, prefixed_store):
        prefixed_store.put_object("docs/a.txt", b"prefixed", "text/plain")

        s3 = boto3.client("s3", region_name="us-east-1")
        resp = s3.list_objects_v2(Bucket="test-bucket", Prefix="myprefix/")
        keys = [obj["Key"] for obj in resp.get("Contents", [])]
        assert keys == ["myprefix/docs/a.txt"]

    def test_prefix_stripped_from_list(self, prefixed_store):
        prefixed_store.put_object("docs/a.txt", b"1", "text/plain")
        prefixed_store.put_object("b.txt", b"2", "text/plain")

        keys = sorted(s.key for s in prefixed_store.list_objects(""))
        assert keys == ["b.txt", "docs/a.txt"]

    def test_prefix_isolation(self, s3_env):
        """Two stores with different prefixes don't see each other's data."""
        store_a = S3ObjectStore(
            bucket_name="test-bucket", prefix="ns_a", region_name="us-east-1"
        )
        store_b = S3ObjectStore(
            bucket_name="test-bucket", prefix="ns_b", region_name="us-east-1"
        )

        store_a.put_object("key.txt", b"isolation test", "text/plain")

        assert store_a.get_object("key.txt") is not None
        assert store_b.get_object("key.txt") is None
        assert list(store_b.list_objects("")) == []

    def test_invalid_prefix_characters(self, s3_env):
        with pytest.raises(ValueError, match="invalid characters"):
            S3ObjectStore(bucket_name="test-bucket", prefix="bad prefix!")

    def test_prefix_traversal_rejected(self, s3_env):
        with pytest.raises(ValueError, match=r"\.\."):
            S3ObjectStore(bucket_name="test-bucket", prefix="a/../b")

    def test_prefix_trailing_slash_ignored(self, s3_env):
        store_a = S3ObjectStore(
            bucket_name="test-bucket", prefix="ns/", region_name="us-east-1"
        )
        store_b = S3ObjectStore(
            bucket_name="test-bucket", prefix="ns", region_name="us-east-1"
        )
        store_a.put_object("key.txt", b"same namespace", "text/plain")
        assert store_b.get_object("key.txt").content == b"same namespace"


class TestClientConfig:
    def test_addressing_style(self, s3_env):
        store = S3ObjectStore(
            bucket_name="test-bucket", region_name="us-east-1", addressing_style="path"
        )
        assert store._client.meta.config.s3 == {"addressing_style": "path"}

    def test_botocore_default_timeouts(self, store):
        config = store._client.meta.config
        assert config.connect_timeout == 60
        assert config.read_timeout == 60

    def test_insecure_client_warns(self, s3_env, caplog):
        S3ObjectStore(bucket_name="test-bucket", region_name="us-east-1", use_ssl=False)
        assert "S3 SSL is disabled" in caplog.text


class TestSSEC:
    def test_ssec_requires_ssl(self, s3_env):
        key = base64.b64encode(b"k" * 32).decode()
        with pytest.raises(ValueError, match="SSL"):
            S3ObjectStore(
                bucket_name="test-bucket", use_ssl=False, sse_customer_key=key
            )

    def test_ssec_key_length_checked(self, s3_env):
        key = base64.b64encode(b"short").decode()
        with pytest.raises(ValueError, match="32 bytes"):
            S3ObjectStore(bucket_name="test-bucket", sse_customer_key=key)
