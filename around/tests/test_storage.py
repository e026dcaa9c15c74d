import io
import unittest
from unittest.mock import MagicMock, call, patch

from botocore.exceptions import ClientError

from around.storage import PUBLIC_READ_ACL, InMemoryObjectStore, S3ObjectStore


class InMemoryObjectStoreTests(unittest.TestCase):
    def test_put_stores_bytes_and_grants_public_read(self):
        store = InMemoryObjectStore()
        url = store.put("abc", io.BytesIO(b"png-bytes"), "image/png")
        self.assertEqual(url, "https://example.test/storage/abc")
        self.assertEqual(store.get_bytes("abc"), b"png-bytes")
        self.assertEqual(store.acls["abc"], PUBLIC_READ_ACL)

    def test_missing_bucket_fails(self):
        store = InMemoryObjectStore(bucket_exists=False)
        with self.assertRaises(FileNotFoundError):
            store.put("abc", io.BytesIO(b"x"))
        self.assertEqual(store.stored_objects, {})


class S3ObjectStoreTests(unittest.TestCase):
    def setUp(self):
        patcher = patch("around.storage.boto3.client")
        self.mock_client_factory = patcher.start()
        self.addCleanup(patcher.stop)
        self.client = MagicMock()
        self.mock_client_factory.return_value = self.client

    def make_store(self, **overrides):
        params = dict(
            bucket="post-images",
            region="us-east-1",
            endpoint="https://s3.example.test",
            access_key_id="key",
            secret_access_key="secret",
        )
        params.update(overrides)
        return S3ObjectStore(**params)

    def test_checks_bucket_then_uploads_public(self):
        store = self.make_store()
        stream = io.BytesIO(b"jpeg")

        url = store.put("abc", stream, "image/jpeg")

        self.assertEqual(
            self.client.mock_calls[:2],
            [
                call.head_bucket(Bucket="post-images"),
                call.upload_fileobj(
                    stream,
                    "post-images",
                    "abc",
                    ExtraArgs={"ACL": "public-read", "ContentType": "image/jpeg"},
                ),
            ],
        )
        self.assertEqual(url, "https://s3.example.test/post-images/abc")

    def test_missing_bucket_stops_before_upload(self):
        self.client.head_bucket.side_effect = ClientError(
            {"Error": {"Code": "404", "Message": "Not Found"}}, "HeadBucket"
        )
        store = self.make_store()
        with self.assertRaises(ClientError):
            store.put("abc", io.BytesIO(b"jpeg"))
        self.client.upload_fileobj.assert_not_called()

    def test_public_base_url_wins(self):
        store = self.make_store(public_base_url="https://cdn.example.test/")
        self.assertEqual(store.public_url("abc"), "https://cdn.example.test/abc")

    def test_default_aws_url(self):
        store = self.make_store(endpoint="")
        self.assertEqual(
            store.public_url("abc"), "https://post-images.s3.amazonaws.com/abc"
        )


if __name__ == "__main__":
    unittest.main()
