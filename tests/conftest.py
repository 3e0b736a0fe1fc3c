import os, sys
from io import BytesIO

import boto3
import pytest
from moto import mock_aws
from PIL import Image

# Ensure project root on sys.path so `import photo_upload...` works
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from photo_upload.aws.storage import StoredObject
from photo_upload.core.config import settings
from photo_upload.core.errors import RecordNotFound, UploadFailed


def jpeg_bytes(size=(4, 4), color=(200, 150, 120)) -> bytes:
    img = Image.new("RGB", size, color=color)
    buf = BytesIO()
    img.save(buf, format="JPEG")
    return buf.getvalue()


# Marker prefix fake classifiers treat as "no face in this picture"
NO_FACE = b"NOFACE"


class FakeFaces:
    """Face classifier double: rejects buffers starting with NO_FACE.

    With ``error`` set, raises it for every buffer, or only for buffers
    starting with ``error_prefix`` when one is given.
    """

    def __init__(self, error=None, error_prefix=None):
        self.calls = []
        self.error = error
        self.error_prefix = error_prefix

    def has_face(self, data_bytes):
        self.calls.append(data_bytes)
        if self.error is not None and (
            self.error_prefix is None or data_bytes.startswith(self.error_prefix)
        ):
            raise self.error
        return not data_bytes.startswith(NO_FACE)


class FakeBlobStore:
    """In-memory blob store; every signed URL is unique."""

    def __init__(self, fail_keys=()):
        self.objects = {}
        self.puts = []
        self.deleted = []
        self.signed = 0
        self.fail_keys = set(fail_keys)

    def put(self, key, data_bytes, content_type):
        self.puts.append(key)
        if key in self.fail_keys:
            raise UploadFailed(f"Failed to store {key}: boom")
        self.objects[key] = (data_bytes, content_type)

    def signed_url(self, key):
        self.signed += 1
        return f"https://blobs.example/{key}?sig={self.signed}"

    def list_objects(self, prefix):
        return [
            StoredObject(key=k, size=len(v[0]))
            for k, v in sorted(self.objects.items())
            if k.startswith(prefix)
        ]

    def delete(self, key):
        self.deleted.append(key)
        self.objects.pop(key, None)

    @property
    def calls(self):
        return len(self.puts) + len(self.deleted) + self.signed


class FakeRecords:
    """User records keyed by uid, updated with dot-path fields."""

    def __init__(self, *uids):
        self.records = {uid: {"uid": uid} for uid in uids}
        self.updates = []

    def update(self, uid, fields):
        self.updates.append((uid, dict(fields)))
        if uid not in self.records:
            raise RecordNotFound(f"No user record for uid {uid}")
        for path, value in fields.items():
            target = self.records[uid]
            *parents, leaf = path.split(".")
            for p in parents:
                target = target.setdefault(p, {})
            target[leaf] = value


@pytest.fixture
def aws_mock(monkeypatch):
    with mock_aws():
        # Ensure our clients do not try to hit a custom endpoint in tests
        monkeypatch.setattr(settings, "aws_endpoint_url", None)
        monkeypatch.setattr(settings, "aws_region", "us-east-1")
        monkeypatch.setattr(settings, "bucket_name", "test-bucket")
        monkeypatch.setattr(settings, "users_table_name", "Users")
        monkeypatch.setattr(settings, "url_expiry", None)
        monkeypatch.setattr(settings, "url_expires_at", "2500-03-01")
        monkeypatch.setattr(settings, "s3_signature_version", "s3")

        s3 = boto3.client("s3", region_name=settings.aws_region)
        s3.create_bucket(Bucket=settings.bucket_name)

        dynamodb = boto3.client("dynamodb", region_name=settings.aws_region)
        dynamodb.create_table(
            TableName=settings.users_table_name,
            AttributeDefinitions=[{"AttributeName": "uid", "AttributeType": "S"}],
            KeySchema=[{"AttributeName": "uid", "KeyType": "HASH"}],
            BillingMode="PAY_PER_REQUEST",
        )

        yield
