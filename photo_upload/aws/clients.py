from typing import Optional
import boto3
from botocore.client import Config
from ..core.config import settings

def session() -> boto3.session.Session:
    """Create a boto3 session from the configured credentials/region."""
    return boto3.session.Session(
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        region_name=settings.aws_region,
    )

def s3(sess: Optional[boto3.session.Session] = None):
    """Create an S3 client using our configured region/endpoint/creds."""
    return (sess or session()).client(
        "s3",
        endpoint_url=settings.aws_endpoint_url,
        config=Config(signature_version=settings.s3_signature_version),
    )

def users_table(sess: Optional[boto3.session.Session] = None):
    """Return a DynamoDB Table handle for the configured users table.

    Resources are not thread-safe; callers create one per operation.
    """
    return (sess or session()).resource(
        "dynamodb",
        endpoint_url=settings.aws_endpoint_url,
    ).Table(settings.users_table_name)

def rekognition(sess: Optional[boto3.session.Session] = None):
    """Create a Rekognition client for face detection."""
    return (sess or session()).client("rekognition", endpoint_url=settings.aws_endpoint_url)
