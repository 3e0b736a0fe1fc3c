"""Process-wide service wiring.

Clients are created once, at application startup or on first use, in a fixed
order: credentials, then storage, then the users table factory, then the face
classifier. They live for the lifetime of the process. DynamoDB `Table`
resources are the exception and are built per update.
"""

import logging
from fastapi import Request
from .aws import clients
from .aws.faces import FaceClassifier
from .aws.records import UserRecordStore
from .aws.storage import BlobStore, parse_expiry_date
from .core.config import settings
from .services.pictures import PictureService

logger = logging.getLogger(__name__)


def build_picture_service() -> PictureService:
    sess = clients.session()
    blobs = BlobStore(
        clients.s3(sess),
        settings.bucket_name,
        url_expiry=settings.url_expiry,
        expires_at=parse_expiry_date(settings.url_expires_at),
    )
    records = UserRecordStore(clients.users_table)
    faces = FaceClassifier(
        clients.rekognition(sess),
        min_faces=settings.face_min_count,
        max_faces=settings.face_max_count,
    )
    logger.info(
        "Picture service ready (bucket=%s, table=%s)",
        settings.bucket_name,
        settings.users_table_name,
    )
    return PictureService(
        blobs,
        records,
        faces,
        image_prefix=settings.image_prefix,
        gated_slots=settings.gated_slots(),
    )


def get_picture_service(request: Request) -> PictureService:
    service = getattr(request.app.state, "picture_service", None)
    if service is None:
        service = build_picture_service()
        request.app.state.picture_service = service
    return service
