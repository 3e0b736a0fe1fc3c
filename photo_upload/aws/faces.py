from typing import Optional
import logging
from io import BytesIO
from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image
from ..core.errors import ClassifierUnavailable

"""Face detection through Amazon Rekognition.
"""

logger = logging.getLogger(__name__)

# Formats DetectFaces accepts as raw bytes
REKOGNITION_FORMATS = {"JPEG", "PNG"}


def _rekognition_bytes(data_bytes: bytes) -> bytes:
    """Return bytes Rekognition can read, re-encoding other formats as JPEG.

    Only the copy sent for classification is converted. Bytes Pillow cannot
    open are passed through unchanged and left for Rekognition to reject.
    """
    try:
        with Image.open(BytesIO(data_bytes)) as img:
            fmt = (img.format or "").upper()
            if fmt in REKOGNITION_FORMATS:
                return data_bytes
            rgb = img if img.mode == "RGB" else img.convert("RGB")
            buf = BytesIO()
            rgb.save(buf, format="JPEG", quality=95)
            logger.debug("Re-encoded %s image as JPEG for face detection", fmt or "unknown")
            return buf.getvalue()
    except Exception:
        return data_bytes


class FaceClassifier:
    """Answers whether an image buffer shows an acceptable number of faces.

    A buffer passes when ``min_faces <= count`` and, if ``max_faces`` is set,
    ``count <= max_faces``. Every call is a fresh DetectFaces request.
    """

    def __init__(self, client, min_faces: int = 1, max_faces: Optional[int] = None):
        self.client = client
        self.min_faces = max(1, int(min_faces))
        self.max_faces = max_faces

    def count_faces(self, data_bytes: bytes) -> int:
        try:
            resp = self.client.detect_faces(
                Image={"Bytes": _rekognition_bytes(data_bytes)},
                Attributes=["DEFAULT"],
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "InvalidImageFormatException":
                logger.warning("Face detection could not read image: %s", e)
                return 0
            raise ClassifierUnavailable(f"Face detection failed: {e}") from e
        except BotoCoreError as e:
            raise ClassifierUnavailable(f"Face detection failed: {e}") from e
        return len(resp.get("FaceDetails") or [])

    def has_face(self, data_bytes: bytes) -> bool:
        count = self.count_faces(data_bytes)
        if count < self.min_faces:
            return False
        return self.max_faces is None or count <= self.max_faces
