import os
from dotenv import load_dotenv
from pydantic import BaseModel
from typing import Optional, List

load_dotenv()


def _optional_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    return int(value) if value else None


class Settings(BaseModel):
    """for reading environment-driven configuration.

    Values have sensible defaults for LocalStack-based development.
    """
    aws_access_key_id: str = os.getenv("AWS_ACCESS_KEY_ID", "test")
    aws_secret_access_key: str = os.getenv("AWS_SECRET_ACCESS_KEY", "test")
    aws_region: str = os.getenv("AWS_REGION", "us-east-1")
    aws_endpoint_url: Optional[str] = os.getenv("AWS_ENDPOINT_URL")
    bucket_name: str = os.getenv("BUCKET_NAME", "user-pictures")
    users_table_name: str = os.getenv("USERS_TABLE", "users")
    image_prefix: str = os.getenv("IMAGE_PREFIX", "user_images")
    # Signed read URLs expire on URL_EXPIRES_AT unless URL_EXPIRY (seconds) is set
    url_expires_at: str = os.getenv("URL_EXPIRES_AT", "2500-03-01")
    url_expiry: Optional[int] = _optional_int("URL_EXPIRY")
    # "s3" query auth carries an absolute Expires; "s3v4" caps URLs at 7 days
    s3_signature_version: str = os.getenv("S3_SIGNATURE_VERSION", "s3")

    face_min_count: int = max(1, int(os.getenv("FACE_MIN_COUNT", "1")))
    face_max_count: Optional[int] = _optional_int("FACE_MAX_COUNT")
    face_gate_upload: bool = os.getenv("FACE_GATE_UPLOAD", "true").lower() == "true"
    face_gated_slots: str = os.getenv("FACE_GATED_SLOTS", "camera")

    cors_origins: str = os.getenv("CORS_ORIGINS", "*")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8080"))

    def gated_slots(self) -> List[str]:
        return [s.strip() for s in self.face_gated_slots.split(",") if s.strip()]

    def allowed_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

settings = Settings()
