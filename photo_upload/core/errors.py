"""Error taxonomy shared by the adapters, the picture service and the routes.

Every error carries the HTTP status the API answers with; the message is
surfaced to the caller as ``{"error": message}``.
"""


class PhotoServiceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequest(PhotoServiceError):
    """A required field (uid, file) is missing or malformed."""
    status_code = 400


class ValidationFailed(PhotoServiceError):
    """The face check rejected an image."""
    status_code = 400


class UploadFailed(PhotoServiceError):
    status_code = 500


class ClassifierUnavailable(PhotoServiceError):
    status_code = 500


class PersistenceFailed(PhotoServiceError):
    status_code = 500


class RecordNotFound(PersistenceFailed):
    """The user record to update does not exist."""
