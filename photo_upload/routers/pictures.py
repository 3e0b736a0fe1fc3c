from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form
from typing import Optional, NoReturn
import logging
from ..core.errors import PhotoServiceError
from ..core.models import (
    DeleteResponse,
    ErrorResponse,
    GalleryResponse,
    ListResponse,
    ProfilePicResponse,
    UploadPicturesResponse,
)
from ..core.config import settings
from ..deps import get_picture_service
from ..services.pictures import (
    CAMERA,
    PROFILE_PIC,
    GalleryInput,
    PictureService,
    SlotFile,
    gallery_slot,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["pictures"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing field or rejected image"},
    500: {"model": ErrorResponse, "description": "Storage, database or face detection failure"},
}


async def _read_slot(upload: Optional[UploadFile]) -> Optional[SlotFile]:
    """Read a multipart file field; an empty part counts as absent."""
    if upload is None:
        return None
    data = await upload.read()
    if not data:
        return None
    return SlotFile(data=data, content_type=upload.content_type or "image/jpeg")


def _fail(e: Exception, action: str) -> NoReturn:
    if isinstance(e, PhotoServiceError):
        if e.status_code >= 500:
            logger.exception("Failed to %s", action)
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    logger.exception("Failed to %s", action)
    raise HTTPException(status_code=500, detail=str(e)) from e


@router.post(
    "/upload-pictures",
    response_model=UploadPicturesResponse,
    responses=ERROR_RESPONSES,
    summary="Upload camera, gallery and profile pictures",
    description=(
        "Multipart form-data.\n\n"
        "Fields:\n"
        "- `uid` (required): user whose record receives the pictures.\n"
        "- `blur`: `\"true\"` to flag the pictures as blurred.\n"
        "- `camera` (required): camera capture, must contain a face.\n"
        "- `gallery0`..`gallery3`, `profilePic` (optional): more images.\n\n"
        "Replaces `pictures` on the user record."
    ),
)
async def upload_pictures(
    uid: Optional[str] = Form(None),
    blur: Optional[str] = Form(None),
    camera: Optional[UploadFile] = File(None),
    gallery0: Optional[UploadFile] = File(None),
    gallery1: Optional[UploadFile] = File(None),
    gallery2: Optional[UploadFile] = File(None),
    gallery3: Optional[UploadFile] = File(None),
    profilePic: Optional[UploadFile] = File(None),
    service: PictureService = Depends(get_picture_service),
):
    try:
        files = {CAMERA: await _read_slot(camera)}
        for i, upload in enumerate([gallery0, gallery1, gallery2, gallery3]):
            files[gallery_slot(i)] = await _read_slot(upload)
        files[PROFILE_PIC] = await _read_slot(profilePic)

        pictures = await service.upload_pictures(
            uid, files, blur=blur, face_gate=settings.face_gate_upload
        )
        return UploadPicturesResponse(pictures=pictures)
    except Exception as e:
        _fail(e, "upload pictures")


@router.post(
    "/upload-profile-pic",
    response_model=ProfilePicResponse,
    responses=ERROR_RESPONSES,
    summary="Upload a profile picture",
    description="Face-checks `profilePic` and stores its URL at `pictures.profilePic`.",
)
async def upload_profile_pic(
    uid: Optional[str] = Form(None),
    profilePic: Optional[UploadFile] = File(None),
    service: PictureService = Depends(get_picture_service),
):
    try:
        url = await service.upload_profile_pic(uid, await _read_slot(profilePic))
        return ProfilePicResponse(profilePic=url)
    except Exception as e:
        _fail(e, "upload profile picture")


@router.post(
    "/modify-gallery-pictures",
    response_model=GalleryResponse,
    responses=ERROR_RESPONSES,
    summary="Replace, keep or clear gallery pictures",
    description=(
        "For each index 0..2 send either a file `gallery{i}` (face-checked and uploaded), "
        "a URL `gallery{i}_url` to keep, or nothing to clear the position.\n\n"
        "The gallery on the user record is overwritten with the resulting 3 entries."
    ),
)
async def modify_gallery_pictures(
    uid: Optional[str] = Form(None),
    gallery0: Optional[UploadFile] = File(None),
    gallery1: Optional[UploadFile] = File(None),
    gallery2: Optional[UploadFile] = File(None),
    gallery0_url: Optional[str] = Form(None),
    gallery1_url: Optional[str] = Form(None),
    gallery2_url: Optional[str] = Form(None),
    service: PictureService = Depends(get_picture_service),
):
    try:
        positions = []
        for upload, url in [
            (gallery0, gallery0_url),
            (gallery1, gallery1_url),
            (gallery2, gallery2_url),
        ]:
            positions.append(GalleryInput(file=await _read_slot(upload), url=(url or "").strip() or None))
        gallery = await service.modify_gallery(uid, positions)
        return GalleryResponse(gallery=gallery)
    except Exception as e:
        _fail(e, "modify gallery pictures")


@router.post(
    "/delete-user-images/{uid}",
    response_model=DeleteResponse,
    responses=ERROR_RESPONSES,
    summary="Delete all images of a user",
    description="Removes every stored image of the user. The user record is not changed.",
)
@router.post("/delete-user-images/", include_in_schema=False)
async def delete_user_images(
    uid: str = "",
    service: PictureService = Depends(get_picture_service),
):
    try:
        deleted = await service.delete_user_images(uid)
        return DeleteResponse(deleted=deleted)
    except Exception as e:
        _fail(e, "delete user images")


@router.get(
    "/list-signed-urls/{uid}",
    response_model=ListResponse,
    responses=ERROR_RESPONSES,
    summary="List a user's images with fresh signed URLs",
)
@router.get("/list-signed-urls/", include_in_schema=False)
async def list_signed_urls(
    uid: str = "",
    service: PictureService = Depends(get_picture_service),
):
    try:
        files = await service.list_signed_urls(uid)
        return ListResponse(files=files)
    except Exception as e:
        _fail(e, "list signed urls")
