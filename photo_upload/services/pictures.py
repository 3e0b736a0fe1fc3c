"""Picture upload orchestration.

Each operation runs the same pipeline: check required inputs, classify every
gated image, upload the accepted images concurrently (each upload yields a
signed URL), then write the resolved URLs onto the user record.

All face checks finish before the first upload is issued, so a rejected image
leaves no trace in storage. Uploads are joined, never cancelled: when one of
them fails the others still run to completion and their blobs stay in the
bucket, and the record is not updated.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, Iterable, List, Mapping, Optional, Sequence

from fastapi.concurrency import run_in_threadpool

from ..core.errors import InvalidRequest, ValidationFailed
from ..core.models import PictureRecord, SignedFile

logger = logging.getLogger(__name__)

CAMERA = "camera"
PROFILE_PIC = "profilePic"
UPLOAD_GALLERY_SLOTS = 4
MODIFY_GALLERY_SLOTS = 3


def gallery_slot(index: int) -> str:
    return f"gallery_{index}"


def slot_label(slot: str) -> str:
    """Human readable slot name used in rejection messages."""
    if slot == CAMERA:
        return "Camera photo"
    if slot == PROFILE_PIC:
        return "Profile picture"
    if slot.startswith("gallery_"):
        return f"Gallery picture {int(slot.split('_', 1)[1]) + 1}"
    return slot


@dataclass(frozen=True)
class SlotFile:
    data: bytes
    content_type: str


@dataclass(frozen=True)
class GalleryInput:
    """One gallery position: a replacement file, a URL to keep, or neither."""
    file: Optional[SlotFile] = None
    url: Optional[str] = None


async def gather_settled(aws: Iterable[Awaitable[Any]]) -> List[Any]:
    """Await all tasks, then re-raise the first failure in submission order."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


class PictureService:
    def __init__(
        self,
        blobs,
        records,
        faces,
        *,
        image_prefix: str = "user_images",
        gated_slots: Sequence[str] = (),
        gallery_slots: int = UPLOAD_GALLERY_SLOTS,
        modify_slots: int = MODIFY_GALLERY_SLOTS,
    ):
        self.blobs = blobs
        self.records = records
        self.faces = faces
        self.image_prefix = image_prefix.rstrip("/")
        self.gallery_slots = gallery_slots
        self.modify_slots = modify_slots
        # camera is always face checked when the gate is on
        self.gated_slots = {CAMERA, *gated_slots}

    def user_prefix(self, uid: str) -> str:
        return f"{self.image_prefix}/{uid}/"

    def blob_key(self, uid: str, slot: str) -> str:
        return f"{self.user_prefix(uid)}{uid}_{slot}.jpg"

    def upload_slots(self) -> List[str]:
        return [CAMERA] + [gallery_slot(i) for i in range(self.gallery_slots)] + [PROFILE_PIC]

    @staticmethod
    def _require_uid(uid: Optional[str]) -> str:
        if not uid or not uid.strip():
            raise InvalidRequest("No uid supplied")
        return uid

    async def _check_faces(self, files: Mapping[str, SlotFile]) -> None:
        """Classify every file concurrently, then judge the verdicts.

        A rejected image wins over a classifier error: the first rejected slot
        in slot order raises ``ValidationFailed``; only when no slot was
        rejected is the first classifier error re-raised.
        """
        slots = list(files)
        verdicts = await asyncio.gather(
            *(run_in_threadpool(self.faces.has_face, files[slot].data) for slot in slots),
            return_exceptions=True,
        )
        for slot, ok in zip(slots, verdicts):
            if ok is False:
                logger.warning("Face check rejected %s", slot)
                raise ValidationFailed(f"{slot_label(slot)} must contain a face.")
        for verdict in verdicts:
            if isinstance(verdict, BaseException):
                raise verdict

    async def _upload(self, uid: str, slot: str, file: SlotFile) -> str:
        key = self.blob_key(uid, slot)
        await run_in_threadpool(self.blobs.put, key, file.data, file.content_type)
        return await run_in_threadpool(self.blobs.signed_url, key)

    async def _upload_all(self, uid: str, files: Mapping[str, SlotFile]) -> Dict[str, str]:
        slots = list(files)
        urls = await gather_settled(self._upload(uid, slot, files[slot]) for slot in slots)
        return dict(zip(slots, urls))

    async def _persist(self, uid: str, fields: Mapping[str, Any]) -> None:
        await run_in_threadpool(self.records.update, uid, fields)

    async def upload_pictures(
        self,
        uid: Optional[str],
        files: Mapping[str, Optional[SlotFile]],
        blur: Optional[str] = None,
        face_gate: bool = True,
    ) -> PictureRecord:
        """Upload the camera photo plus optional gallery/profile pictures.

        ``pictures`` on the user record is replaced by the returned record.
        The gallery always has one entry per slot, ``""`` where no file was
        sent.
        """
        uid = self._require_uid(uid)
        known = self.upload_slots()
        unknown = [slot for slot in files if slot not in known]
        if unknown:
            raise InvalidRequest(f"Unknown picture slot: {unknown[0]}")
        if files.get(CAMERA) is None:
            raise InvalidRequest("Camera photo is required.")

        present = {slot: files[slot] for slot in known if files.get(slot) is not None}
        if face_gate:
            await self._check_faces(
                {slot: f for slot, f in present.items() if slot in self.gated_slots}
            )

        logger.info("Uploading %d picture(s) for user %s", len(present), uid)
        urls = await self._upload_all(uid, present)

        pictures = PictureRecord(
            camera=urls[CAMERA],
            gallery=[urls.get(gallery_slot(i), "") for i in range(self.gallery_slots)],
            profilePic=urls.get(PROFILE_PIC, ""),
            blur=blur == "true",
        )
        await self._persist(uid, {"pictures": pictures.model_dump()})
        return pictures

    async def upload_profile_pic(self, uid: Optional[str], file: Optional[SlotFile]) -> str:
        uid = self._require_uid(uid)
        if file is None:
            raise InvalidRequest("No profile picture supplied")
        await self._check_faces({PROFILE_PIC: file})
        url = await self._upload(uid, PROFILE_PIC, file)
        await self._persist(uid, {"pictures.profilePic": url})
        return url

    async def modify_gallery(
        self, uid: Optional[str], positions: Sequence[GalleryInput]
    ) -> List[Optional[str]]:
        """Rebuild the gallery from replacement files, kept URLs and blanks.

        Positions are resolved independently. The whole gallery field is
        overwritten, so callers resend every URL they want to keep.
        """
        uid = self._require_uid(uid)
        if len(positions) > self.modify_slots:
            raise InvalidRequest(f"At most {self.modify_slots} gallery pictures are allowed")
        positions = list(positions) + [GalleryInput()] * (self.modify_slots - len(positions))

        files = {
            gallery_slot(i): p.file for i, p in enumerate(positions) if p.file is not None
        }
        await self._check_faces(files)
        urls = await self._upload_all(uid, files)

        gallery: List[Optional[str]] = []
        for i, position in enumerate(positions):
            slot = gallery_slot(i)
            if slot in urls:
                gallery.append(urls[slot])
            elif position.url:
                gallery.append(position.url)
            else:
                gallery.append(None)

        await self._persist(uid, {"pictures.gallery": gallery})
        return gallery

    async def list_signed_urls(self, uid: Optional[str]) -> List[SignedFile]:
        uid = self._require_uid(uid)
        objects = await run_in_threadpool(self.blobs.list_objects, self.user_prefix(uid))
        objects = [obj for obj in objects if not obj.is_pseudo_directory]
        urls = await gather_settled(
            run_in_threadpool(self.blobs.signed_url, obj.key) for obj in objects
        )
        return [SignedFile(name=obj.name, url=url) for obj, url in zip(objects, urls)]

    async def delete_user_images(self, uid: Optional[str]) -> int:
        """Delete every blob under the user's prefix. The record is left as is."""
        uid = self._require_uid(uid)
        objects = await run_in_threadpool(self.blobs.list_objects, self.user_prefix(uid))
        await gather_settled(run_in_threadpool(self.blobs.delete, obj.key) for obj in objects)
        logger.info("Deleted %d image(s) for user %s", len(objects), uid)
        return len(objects)
