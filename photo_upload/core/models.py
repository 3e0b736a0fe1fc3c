from typing import Optional, List
from pydantic import BaseModel, Field

class PictureRecord(BaseModel):
    camera: str = ""
    gallery: List[Optional[str]] = Field(default_factory=list)
    profilePic: str = ""
    blur: bool = False

class UploadPicturesResponse(BaseModel):
    success: bool = True
    pictures: PictureRecord

class ProfilePicResponse(BaseModel):
    success: bool = True
    profilePic: str

class GalleryResponse(BaseModel):
    success: bool = True
    gallery: List[Optional[str]]

class DeleteResponse(BaseModel):
    success: bool = True
    deleted: int

class SignedFile(BaseModel):
    name: str
    url: str

class ListResponse(BaseModel):
    files: List[SignedFile]

class ErrorResponse(BaseModel):
    error: str
