from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class NoticeKind(str, Enum):
    SUCCESS = "success"
    VALIDATION = "validation"
    FAILURE = "failure"
    BUSY = "busy"


class Notice(BaseModel):
    """User-facing outcome of a flow operation."""

    kind: NoticeKind
    message: str
    submission_id: Optional[str] = Field(None, alias="submissionId")
    image_url: Optional[str] = Field(None, alias="imageUrl")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def ok(self) -> bool:
        return self.kind == NoticeKind.SUCCESS


class Submission(BaseModel):
    id: str
    identifier: str
    timestamp: str
    image_url: str = Field("", alias="imageUrl")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def has_image(self) -> bool:
        return bool(self.image_url)


class SubmissionList(BaseModel):
    identifier_field: str = Field(..., alias="identifierField")
    count: int
    submissions: list[Submission]

    model_config = ConfigDict(populate_by_name=True)


class SubmitRequest(BaseModel):
    identifier: str = ""


class DecisionRequest(BaseModel):
    approved: bool


class SignalState(BaseModel):
    led: Optional[str] = None


class CaptureState(BaseModel):
    has_preview: bool = Field(..., alias="hasPreview")
    preview_source: Optional[str] = Field(None, alias="previewSource")
    preview_bytes: int = Field(0, alias="previewBytes")
    identifier: str = ""
    uploading: bool = False
    camera_ready: bool = Field(False, alias="cameraReady")
    camera_error: Optional[str] = Field(None, alias="cameraError")

    model_config = ConfigDict(populate_by_name=True)


class OverlayState(BaseModel):
    image_url: Optional[str] = Field(None, alias="imageUrl")

    model_config = ConfigDict(populate_by_name=True)
