# hse_guardian/schemas/camera.py
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Literal, Optional


class CameraOut(BaseModel):
    id: str
    name: str
    location: str
    connection_type: str
    device_ref: Optional[str] = None
    stream_url: Optional[str] = None
    status: str
    active: bool
    risk_score: float
    last_detection_at: Optional[datetime] = None
    fps: int = 0

    class Config:
        from_attributes = True


class CameraCreate(BaseModel):
    id: Optional[str] = None        # generated when omitted
    name: str = "Camera"
    location: str = "Unassigned"
    connection_type: Literal["local", "network"] = "local"
    device_ref: Optional[str] = None
    stream_url: Optional[str] = None


class CameraUpdate(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None
    connection_type: Optional[Literal["local", "network"]] = None
    device_ref: Optional[str] = None
    stream_url: Optional[str] = None

    @field_validator("name", "location", "connection_type")
    @classmethod
    def not_null(cls, v):
        # Omit a field to keep it; only device_ref/stream_url may be cleared
        if v is None:
            raise ValueError("must not be null")
        return v


class ViewState(BaseModel):
    selected_camera_id: Optional[str] = None
    page: int = Field(default=0, ge=0)
    risk_filter: Literal["all", "high"] = "all"
    total_pages: int = 0
    visible_camera_ids: list[str] = []


class ViewUpdate(BaseModel):
    selected_camera_id: Optional[str] = None
    page: Optional[int] = Field(default=None, ge=0)
    risk_filter: Optional[Literal["all", "high"]] = None
