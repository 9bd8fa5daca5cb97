"""
Pydantic schemas for the Shotify HTTP API.

Fields are exposed in camelCase on the wire; snake_case is accepted on input
as well.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_serializer
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OpenApiModel(ApiModel):
    """Model that keeps unknown keys, for client-owned editor state."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )


class ApiResponse(BaseModel, Generic[T]):
    success: bool
    message: str
    data: Optional[T] = None
    error: Optional[str] = None


# Configs


class CanvasConfig(OpenApiModel):
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    background_color: Optional[str] = None


class ExportPreset(OpenApiModel):
    name: str
    platform: str = ""
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)


class ImageAsset(OpenApiModel):
    id: str
    url: str
    name: str = ""
    key: Optional[str] = None


class SlideData(OpenApiModel):
    id: str
    canvas: CanvasConfig
    layers: list[dict[str, Any]] = Field(default_factory=list)


class EditorConfig(ApiModel):
    canvas: CanvasConfig
    layers: list[dict[str, Any]] = Field(default_factory=list)
    exports: list[ExportPreset] = Field(default_factory=list)
    slides: Optional[list[SlideData]] = None

    @model_serializer(mode="wrap")
    def _omit_missing_slides(self, handler):
        data = handler(self)
        if data.get("slides") is None:
            data.pop("slides", None)
        return data


class TemplateConfig(EditorConfig):
    pass


class ProjectConfig(EditorConfig):
    images: list[ImageAsset] = Field(default_factory=list)

    def to_record(self) -> dict:
        """
        Dump to the stored (camelCase, JSON-compatible) representation.

        Only what the client sent is kept; the list fields are always present.
        """
        data = self.model_dump(by_alias=True, mode="json", exclude_unset=True)
        for key in ("layers", "images", "exports"):
            data.setdefault(key, [])
        return data


# Users and auth


class RegisterRequest(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)
    name: str = Field(default="", max_length=128)


class LoginRequest(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserOut(ApiModel):
    id: str
    email: str
    name: str
    created_at: datetime
    updated_at: datetime
    project_count: Optional[int] = None


class AuthOut(ApiModel):
    token: str
    user: UserOut


# Templates


class TemplateOut(ApiModel):
    id: str
    name: str
    platform: str
    description: str = ""
    category: str = ""
    thumbnail: str = ""
    is_active: bool = True
    json_config: TemplateConfig
    created_at: datetime
    updated_at: datetime


# Projects


class CreateProjectRequest(ApiModel):
    template_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=256)


class UpdateProjectRequest(ApiModel):
    name: Optional[str] = Field(default=None, max_length=256)
    thumbnail: Optional[str] = None
    project_config: Optional[ProjectConfig] = None


class ProjectOut(ApiModel):
    id: str
    user_id: str
    template_id: str
    name: str
    thumbnail: str = ""
    project_config: ProjectConfig
    template: Optional[TemplateOut] = None
    created_at: datetime
    updated_at: datetime


# Uploads


class UploadOut(ApiModel):
    url: str
    key: str
    filename: str
    size: int


class SignedUrlOut(ApiModel):
    url: str
    key: str
