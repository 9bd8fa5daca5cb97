"""
Domain records shared by the stores and services.

Configs (template ``json_config`` and project ``project_config``) are kept as
plain JSON-compatible dicts; their shape is validated at the HTTP boundary by
``shotify.schemas``.
"""

from __future__ import annotations

import copy
import re
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")

# Template fields carried over into a new project.
COPIED_CONFIG_KEYS = ("canvas", "layers", "exports", "slides")

PLATFORMS = ("ios", "android", "both")


def new_id() -> str:
    return uuid.uuid4().hex


def is_valid_id(value: str | None) -> bool:
    return bool(value) and bool(_ID_PATTERN.match(value))


def build_project_config(template_config: dict) -> dict:
    """
    Return a project config cloned from a template config.

    Every copied field is deep-copied so the project never shares nested
    lists or dicts with the template.
    """
    config: dict[str, Any] = {
        "canvas": copy.deepcopy(template_config.get("canvas") or {}),
        "layers": copy.deepcopy(template_config.get("layers") or []),
        "images": [],
        "exports": copy.deepcopy(template_config.get("exports") or []),
    }
    if template_config.get("slides") is not None:
        config["slides"] = copy.deepcopy(template_config["slides"])
    return config


@dataclass
class UserRecord:
    id: str
    email: str
    password_hash: str
    name: str
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        # The credential hash never leaves the service layer.
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class TemplateRecord:
    id: str
    name: str
    platform: str
    json_config: dict
    description: str = ""
    category: str = ""
    thumbnail: str = ""
    is_active: bool = True
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "platform": self.platform,
            "description": self.description,
            "category": self.category,
            "thumbnail": self.thumbnail,
            "is_active": self.is_active,
            "json_config": self.json_config,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class ProjectRecord:
    id: str
    user_id: str
    template_id: str
    name: str
    project_config: dict
    thumbnail: str = ""
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "template_id": self.template_id,
            "name": self.name,
            "thumbnail": self.thumbnail,
            "project_config": self.project_config,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class ProjectPatch:
    """Partial update; empty strings and ``None`` mean "leave unchanged"."""

    name: Optional[str] = None
    thumbnail: Optional[str] = None
    project_config: Optional[dict] = None


@dataclass
class UploadResult:
    url: str
    key: str
    filename: str
    size: int

    def as_dict(self) -> dict:
        return {
            "url": self.url,
            "key": self.key,
            "filename": self.filename,
            "size": self.size,
        }
