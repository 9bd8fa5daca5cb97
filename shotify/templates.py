"""
Template catalog: lookups and the built-in seed set.
"""

from __future__ import annotations

import logging
from typing import Optional

from shotify.db import DbClient
from shotify.errors import NotFoundError
from shotify.models import TemplateRecord, is_valid_id, new_id

logger = logging.getLogger(__name__)

IOS_EXPORTS = [
    {"name": "iPhone 6.7\"", "platform": "ios", "width": 1290, "height": 2796},
    {"name": "iPhone 6.5\"", "platform": "ios", "width": 1242, "height": 2688},
    {"name": "iPhone 5.5\"", "platform": "ios", "width": 1242, "height": 2208},
]

ANDROID_EXPORTS = [
    {"name": "Android Phone", "platform": "android", "width": 1080, "height": 1920},
    {"name": "Android Phone Large", "platform": "android", "width": 1440, "height": 2560},
]


def _text_layer(layer_id: str, content: str, *, y: int, font_size: int, color: str) -> dict:
    headline = layer_id == "title"
    return {
        "id": layer_id,
        "type": "text",
        "name": "Headline" if headline else "Subtitle",
        "x": 0,
        "y": y,
        "width": 1242,
        "height": font_size * 3,
        "rotation": 0,
        "visible": True,
        "locked": False,
        "opacity": 1,
        "zIndex": 2,
        "properties": {
            "content": content,
            "fontFamily": "Inter",
            "fontSize": font_size,
            "fontWeight": "700" if headline else "400",
            "color": color,
            "align": "center",
            "lineHeight": 1.2,
            "position": "top",
            "anchorX": "center",
            "anchorY": "top",
        },
    }


def _screenshot_layer(*, y: int, width: int, height: int, position: str = "center") -> dict:
    return {
        "id": "screenshot",
        "type": "screenshot",
        "name": "Screenshot",
        "x": 0,
        "y": y,
        "width": width,
        "height": height,
        "rotation": 0,
        "visible": True,
        "locked": False,
        "opacity": 1,
        "zIndex": 1,
        "properties": {
            "src": "",
            "placeholder": "Drop your screenshot here",
            "borderRadius": 48,
            "shadow": True,
            "shadowBlur": 40,
            "shadowColor": "rgba(0,0,0,0.25)",
            "shadowOffsetX": 0,
            "shadowOffsetY": 20,
            "position": position,
            "anchorX": "center",
            "scale": 1,
        },
    }


def _background_layer(width: int, height: int, fill: str) -> dict:
    return {
        "id": "background",
        "type": "shape",
        "name": "Background",
        "x": 0,
        "y": 0,
        "width": width,
        "height": height,
        "rotation": 0,
        "visible": True,
        "locked": True,
        "opacity": 1,
        "zIndex": 0,
        "properties": {
            "fill": fill,
            "stroke": "",
            "strokeWidth": 0,
            "cornerRadius": 0,
            "shapeType": "rect",
        },
    }


def builtin_templates() -> list[TemplateRecord]:
    """Return a fresh copy of the built-in catalog, one entry per preset."""
    return [
        TemplateRecord(
            id=new_id(),
            name="Minimal Headline",
            platform="ios",
            category="minimal",
            description="Bold headline above a centered device screenshot.",
            thumbnail="/templates/minimal-headline.png",
            json_config={
                "canvas": {"width": 1242, "height": 2688, "backgroundColor": "#D8E5D8"},
                "layers": [
                    _background_layer(1242, 2688, "#D8E5D8"),
                    _text_layer("title", "Your app, at a glance", y=160, font_size=96, color="#111111"),
                    _text_layer("subtitle", "Describe the key feature", y=420, font_size=48, color="#333333"),
                    _screenshot_layer(y=720, width=1000, height=1900),
                ],
                "exports": [dict(preset) for preset in IOS_EXPORTS],
            },
        ),
        TemplateRecord(
            id=new_id(),
            name="Bottom Overflow",
            platform="ios",
            category="bold",
            description="Screenshot bleeding off the bottom edge under a dark banner.",
            thumbnail="/templates/bottom-overflow.png",
            json_config={
                "canvas": {"width": 1290, "height": 2796, "backgroundColor": "#111827"},
                "layers": [
                    _background_layer(1290, 2796, "#111827"),
                    _text_layer("title", "Built for speed", y=200, font_size=104, color="#FFFFFF"),
                    _screenshot_layer(y=820, width=1100, height=2200, position="bottom-overflow"),
                ],
                "exports": [dict(preset) for preset in IOS_EXPORTS],
            },
        ),
        TemplateRecord(
            id=new_id(),
            name="Play Store Classic",
            platform="android",
            category="minimal",
            description="Headline and screenshot sized for Google Play phone listings.",
            thumbnail="/templates/play-store-classic.png",
            json_config={
                "canvas": {"width": 1080, "height": 1920, "backgroundColor": "#E8F0FE"},
                "layers": [
                    _background_layer(1080, 1920, "#E8F0FE"),
                    _text_layer("title", "Everything in one place", y=120, font_size=80, color="#202124"),
                    _screenshot_layer(y=480, width=860, height=1400),
                ],
                "exports": [dict(preset) for preset in ANDROID_EXPORTS],
            },
        ),
        TemplateRecord(
            id=new_id(),
            name="Cross Platform Showcase",
            platform="both",
            category="showcase",
            description="One layout exported for both the App Store and Google Play.",
            thumbnail="/templates/cross-platform-showcase.png",
            json_config={
                "canvas": {"width": 1242, "height": 2688, "backgroundColor": "#FFF7ED"},
                "layers": [
                    _background_layer(1242, 2688, "#FFF7ED"),
                    _text_layer("title", "Ship everywhere", y=160, font_size=96, color="#7C2D12"),
                    _text_layer("subtitle", "One design, every store", y=420, font_size=48, color="#9A3412"),
                    _screenshot_layer(y=720, width=1000, height=1900),
                ],
                "exports": [dict(preset) for preset in IOS_EXPORTS + ANDROID_EXPORTS],
            },
        ),
    ]


class TemplateService:
    def __init__(self, db: DbClient):
        self.db = db

    def find_all(self, platform: str | None = None) -> list[TemplateRecord]:
        return self.db.list_templates(platform or None)

    def find_by_id(self, template_id: str) -> Optional[TemplateRecord]:
        """Return the template, or ``None`` when it does not exist."""
        if not is_valid_id(template_id):
            return None
        return self.db.get_template(template_id)

    def get_template(self, template_id: str) -> TemplateRecord:
        template = self.find_by_id(template_id)
        if template is None:
            raise NotFoundError("template not found", message="Template not found")
        return template

    def seed_templates(self) -> int:
        """
        Insert the built-in catalog when no template exists yet.

        Returns the number of inserted templates (0 when already seeded).
        """
        existing = self.db.count_templates()
        if existing:
            logger.info("Template catalog already holds %d entries; skipping seed", existing)
            return 0
        inserted = self.db.insert_templates(builtin_templates())
        logger.info("Seeded %d built-in templates", inserted)
        return inserted
