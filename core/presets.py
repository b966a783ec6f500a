from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

from core.state import FitMode, MaskShape, OutputFormat, ProcessOptions


@dataclass(frozen=True, eq=False)
class Preset:
    preset_id: str
    label: str
    category: str  # social | icon | format | dev
    options: Dict[str, Any]

    def apply(self, options: ProcessOptions) -> ProcessOptions:
        values = dict(self.options)
        # A single given dimension means the other follows the aspect ratio
        if "target_width" in values and "target_height" not in values:
            values["target_height"] = None
        elif "target_height" in values and "target_width" not in values:
            values["target_width"] = None
        return replace(options, **values)


def _p(preset_id: str, label: str, category: str, **options: Any) -> Preset:
    return Preset(preset_id, label, category, options)


PNG = OutputFormat.PNG
JPEG = OutputFormat.JPEG

PRESETS: List[Preset] = [
    # Formats
    _p("fmt-webp", "Convert to WebP", "format", format=OutputFormat.WEBP, quality=0.8),
    _p("fmt-avif", "Convert to AVIF", "format", format=OutputFormat.AVIF, quality=0.8),
    _p("fmt-jpg-small", "Low Quality JPG", "format", format=JPEG, quality=0.5),
    # Icons & favicons
    _p("icon-16", "Favicon 16x16", "icon", target_width=16, target_height=16, fit=FitMode.CONTAIN, format=PNG),
    _p("icon-32", "Favicon 32x32", "icon", target_width=32, target_height=32, fit=FitMode.CONTAIN, format=PNG),
    _p("icon-192", "PWA 192", "icon", target_width=192, target_height=192, fit=FitMode.COVER, format=PNG),
    _p("icon-512", "PWA 512", "icon", target_width=512, target_height=512, fit=FitMode.COVER, format=PNG),
    _p("apple-180", "Apple Touch 180", "icon", target_width=180, target_height=180, fit=FitMode.COVER,
       mask=MaskShape.SQUARE, format=PNG),
    _p("slack-emoji", "Slack/Discord Emoji", "icon", target_width=128, target_height=128, fit=FitMode.CONTAIN,
       format=PNG),
    # Social
    _p("og-image", "OG Image (1200x630)", "social", target_width=1200, target_height=630, fit=FitMode.COVER,
       format=JPEG, quality=0.9),
    _p("twitter-card", "Twitter Card (800x418)", "social", target_width=800, target_height=418,
       fit=FitMode.COVER, format=JPEG),
    _p("insta-sq", "Instagram (1080px)", "social", target_width=1080, target_height=1080, fit=FitMode.COVER,
       format=JPEG),
    _p("story", "Story (1080x1920)", "social", target_width=1080, target_height=1920, fit=FitMode.COVER,
       format=JPEG),
    _p("yt-thumb", "YouTube Thumb (720p)", "social", target_width=1280, target_height=720, fit=FitMode.COVER,
       format=JPEG),
    _p("github-social", "GitHub Social (1280x640)", "social", target_width=1280, target_height=640,
       fit=FitMode.COVER, format=PNG),
    # Dev sizes
    _p("hd", "Full HD 1080p", "dev", target_width=1920, target_height=1080, fit=FitMode.CONTAIN),
    _p("4k", "4K UHD", "dev", target_width=3840, target_height=2160, fit=FitMode.CONTAIN),
    _p("avatar", "Circle Avatar 256", "dev", target_width=256, target_height=256, fit=FitMode.COVER,
       mask=MaskShape.CIRCLE, format=PNG),
    _p("thumb", "Thumbnail 400w", "dev", target_width=400),
    _p("email-banner", "Email Header 600w", "dev", target_width=600),
    _p("hero-sm", "Hero Mobile 480w", "dev", target_width=480),
    _p("hero-md", "Hero Tablet 768w", "dev", target_width=768),
    _p("hero-lg", "Hero Desktop 1200w", "dev", target_width=1200),
]

CATEGORIES = ("social", "icon", "format", "dev")


def find_preset(preset_id: str) -> Optional[Preset]:
    for preset in PRESETS:
        if preset.preset_id == preset_id:
            return preset
    return None


def presets_by_category(category: str) -> List[Preset]:
    return [p for p in PRESETS if p.category == category]
