"""User-facing application settings.

These are owned by the settings UI; the store itself only reads
``auto_save``. They live in their own file next to the notes file.
"""

import math
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class Theme(str, Enum):
    """Colour themes offered by the UI."""

    LIGHT = "light"
    DARK = "dark"


# Keys written by the earlier version of the app, mapped to current fields
_LEGACY_KEYS = {
    "dark_mode": "theme",
    "show_word_count": "word_count_visible",
}


class AppSettings(BaseModel):
    """Persisted user preferences."""

    auto_save: bool = Field(default=True, description="Save changes automatically")
    show_reorder_handle: bool = Field(
        default=True, description="Show the drag handle used for reordering"
    )
    font_size: int = Field(default=17, ge=6, le=72)
    word_count_visible: bool = Field(default=False)
    theme: Theme = Field(default=Theme.DARK)

    model_config = {"validate_assignment": True, "extra": "ignore"}

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy(cls, data: Any) -> Any:
        """Accept settings files from the earlier app.

        ``dark_mode`` becomes ``theme``, ``show_word_count`` becomes
        ``word_count_visible`` and a fractional ``font_size`` is rounded.
        Current keys win when both spellings are present.
        """
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for old, new in _LEGACY_KEYS.items():
            if old not in data:
                continue
            value = data.pop(old)
            if new in data:
                continue
            if old == "dark_mode" and isinstance(value, bool):
                value = Theme.DARK if value else Theme.LIGHT
            data[new] = value
        font_size = data.get("font_size")
        if isinstance(font_size, float) and math.isfinite(font_size):
            data["font_size"] = round(font_size)
        return data
