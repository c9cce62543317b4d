"""
Dashboard - Smoothing Control.

Preset selector plus custom slider. Both produce an AlphaChanged
event for the coordinator; the control only tracks what the user
picked.
"""

import logging
from typing import Any, Dict, List, Optional

from core.constants import DEFAULT_ALPHA
from smoothing import (
    CUSTOM_PRESET_KEY,
    DEFAULT_PRESET_KEY,
    SMOOTHING_PRESETS,
    get_preset,
    validate_alpha,
)

from .events import AlphaChanged

logger = logging.getLogger(__name__)


class SmoothingControl:
    """
    Selected smoothing mode.

    ``mode`` is a preset key or ``custom``; the slider value is
    remembered while a preset is selected, the way a slider keeps
    its position when hidden.
    """

    def __init__(self, mode: str = DEFAULT_PRESET_KEY, custom_alpha: float = DEFAULT_ALPHA):
        self.custom_alpha = validate_alpha(custom_alpha)
        self.mode = DEFAULT_PRESET_KEY
        self.select(mode)

    @property
    def alpha(self) -> float:
        if self.mode == CUSTOM_PRESET_KEY:
            return self.custom_alpha
        return get_preset(self.mode).alpha

    def select(self, mode: str, alpha: Optional[float] = None) -> AlphaChanged:
        """
        Select a preset, or ``custom`` (optionally moving the slider).

        Raises:
            KeyError: Unknown preset
            ValueError: Slider value outside [0, 1]
        """
        if mode == CUSTOM_PRESET_KEY:
            if alpha is not None:
                self.custom_alpha = validate_alpha(alpha)
        else:
            get_preset(mode)
        self.mode = mode
        logger.debug(f"Smoothing mode {self.mode} (alpha={self.alpha})")
        return AlphaChanged(self.alpha)

    def slide(self, alpha: float) -> AlphaChanged:
        """Move the custom slider (switches to custom mode)."""
        return self.select(CUSTOM_PRESET_KEY, alpha)

    @staticmethod
    def options() -> List[Dict[str, Any]]:
        """Selectable modes, presets first."""
        return [preset.to_dict() for preset in SMOOTHING_PRESETS] + [
            {"key": CUSTOM_PRESET_KEY, "label": "Custom", "alpha": None},
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "alpha": self.alpha,
            "custom_alpha": self.custom_alpha,
            "display": f"{self.alpha:.3f}",
        }
