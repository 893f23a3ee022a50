"""Renderer package for headless gauge panels."""

from .models import ThemeConfig
from .themes import DEFAULT_THEME_NAME, get_theme, list_themes

try:  # pragma: no cover - optional at import time for test environments
    from .gauges import GaugeRenderer
except Exception:  # pragma: no cover
    GaugeRenderer = None  # type: ignore[assignment]

__all__ = [
    "DEFAULT_THEME_NAME",
    "ThemeConfig",
    "get_theme",
    "list_themes",
]

if GaugeRenderer is not None:
    __all__.append("GaugeRenderer")
