"""Built-in gauge themes."""

from __future__ import annotations

from .models import ThemeConfig

DEFAULT_THEME_NAME = "Neon Slate"

THEMES: dict[str, ThemeConfig] = {
    "Neon Slate": ThemeConfig(
        name="Neon Slate",
        background="#0A0F1D",
        panel="#1A253F",
        track="#2A3556",
        fill="#35D9FF",
        fill_hot="#FF5C7A",
        text_primary="#F4F7FF",
        text_secondary="#A9B5D1",
    ),
    "Terminal": ThemeConfig(
        name="Terminal",
        background="#000000",
        panel="#0C0C0C",
        track="#1F1F1F",
        fill="#33FF66",
        fill_hot="#FFCC00",
        text_primary="#E8FFE8",
        text_secondary="#7FA88A",
    ),
    "Paper": ThemeConfig(
        name="Paper",
        background="#F4F1EA",
        panel="#FFFFFF",
        track="#DDD8CC",
        fill="#2F6FDB",
        fill_hot="#D9480F",
        text_primary="#1D1D1F",
        text_secondary="#6B6B70",
    ),
}


def list_themes() -> list[str]:
    return sorted(THEMES.keys())


def get_theme(name: str | None) -> ThemeConfig:
    if not name:
        return THEMES[DEFAULT_THEME_NAME]
    return THEMES.get(name, THEMES[DEFAULT_THEME_NAME])
