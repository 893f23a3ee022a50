"""Off-screen gauge panel rendering for headless exports."""

from __future__ import annotations

from datetime import datetime
from io import BytesIO
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from rtop_core.display_state import DisplayRow, DisplayState, display_rows

from .models import ThemeConfig, hex_to_rgb
from .themes import get_theme


HOT_RATIO = 0.85


def gauge_fraction(row: DisplayRow) -> float:
    if row.gauge_max <= 0:
        return 0.0
    return max(0.0, min(1.0, row.gauge / row.gauge_max))


def row_text(row: DisplayRow) -> str:
    if row.key == "fan":
        return f"level {int(row.gauge)}"
    if row.key == "temperature":
        return row.label or "--"
    percent = f"{row.gauge:5.1f}%"
    if row.label is None and row.key in ("memory", "swap"):
        return percent
    return f"{percent}  {row.label or '--'}"


class GaugeRenderer:
    """Draws one bar per indicator, in the same order as the dialog."""

    def __init__(self, width: int = 480, row_height: int = 40, fan_max_level: int = 4) -> None:
        self.width = width
        self.row_height = row_height
        self.fan_max_level = fan_max_level
        self.header_height = 44

    def render_image(self, state: DisplayState, theme_name: str | None = None, stamp: datetime | None = None) -> Image.Image:
        theme = get_theme(theme_name)
        rows = display_rows(state, fan_max_level=self.fan_max_level)
        height = self.header_height + self.row_height * len(rows) + 12
        image = Image.new("RGB", (self.width, height), hex_to_rgb(theme.background))
        draw = ImageDraw.Draw(image)

        self._draw_header(draw, theme, stamp or datetime.now())
        for index, row in enumerate(rows):
            self._draw_row(draw, theme, row, self.header_height + index * self.row_height)
        return image

    def save_png(self, state: DisplayState, path: Path, theme_name: str | None = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        self.render_image(state, theme_name).save(path, format="PNG")
        return path

    def png_bytes(self, state: DisplayState, theme_name: str | None = None) -> bytes:
        buf = BytesIO()
        self.render_image(state, theme_name).save(buf, format="PNG")
        return buf.getvalue()

    def _font(self, size: int):
        try:
            return ImageFont.truetype("DejaVuSansMono.ttf", size)
        except OSError:
            return ImageFont.load_default()

    def _draw_header(self, draw: ImageDraw.ImageDraw, theme: ThemeConfig, stamp: datetime) -> None:
        draw.text((14, 12), "rtop", font=self._font(20), fill=hex_to_rgb(theme.text_primary))
        draw.text(
            (self.width - 190, 16),
            stamp.strftime("%Y-%m-%d %H:%M:%S"),
            font=self._font(13),
            fill=hex_to_rgb(theme.text_secondary),
        )

    def _draw_row(self, draw: ImageDraw.ImageDraw, theme: ThemeConfig, row: DisplayRow, top: int) -> None:
        x0, x1 = 12, self.width - 12
        draw.rounded_rectangle((x0, top + 2, x1, top + self.row_height - 4), radius=8, fill=hex_to_rgb(theme.panel))
        draw.text((x0 + 10, top + 11), row.title, font=self._font(14), fill=hex_to_rgb(theme.text_secondary))

        bar_x0, bar_x1 = x0 + 70, x0 + 250
        bar_y0, bar_y1 = top + 13, top + self.row_height - 15
        draw.rounded_rectangle((bar_x0, bar_y0, bar_x1, bar_y1), radius=4, fill=hex_to_rgb(theme.track))

        fraction = gauge_fraction(row)
        if fraction > 0:
            color = theme.fill_hot if fraction >= HOT_RATIO else theme.fill
            fill_x1 = bar_x0 + max(int((bar_x1 - bar_x0) * fraction), 4)
            draw.rounded_rectangle((bar_x0, bar_y0, fill_x1, bar_y1), radius=4, fill=hex_to_rgb(color))

        draw.text((bar_x1 + 14, top + 11), row_text(row), font=self._font(14), fill=hex_to_rgb(theme.text_primary))
