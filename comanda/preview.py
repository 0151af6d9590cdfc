"""Bitmap preview of a receipt, roughly as the thermal head would print it."""

from __future__ import annotations

import os
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from comanda.commands import Align, Cut, Feed, Init, Receipt, RuleLine, SetAlign, SetBold, SetSize, Size, TextLine
from comanda.config import PREVIEW_FONT_SIZE, PREVIEW_LEFT_INDENT_PX, PRINTER_WIDTH_PX

_FONT_OVERRIDE_ENV = "RECEIPT_PRINTER_FONT_PATH"
_MONO_FONT_FALLBACKS = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/TTF/DejaVuSansMono.ttf",
    "/usr/share/fonts/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/liberation/LiberationMono-Regular.ttf",
    "/System/Library/Fonts/Menlo.ttc",
)
_LINE_PADDING_PX = 4
_CUT_MARK_HEIGHT_PX = 12
_CUT_DASH_PX = 8


def resolve_preview_font(size: int = PREVIEW_FONT_SIZE) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
    """
    Load a monospace font for previews.

    Resolution order:
    1. RECEIPT_PRINTER_FONT_PATH (if set)
    2. Known monospace fonts on Linux/macOS
    3. Pillow's built-in default font
    """
    env_override = os.environ.get(_FONT_OVERRIDE_ENV, "").strip()
    candidates = ([env_override] if env_override else []) + list(_MONO_FONT_FALLBACKS)
    for candidate in candidates:
        if Path(candidate).is_file():
            try:
                return ImageFont.truetype(candidate, size)
            except OSError:
                continue
    return ImageFont.load_default()


def _render_text(text: str, font: object, bold: bool) -> Image.Image:
    measure = ImageDraw.Draw(Image.new("1", (1, 1), color=1))
    bbox = measure.textbbox((0, 0), text or " ", font=font)
    width = max(1, bbox[2] - bbox[0] + (1 if bold else 0))
    height = max(1, bbox[3] - bbox[1]) + _LINE_PADDING_PX

    img = Image.new("1", (width, height), color=1)
    draw = ImageDraw.Draw(img)
    origin = (-bbox[0], _LINE_PADDING_PX // 2 - bbox[1])
    draw.text(origin, text, font=font, fill=0)
    if bold:
        # Thermal bold is a double strike; one pixel to the right is close enough.
        draw.text((origin[0] + 1, origin[1]), text, font=font, fill=0)
    return img


def _scale(img: Image.Image, size: Size) -> Image.Image:
    width_factor = 2 if size in {Size.DOUBLE_WIDTH, Size.DOUBLE} else 1
    height_factor = 2 if size in {Size.DOUBLE_HEIGHT, Size.DOUBLE} else 1
    if width_factor == 1 and height_factor == 1:
        return img
    return img.resize((img.width * width_factor, img.height * height_factor), Image.NEAREST)


def _place(line: Image.Image, alignment: Align, width_px: int) -> Image.Image:
    row = Image.new("1", (width_px, line.height), color=1)
    usable = width_px - PREVIEW_LEFT_INDENT_PX * 2
    if alignment is Align.CENTER:
        x = PREVIEW_LEFT_INDENT_PX + max(0, (usable - line.width) // 2)
    elif alignment is Align.RIGHT:
        x = PREVIEW_LEFT_INDENT_PX + max(0, usable - line.width)
    else:
        x = PREVIEW_LEFT_INDENT_PX
    row.paste(line, (x, 0))
    return row


def _cut_mark(width_px: int) -> Image.Image:
    img = Image.new("1", (width_px, _CUT_MARK_HEIGHT_PX), color=1)
    draw = ImageDraw.Draw(img)
    y = _CUT_MARK_HEIGHT_PX // 2
    for x in range(0, width_px, _CUT_DASH_PX * 2):
        draw.line((x, y, min(width_px - 1, x + _CUT_DASH_PX), y), fill=0)
    return img


def render_preview(receipt: Receipt, width_px: int = PRINTER_WIDTH_PX, font: object | None = None) -> Image.Image:
    """Replay the receipt instructions onto a 1-bit image."""
    font = font or resolve_preview_font()
    blank_height = _render_text(" ", font, bold=False).height
    alignment = Align.LEFT
    bold = False
    size = Size.NORMAL
    rows: list[Image.Image] = []

    for instruction in receipt.instructions:
        if isinstance(instruction, Init):
            alignment, bold, size = Align.LEFT, False, Size.NORMAL
        elif isinstance(instruction, SetAlign):
            alignment = instruction.mode
        elif isinstance(instruction, SetBold):
            bold = instruction.on
        elif isinstance(instruction, SetSize):
            size = instruction.mode
        elif isinstance(instruction, (TextLine, RuleLine)):
            line = _scale(_render_text(instruction.text, font, bold), size)
            if line.width > width_px:
                line = line.crop((0, 0, width_px, line.height))
            rows.append(_place(line, alignment, width_px))
        elif isinstance(instruction, Feed):
            rows.extend(Image.new("1", (width_px, blank_height), color=1) for _ in range(instruction.lines))
        elif isinstance(instruction, Cut):
            rows.append(_cut_mark(width_px))

    height = max(1, sum(row.height for row in rows))
    canvas = Image.new("1", (width_px, height), color=1)
    y = 0
    for row in rows:
        canvas.paste(row, (0, y))
        y += row.height
    return canvas


def save_preview(receipt: Receipt, path: str | Path, width_px: int = PRINTER_WIDTH_PX) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    render_preview(receipt, width_px=width_px).save(target)
    return target
