from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from typing import Any, Dict, List, Sequence, Tuple

from PIL import Image, ImageColor, ImageDraw, ImageFont

from panel_modules import (
    DEFAULT_REGISTRY,
    ComponentConfig,
    ComponentRegistry,
    PanelPreset,
    coerce_module_size,
    compute_modules_used,
    get_component_abbreviation,
    is_config_valid,
    make_component_config,
)

_TYPE_COLORS: Dict[str, str] = {
    "on_off": "#1a73e8",
    "socket": "#7a5c3a",
    "fan_speed": "#1e8e3e",
    "scene_controller": "#8e24aa",
    "dimmer": "#f29900",
}

_PLATE_FILL = (250, 250, 250)
_PLATE_OUTLINE = (60, 64, 67)
_PLATE_OUTLINE_INVALID = (179, 38, 30)
_EMPTY_SLOT = (225, 225, 225)


@dataclass(frozen=True)
class FaceplateUnit:
    """
    One component unit placed on the plate, occupying `width` consecutive slots from `start`.
    """

    type_key: str
    abbreviation: str
    start: int
    width: int


def _clamp_int(name: str, value: int, *, min_value: int, max_value: int) -> int:
    if not isinstance(value, int):
        raise TypeError(f"{name} must be int (got {type(value).__name__})")
    return max(min_value, min(max_value, value))


def _encode_png(img: Image.Image) -> bytes:
    buf = BytesIO()
    img.save(buf, format="PNG", optimize=True)
    return buf.getvalue()


def _grid_shape(module_size: int) -> Tuple[int, int]:
    # 12M plates are built as two rows of 6.
    if module_size == 12:
        return 6, 2
    return module_size, 1


def layout_faceplate_units(
    *,
    module_size: Any,
    components: Sequence[Any],
    registry: ComponentRegistry = DEFAULT_REGISTRY,
) -> Tuple[Tuple[FaceplateUnit, ...], bool]:
    """
    Pack component units into slots left to right, in input order.

    Returns (placed units, overflowed). Units that do not fit are not placed.
    """
    size = int(coerce_module_size(module_size))
    placed: List[FaceplateUnit] = []
    cursor = 0
    overflowed = False
    for cfg in _configs(components, registry=registry):
        abbrev = get_component_abbreviation(cfg.type, registry=registry)
        for _ in range(cfg.quantity):
            if cursor + cfg.modules_per_pair > size:
                overflowed = True
                continue
            placed.append(
                FaceplateUnit(type_key=cfg.type.value, abbreviation=abbrev, start=cursor, width=cfg.modules_per_pair)
            )
            cursor += cfg.modules_per_pair
    return tuple(placed), overflowed


def render_faceplate_png(
    *,
    module_size: Any,
    components: Sequence[Any],
    caption: str = "",
    canvas_px: Tuple[int, int] = (900, 360),
    registry: ComponentRegistry = DEFAULT_REGISTRY,
) -> bytes:
    """
    Draw a front view of the plate: one box per module slot, filled per component unit.

    The plate outline turns red when the configuration is odd or over capacity.
    """
    size = int(coerce_module_size(module_size))
    configs = _configs(components, registry=registry)
    units, _ = layout_faceplate_units(module_size=size, components=configs, registry=registry)
    valid = is_config_valid(size, compute_modules_used(configs))

    cw, ch = canvas_px
    cw = _clamp_int("canvas_width_px", int(cw), min_value=320, max_value=2400)
    ch = _clamp_int("canvas_height_px", int(ch), min_value=160, max_value=1600)

    img = Image.new("RGB", (cw, ch), (245, 245, 245))
    d = ImageDraw.Draw(img)
    font = ImageFont.load_default()

    caption_h = 28 if caption.strip() else 0
    margin = 24
    plate = (margin, margin, cw - margin, ch - margin - caption_h)
    d.rounded_rectangle(
        plate,
        radius=14,
        fill=_PLATE_FILL,
        outline=_PLATE_OUTLINE if valid else _PLATE_OUTLINE_INVALID,
        width=4,
    )

    cols, rows = _grid_shape(size)
    pad = 18
    gap = 6
    inner_w = (plate[2] - plate[0]) - 2 * pad
    inner_h = (plate[3] - plate[1]) - 2 * pad
    slot_w = max(4.0, (inner_w - gap * (cols - 1)) / float(cols))
    slot_h = max(4.0, (inner_h - gap * (rows - 1)) / float(rows))

    def slot_box(index: int) -> Tuple[int, int, int, int]:
        col = index % cols
        row = index // cols
        x = plate[0] + pad + col * (slot_w + gap)
        y = plate[1] + pad + row * (slot_h + gap)
        return int(x), int(y), int(x + slot_w), int(y + slot_h)

    for i in range(size):
        d.rectangle(slot_box(i), fill=_EMPTY_SLOT, outline=(200, 200, 200))

    for unit in units:
        rgb = ImageColor.getrgb(_TYPE_COLORS.get(unit.type_key, "#9aa0a6"))
        for i in range(unit.start, unit.start + unit.width):
            d.rectangle(slot_box(i), fill=rgb, outline=_PLATE_OUTLINE)
        first = slot_box(unit.start)
        _draw_centered(d, first, unit.abbreviation, font=font)

    if caption_h:
        _draw_centered(d, (0, ch - margin - caption_h, cw, ch - margin), caption.strip(), font=font, fill=(32, 33, 36))
    return _encode_png(img)


def render_preset_faceplate_png(preset: PanelPreset, **kwargs: Any) -> bytes:
    return render_faceplate_png(
        module_size=preset.module_size,
        components=preset.components,
        caption=preset.name,
        **kwargs,
    )


def _configs(components: Sequence[Any], *, registry: ComponentRegistry) -> List[ComponentConfig]:
    out: List[ComponentConfig] = []
    for c in components:
        if isinstance(c, ComponentConfig):
            out.append(c)
        else:
            out.append(make_component_config(c.get("type"), c.get("quantity"), registry=registry))
    return out


def _draw_centered(
    d: ImageDraw.ImageDraw,
    box: Tuple[int, int, int, int],
    text: str,
    *,
    font: ImageFont.ImageFont,
    fill: Tuple[int, int, int] = (255, 255, 255),
) -> None:
    if not text:
        return
    left, top, right, bottom = d.textbbox((0, 0), text, font=font)
    tw = right - left
    th = bottom - top
    x = box[0] + ((box[2] - box[0]) - tw) / 2.0 - left
    y = box[1] + ((box[3] - box[1]) - th) / 2.0 - top
    d.text((x, y), text, fill=fill, font=font)
