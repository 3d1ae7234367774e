from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from app_config import canonical_name_order
from debug_log import debug_log
from panel_modules import (
    DEFAULT_REGISTRY,
    ComponentConfig,
    ComponentRegistry,
    PanelConfigError,
    PanelPreset,
    build_panel_preset,
    coerce_module_size,
    compute_modules_used,
    is_config_valid,
    is_panel_full,
    make_component_config,
)

# Admin form limit on component rows per preset.
MAX_COMPONENT_ROWS = 5

_SUMMARY_LABELS: Dict[str, Tuple[str, str]] = {
    "on_off": ("Switch", "Switches"),
    "socket": ("Socket", "Sockets"),
    "fan_speed": ("Fan", "Fans"),
    "scene_controller": ("Scene", "Scenes"),
    "dimmer": ("Dimmer", "Dimmers"),
}


class PresetRecordError(ValueError):
    pass


@dataclass(frozen=True)
class PresetDraft:
    """
    What an admin has typed into the preset form before it is saved.

    `components` holds ComponentConfig values or {"type", "quantity"} mappings.
    """

    module_size: Any
    components: Tuple[Any, ...]
    brand: str = ""
    price_per_unit: float = 0.0
    notes: Optional[str] = None


def preset_to_row(
    preset: PanelPreset,
    *,
    brand: Optional[str] = None,
    price_per_unit: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Flatten a preset into the `panel_presets` table shape.

    The components column is stored as JSON with the camelCase keys existing rows use.
    """
    row: Dict[str, Any] = {
        "name": preset.name,
        "module_size": int(preset.module_size),
        "total_modules_used": preset.total_modules_used,
        "is_full": preset.is_full,
        "components": [
            {
                "type": c.type.value,
                "quantity": c.quantity,
                "modulesPerPair": c.modules_per_pair,
                "totalModulesUsed": c.modules_used,
            }
            for c in preset.components
        ],
        "notes": preset.notes,
    }
    if preset.id is not None:
        row["id"] = preset.id
    if brand is not None:
        row["brand_vendor"] = brand
    if price_per_unit is not None:
        row["price_per_unit"] = price_per_unit
    return row


def preset_from_row(
    row: Mapping[str, Any],
    *,
    registry: ComponentRegistry = DEFAULT_REGISTRY,
) -> PanelPreset:
    """
    Rebuild a preset from a stored row.

    Stored name, total and fullness are kept as persisted; older rows may predate the
    current naming and registry. Component entries that no longer resolve are dropped.
    """
    if not isinstance(row, Mapping):
        raise PresetRecordError(f"Expected a mapping row (got {type(row).__name__})")

    name = row.get("name")
    if not isinstance(name, str) or not name.strip():
        raise PresetRecordError(f"Missing/invalid 'name' in preset row {row.get('id')!r}")
    name = name.strip()

    try:
        size = coerce_module_size(row.get("module_size"))
    except PanelConfigError as e:
        raise PresetRecordError(f"Preset {name!r}: {e}") from e

    components = _components_from_json(row.get("components"), registry=registry)

    total_obj = row.get("total_modules_used")
    if isinstance(total_obj, int) and not isinstance(total_obj, bool):
        total = total_obj
    else:
        total = compute_modules_used(components)

    full_obj = row.get("is_full")
    is_full = full_obj if isinstance(full_obj, bool) else is_panel_full(size, total)

    notes_obj = row.get("notes")
    notes = notes_obj.strip() if isinstance(notes_obj, str) and notes_obj.strip() else None

    id_obj = row.get("id")
    return PanelPreset(
        module_size=size,
        components=components,
        total_modules_used=total,
        is_full=is_full,
        is_valid=is_config_valid(size, total),
        name=name,
        notes=notes,
        id=str(id_obj) if id_obj is not None else None,
    )


def _components_from_json(raw: Any, *, registry: ComponentRegistry) -> Tuple[ComponentConfig, ...]:
    if not isinstance(raw, list):
        return tuple()
    out: List[ComponentConfig] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        t = registry.get(entry.get("type"))
        if t is None:
            continue
        per_pair = entry.get("modulesPerPair", entry.get("modules_per_pair"))
        if isinstance(per_pair, bool) or not isinstance(per_pair, int) or per_pair <= 0:
            per_pair = t.modules_per_pair
        try:
            out.append(ComponentConfig(type=t.id, quantity=entry.get("quantity"), modules_per_pair=per_pair))
        except PanelConfigError:
            continue
    return tuple(out)


def load_panel_presets(
    path: Path,
    *,
    registry: ComponentRegistry = DEFAULT_REGISTRY,
) -> Tuple[PanelPreset, ...]:
    """
    Load stored preset rows from JSON (an array, or an object with a "presets" array).

    Rows that cannot be rebuilt are skipped and written to the debug log. Sorted by name.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("presets")
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array of preset rows in {path}")

    presets: List[PanelPreset] = []
    for idx, row in enumerate(data):
        try:
            presets.append(preset_from_row(row, registry=registry))
        except PresetRecordError as e:
            debug_log(
                location="panel_presets.py:load_panel_presets",
                message="Skipped preset row",
                data={"path": str(path), "index": idx, "error": str(e)},
            )
    debug_log(
        location="panel_presets.py:load_panel_presets",
        message="Loaded panel presets",
        data={"path": str(path), "rows": len(data), "loaded": len(presets)},
    )
    return tuple(sorted(presets, key=lambda p: p.name))


def presets_by_size(presets: Iterable[PanelPreset], module_size: int) -> Tuple[PanelPreset, ...]:
    return tuple(p for p in presets if int(p.module_size) == int(module_size))


def find_preset(presets: Iterable[PanelPreset], preset_id: str) -> Optional[PanelPreset]:
    for p in presets:
        if p.id is not None and p.id == preset_id:
            return p
    return None


def search_presets(presets: Iterable[PanelPreset], pattern: str) -> Tuple[PanelPreset, ...]:
    """
    Case-insensitive substring match on the name, e.g. "6m-4s" finds "6M-4S-1ST-1F".
    """
    needle = (pattern or "").strip().lower()
    return tuple(p for p in presets if needle in p.name.lower())


def component_summary(
    components: Iterable[Any],
    *,
    separator: str = " • ",
    registry: ComponentRegistry = DEFAULT_REGISTRY,
) -> str:
    """
    Human-readable list for preset cards: "4 Switches (8M) • 1 Socket (2M)".

    Mappings without a stored modulesPerPair take the registry width for their type.
    """
    parts: List[str] = []
    for c in components:
        if isinstance(c, ComponentConfig):
            type_key, quantity, modules = c.type.value, c.quantity, c.modules_used
        else:
            type_key = str(c.get("type", ""))
            quantity = c.get("quantity") or 0
            per_pair = c.get("modulesPerPair", c.get("modules_per_pair"))
            if isinstance(per_pair, bool) or not isinstance(per_pair, int) or per_pair <= 0:
                t = registry.get(type_key)
                per_pair = t.modules_per_pair if t is not None else 0
            modules = quantity * per_pair
        if quantity <= 0:
            continue
        singular, plural = _SUMMARY_LABELS.get(type_key, (type_key, type_key))
        label = plural if quantity > 1 else singular
        parts.append(f"{quantity} {label} ({modules}M)")
    return separator.join(parts)


def check_preset_draft(
    draft: PresetDraft,
    *,
    registry: ComponentRegistry = DEFAULT_REGISTRY,
) -> Tuple[str, ...]:
    """
    Everything that would stop a draft from being saved, as user-facing messages.

    An empty result means the draft can be finalized.
    """
    problems: List[str] = []

    size = None
    try:
        size = coerce_module_size(draft.module_size)
    except PanelConfigError as e:
        problems.append(str(e))

    rows: Sequence[Any] = tuple(draft.components or ())
    if not rows:
        problems.append("Add at least one component.")
    if len(rows) > MAX_COMPONENT_ROWS:
        problems.append(f"A preset can list at most {MAX_COMPONENT_ROWS} component rows (got {len(rows)}).")

    configs: List[ComponentConfig] = []
    rows_ok = True
    for idx, c in enumerate(rows, start=1):
        if isinstance(c, ComponentConfig):
            cfg = c
        elif isinstance(c, Mapping):
            try:
                cfg = make_component_config(c.get("type"), c.get("quantity"), registry=registry)
            except PanelConfigError as e:
                rows_ok = False
                problems.append(f"Component {idx}: {e}")
                continue
        else:
            rows_ok = False
            problems.append(f"Component {idx}: expected a type and quantity.")
            continue
        if cfg.quantity < 1:
            rows_ok = False
            problems.append(f"Component {idx}: quantity must be at least 1.")
            continue
        configs.append(cfg)

    if size is not None and rows_ok and configs:
        total = compute_modules_used(configs)
        if total % 2 != 0:
            problems.append(f"Total modules must be even (got {total}M).")
        if total > int(size):
            problems.append(f"Components use {total}M but the panel only has {int(size)}M.")

    if not (draft.brand or "").strip():
        problems.append("Enter a brand name.")

    price = draft.price_per_unit
    if isinstance(price, bool) or not isinstance(price, (int, float)) or price <= 0:
        problems.append("Enter a valid price.")

    return tuple(problems)


def finalize_preset_draft(
    draft: PresetDraft,
    *,
    canonical_order: Optional[bool] = None,
    registry: ComponentRegistry = DEFAULT_REGISTRY,
) -> PanelPreset:
    problems = check_preset_draft(draft, registry=registry)
    if problems:
        raise PanelConfigError("; ".join(problems))
    if canonical_order is None:
        canonical_order = canonical_name_order()
    return build_panel_preset(
        draft.module_size,
        draft.components,
        notes=(draft.notes or "").strip() or None,
        canonical_order=canonical_order,
        registry=registry,
    )
