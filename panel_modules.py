from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple


class ComponentTypeId(str, Enum):
    ON_OFF = "on_off"
    SOCKET = "socket"
    FAN_SPEED = "fan_speed"
    SCENE_CONTROLLER = "scene_controller"
    DIMMER = "dimmer"


class ModuleSize(int, Enum):
    M2 = 2
    M4 = 4
    M6 = 6
    M8 = 8
    M12 = 12


PANEL_SIZES: Tuple[int, ...] = tuple(int(s.value) for s in ModuleSize)

# 1 pair = 2 module slots on the plate
MODULES_PER_PAIR = 2


class PanelConfigError(ValueError):
    pass


def _type_key(type_id: Any) -> str:
    # str-mixin enums hash by member name, so lookups must go through the raw value.
    if isinstance(type_id, Enum):
        return str(type_id.value)
    if isinstance(type_id, str):
        return type_id
    return ""


def _validate_quantity(quantity: Any) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise PanelConfigError(f"quantity must be a whole number (got {quantity!r})")
    if quantity < 0:
        raise PanelConfigError(f"quantity must be zero or positive (got {quantity})")


def _entry_value(entry: Any, *names: str) -> Any:
    if isinstance(entry, Mapping):
        for n in names:
            if n in entry:
                return entry[n]
        return None
    for n in names:
        if hasattr(entry, n):
            return getattr(entry, n)
    return None


@dataclass(frozen=True)
class PanelComponentType:
    id: ComponentTypeId
    display_name: str
    modules_per_pair: int
    abbreviation: str
    description: str = ""


@dataclass(frozen=True)
class ComponentRegistry:
    """
    Immutable table of the component types a panel can carry.

    Declaration order is the canonical display order. Ids and abbreviations must both be
    unique so that names can be parsed back into component types.
    """

    types: Tuple[PanelComponentType, ...]
    _by_id: Mapping[str, PanelComponentType] = field(init=False, repr=False, compare=False)
    _by_abbreviation: Mapping[str, PanelComponentType] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_id: Dict[str, PanelComponentType] = {}
        by_abbrev: Dict[str, PanelComponentType] = {}
        for t in self.types:
            key = _type_key(t.id)
            if key in by_id:
                raise PanelConfigError(f"Duplicate component type id: {key}")
            if not t.abbreviation or t.abbreviation in by_abbrev:
                raise PanelConfigError(
                    f"Component abbreviation must be unique and non-empty (got {t.abbreviation!r} for {key})"
                )
            if not isinstance(t.modules_per_pair, int) or t.modules_per_pair <= 0:
                raise PanelConfigError(f"modules_per_pair must be a positive integer for {key}")
            by_id[key] = t
            by_abbrev[t.abbreviation] = t
        object.__setattr__(self, "types", tuple(self.types))
        object.__setattr__(self, "_by_id", by_id)
        object.__setattr__(self, "_by_abbreviation", by_abbrev)

    def get(self, type_id: Any) -> Optional[PanelComponentType]:
        return self._by_id.get(_type_key(type_id))

    def by_abbreviation(self, abbrev: Any) -> Optional[PanelComponentType]:
        if not isinstance(abbrev, str):
            return None
        return self._by_abbreviation.get(abbrev)

    def order_of(self, type_id: Any) -> int:
        """
        Position of a type in declaration order; unknown types sort last.
        """
        t = self.get(type_id)
        if t is None:
            return len(self.types)
        return self.types.index(t)


DEFAULT_REGISTRY = ComponentRegistry(
    types=(
        PanelComponentType(
            id=ComponentTypeId.ON_OFF,
            display_name="On/Off Switch",
            modules_per_pair=MODULES_PER_PAIR,
            abbreviation="S",
            description="Single position switch control",
        ),
        PanelComponentType(
            id=ComponentTypeId.SOCKET,
            display_name="Socket",
            modules_per_pair=MODULES_PER_PAIR,
            abbreviation="ST",
            description="Power socket outlet",
        ),
        PanelComponentType(
            id=ComponentTypeId.FAN_SPEED,
            display_name="Fan Speed Control",
            modules_per_pair=MODULES_PER_PAIR,
            abbreviation="F",
            description="Variable speed fan controller",
        ),
        PanelComponentType(
            id=ComponentTypeId.SCENE_CONTROLLER,
            display_name="Scene Controller",
            # 4 buttons (1 pair) = 2M
            modules_per_pair=MODULES_PER_PAIR,
            abbreviation="SC",
            description="4 programmable scene buttons",
        ),
        PanelComponentType(
            id=ComponentTypeId.DIMMER,
            display_name="Dimmer (Phase Cut)",
            modules_per_pair=MODULES_PER_PAIR,
            abbreviation="D",
            description="Brightness/phase cut dimmer",
        ),
    )
)


@dataclass(frozen=True)
class ComponentConfig:
    type: ComponentTypeId
    quantity: int
    modules_per_pair: int = MODULES_PER_PAIR

    def __post_init__(self) -> None:
        try:
            type_id = ComponentTypeId(_type_key(self.type))
        except ValueError:
            raise PanelConfigError(f"Unknown component type: {self.type!r}") from None
        object.__setattr__(self, "type", type_id)
        _validate_quantity(self.quantity)
        if isinstance(self.modules_per_pair, bool) or not isinstance(self.modules_per_pair, int) or self.modules_per_pair <= 0:
            raise PanelConfigError(f"modules_per_pair must be a positive integer (got {self.modules_per_pair!r})")

    @property
    def modules_used(self) -> int:
        return self.quantity * self.modules_per_pair


@dataclass(frozen=True)
class PanelPreset:
    module_size: ModuleSize
    components: Tuple[ComponentConfig, ...]
    total_modules_used: int
    is_full: bool
    is_valid: bool
    name: str
    notes: Optional[str] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class ParsedPanelName:
    module_size: int
    components: Tuple[Tuple[ComponentTypeId, int], ...]
    unrecognized_tokens: Tuple[str, ...] = ()


def coerce_module_size(value: Any) -> ModuleSize:
    if isinstance(value, ModuleSize):
        return value
    if isinstance(value, bool) or not isinstance(value, int):
        raise PanelConfigError(f"module size must be one of {PANEL_SIZES} (got {value!r})")
    try:
        return ModuleSize(value)
    except ValueError:
        raise PanelConfigError(f"module size must be one of {PANEL_SIZES} (got {value})") from None


def make_component_config(
    type_id: Any,
    quantity: int,
    *,
    registry: ComponentRegistry = DEFAULT_REGISTRY,
) -> ComponentConfig:
    """
    Build a ComponentConfig whose module width comes from the registry.
    """
    t = registry.get(type_id)
    if t is None:
        raise PanelConfigError(f"Unknown component type: {type_id!r}")
    return ComponentConfig(type=t.id, quantity=quantity, modules_per_pair=t.modules_per_pair)


def compute_modules_used(components: Iterable[Any]) -> int:
    """
    Total module slots consumed: sum of quantity * modules_per_pair.

    Each entry carries its own modules_per_pair so stored presets keep computing with the
    metadata they were created with. Quantities are not range-checked here.
    """
    total = 0
    for c in components:
        quantity = _entry_value(c, "quantity") or 0
        per_pair = _entry_value(c, "modules_per_pair", "modulesPerPair") or 0
        total += quantity * per_pair
    return total


def is_config_valid(module_size: int, total_modules_used: int) -> bool:
    # Hardware allocates slots in pairs; odd totals cannot be built.
    return total_modules_used % 2 == 0 and total_modules_used <= int(module_size)


def is_panel_full(module_size: int, total_modules_used: int) -> bool:
    return total_modules_used == int(module_size)


def get_component_abbreviation(type_id: Any, *, registry: ComponentRegistry = DEFAULT_REGISTRY) -> str:
    t = registry.get(type_id)
    return t.abbreviation if t is not None else ""


def get_component_type_from_abbreviation(
    abbrev: str,
    *,
    registry: ComponentRegistry = DEFAULT_REGISTRY,
) -> Optional[ComponentTypeId]:
    """
    Reverse lookup for a bare abbreviation ("ST", not "4ST").
    """
    t = registry.by_abbreviation(abbrev)
    return t.id if t is not None else None


def generate_panel_name(
    module_size: int,
    components: Iterable[Any],
    *,
    bare_singles: bool = False,
    registry: ComponentRegistry = DEFAULT_REGISTRY,
) -> str:
    """
    Generate the preset name: [Size]M-[Components].

    Example: 6M with 4 switches, 1 socket, 1 fan -> "6M-4S-1ST-1F".
    With bare_singles=True a quantity of 1 drops its count -> "6M-4S-ST-F".

    Tokens follow input order. Zero quantities and unknown types are left out.
    """
    size_token = f"{int(module_size)}M"
    tokens: List[str] = []
    for c in components:
        quantity = _entry_value(c, "quantity") or 0
        if quantity <= 0:
            continue
        abbrev = get_component_abbreviation(_entry_value(c, "type"), registry=registry)
        if not abbrev:
            continue
        tokens.append(abbrev if (bare_singles and quantity == 1) else f"{quantity}{abbrev}")
    if not tokens:
        return size_token
    return f"{size_token}-{'-'.join(tokens)}"


_SIZE_TOKEN_RE = re.compile(r"^(\d+)M$")
_COMPONENT_TOKEN_RE = re.compile(r"^(\d*)([A-Z]+)$")


def parse_panel_name(
    name: str,
    *,
    registry: ComponentRegistry = DEFAULT_REGISTRY,
) -> Optional[ParsedPanelName]:
    """
    Split a generated name back into (type, quantity) pairs.

    Accepts both "1ST" and bare "ST" tokens. Returns None when the size token is missing or
    malformed; tokens that do not resolve to a registered type are reported, not raised.
    """
    if not isinstance(name, str):
        return None
    parts = name.strip().split("-")
    m = _SIZE_TOKEN_RE.match(parts[0].strip())
    if not m:
        return None

    components: List[Tuple[ComponentTypeId, int]] = []
    unrecognized: List[str] = []
    for raw in parts[1:]:
        token = raw.strip()
        if not token:
            continue
        tm = _COMPONENT_TOKEN_RE.match(token)
        if not tm:
            unrecognized.append(token)
            continue
        digits, abbrev = tm.groups()
        type_id = get_component_type_from_abbreviation(abbrev, registry=registry)
        if type_id is None:
            unrecognized.append(token)
            continue
        components.append((type_id, int(digits) if digits else 1))
    return ParsedPanelName(
        module_size=int(m.group(1)),
        components=tuple(components),
        unrecognized_tokens=tuple(unrecognized),
    )


def canonical_component_order(
    components: Sequence[Any],
    *,
    registry: ComponentRegistry = DEFAULT_REGISTRY,
) -> List[Any]:
    """
    Stable sort by registry declaration order, so equal component sets get equal names.
    """
    return sorted(components, key=lambda c: registry.order_of(_entry_value(c, "type")))


def build_panel_preset(
    module_size: Any,
    components: Sequence[Any],
    *,
    notes: Optional[str] = None,
    canonical_order: bool = False,
    bare_singles: bool = False,
    registry: ComponentRegistry = DEFAULT_REGISTRY,
) -> PanelPreset:
    """
    Validate inputs and derive totals, fullness, validity and name for a new preset.

    Components may be ComponentConfig values or mappings with "type" and "quantity".
    Raises PanelConfigError for an unsupported size, unknown type or bad quantity; an
    over-capacity or odd configuration is still returned, flagged with is_valid=False.
    """
    size = coerce_module_size(module_size)
    configs: List[ComponentConfig] = []
    for c in components:
        if isinstance(c, ComponentConfig):
            configs.append(c)
            continue
        configs.append(
            make_component_config(_entry_value(c, "type"), _entry_value(c, "quantity"), registry=registry)
        )
    if canonical_order:
        configs = canonical_component_order(configs, registry=registry)

    total = compute_modules_used(configs)
    return PanelPreset(
        module_size=size,
        components=tuple(configs),
        total_modules_used=total,
        is_full=is_panel_full(size, total),
        is_valid=is_config_valid(size, total),
        name=generate_panel_name(size, configs, bare_singles=bare_singles, registry=registry),
        notes=notes,
    )
