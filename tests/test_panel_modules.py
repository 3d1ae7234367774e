from __future__ import annotations

import importlib.util
import sys
import unittest
from pathlib import Path
from unittest import mock

from panel_modules import (
    DEFAULT_REGISTRY,
    PANEL_SIZES,
    ComponentConfig,
    ComponentRegistry,
    ComponentTypeId,
    ModuleSize,
    PanelComponentType,
    PanelConfigError,
    build_panel_preset,
    canonical_component_order,
    coerce_module_size,
    compute_modules_used,
    generate_panel_name,
    get_component_abbreviation,
    get_component_type_from_abbreviation,
    is_config_valid,
    is_panel_full,
    make_component_config,
    parse_panel_name,
)


def _example_components() -> list:
    return [
        {"type": "on_off", "quantity": 4},
        {"type": "socket", "quantity": 1},
        {"type": "fan_speed", "quantity": 1},
    ]


class TestModuleArithmetic(unittest.TestCase):
    def test_sum_of_quantity_times_modules_per_pair(self) -> None:
        total = compute_modules_used(
            [
                {"quantity": 4, "modules_per_pair": 2},
                {"quantity": 1, "modulesPerPair": 2},
            ]
        )
        self.assertEqual(total, 10)

    def test_empty_list_is_zero(self) -> None:
        self.assertEqual(compute_modules_used([]), 0)

    def test_twice_total_quantity_for_registry_types(self) -> None:
        quantities = [0, 3, 1, 5, 2]
        configs = [make_component_config(t, q) for t, q in zip(ComponentTypeId, quantities)]
        self.assertEqual(compute_modules_used(configs), 2 * sum(quantities))

    def test_uses_each_entry_own_modules_per_pair(self) -> None:
        # A stored preset created when a type took 3 slots keeps computing with 3.
        legacy = ComponentConfig(type=ComponentTypeId.SCENE_CONTROLLER, quantity=2, modules_per_pair=3)
        self.assertEqual(compute_modules_used([legacy, {"quantity": 1, "modules_per_pair": 2}]), 8)

    def test_negative_quantities_are_not_rejected(self) -> None:
        self.assertEqual(compute_modules_used([{"quantity": -1, "modules_per_pair": 2}]), -2)


class TestValidity(unittest.TestCase):
    def test_even_and_within_capacity(self) -> None:
        self.assertTrue(is_config_valid(6, 6))
        self.assertTrue(is_config_valid(6, 4))
        self.assertTrue(is_config_valid(6, 0))

    def test_odd_total_is_invalid(self) -> None:
        self.assertFalse(is_config_valid(6, 7))
        self.assertFalse(is_config_valid(12, 1))

    def test_over_capacity_is_invalid(self) -> None:
        self.assertFalse(is_config_valid(6, 8))

    def test_size_outside_fixed_set_not_rejected(self) -> None:
        self.assertTrue(is_config_valid(10, 10))

    def test_accepts_module_size_enum(self) -> None:
        self.assertTrue(is_config_valid(ModuleSize.M8, 8))

    def test_full_only_on_exact_match(self) -> None:
        self.assertTrue(is_panel_full(6, 6))
        self.assertFalse(is_panel_full(6, 4))
        self.assertFalse(is_panel_full(6, 8))
        self.assertTrue(is_panel_full(ModuleSize.M12, 12))


class TestNameGeneration(unittest.TestCase):
    def test_example_name(self) -> None:
        self.assertEqual(generate_panel_name(6, _example_components()), "6M-4S-1ST-1F")

    def test_bare_singles(self) -> None:
        self.assertEqual(generate_panel_name(6, _example_components(), bare_singles=True), "6M-4S-ST-F")

    def test_deterministic(self) -> None:
        self.assertEqual(
            generate_panel_name(6, _example_components()),
            generate_panel_name(6, _example_components()),
        )

    def test_order_sensitive(self) -> None:
        reordered = list(reversed(_example_components()))
        self.assertEqual(generate_panel_name(6, reordered), "6M-1F-1ST-4S")
        self.assertNotEqual(generate_panel_name(6, reordered), generate_panel_name(6, _example_components()))

    def test_zero_quantities_filtered(self) -> None:
        name = generate_panel_name(4, [{"type": "on_off", "quantity": 0}, {"type": "dimmer", "quantity": 2}])
        self.assertEqual(name, "4M-2D")

    def test_empty_falls_back_to_size_token(self) -> None:
        self.assertEqual(generate_panel_name(2, []), "2M")
        self.assertEqual(generate_panel_name(8, [{"type": "socket", "quantity": 0}]), "8M")

    def test_unknown_types_omitted(self) -> None:
        name = generate_panel_name(4, [{"type": "relay", "quantity": 2}, {"type": "dimmer", "quantity": 1}])
        self.assertEqual(name, "4M-1D")

    def test_accepts_component_configs(self) -> None:
        configs = [make_component_config("scene_controller", 1), make_component_config("dimmer", 2)]
        self.assertEqual(generate_panel_name(ModuleSize.M6, configs), "6M-1SC-2D")


class TestAbbreviations(unittest.TestCase):
    def test_default_registry_builds_on_import(self) -> None:
        path = Path(__file__).resolve().parents[1] / "panel_modules.py"
        spec = importlib.util.spec_from_file_location("panel_modules_fresh", path)
        module = importlib.util.module_from_spec(spec)
        with mock.patch.dict(sys.modules, {"panel_modules_fresh": module}):
            spec.loader.exec_module(module)
        self.assertEqual([t.abbreviation for t in module.DEFAULT_REGISTRY.types], ["S", "ST", "F", "SC", "D"])
        self.assertEqual(module.DEFAULT_REGISTRY.get("fan_speed").display_name, "Fan Speed Control")

    def test_round_trip_for_every_registered_type(self) -> None:
        for type_id in ComponentTypeId:
            with self.subTest(type_id=type_id):
                abbrev = get_component_abbreviation(type_id)
                self.assertTrue(abbrev)
                self.assertEqual(get_component_type_from_abbreviation(abbrev), type_id)

    def test_plain_string_ids(self) -> None:
        self.assertEqual(get_component_abbreviation("socket"), "ST")
        self.assertEqual(get_component_type_from_abbreviation("ST"), "socket")

    def test_abbreviations_are_unique(self) -> None:
        abbrevs = [t.abbreviation for t in DEFAULT_REGISTRY.types]
        self.assertEqual(sorted(abbrevs), ["D", "F", "S", "SC", "ST"])
        self.assertEqual(len(set(abbrevs)), len(abbrevs))

    def test_unknown_inputs_degrade(self) -> None:
        self.assertEqual(get_component_abbreviation("nonexistent"), "")
        self.assertEqual(get_component_abbreviation(None), "")
        self.assertIsNone(get_component_type_from_abbreviation("ZZ"))
        # Counts must be split off by the caller.
        self.assertIsNone(get_component_type_from_abbreviation("4S"))

    def test_registry_rejects_shared_abbreviation(self) -> None:
        with self.assertRaises(PanelConfigError):
            ComponentRegistry(
                types=(
                    PanelComponentType(id=ComponentTypeId.ON_OFF, display_name="A", modules_per_pair=2, abbreviation="S"),
                    PanelComponentType(id=ComponentTypeId.SOCKET, display_name="B", modules_per_pair=2, abbreviation="S"),
                )
            )

    def test_injected_registry(self) -> None:
        registry = ComponentRegistry(
            types=(
                PanelComponentType(id=ComponentTypeId.DIMMER, display_name="Dimmer", modules_per_pair=2, abbreviation="DM"),
            )
        )
        self.assertEqual(get_component_abbreviation("dimmer", registry=registry), "DM")
        self.assertEqual(get_component_abbreviation("on_off", registry=registry), "")
        name = generate_panel_name(
            4,
            [{"type": "on_off", "quantity": 1}, {"type": "dimmer", "quantity": 2}],
            registry=registry,
        )
        self.assertEqual(name, "4M-2DM")


class TestValidatedConstruction(unittest.TestCase):
    def test_component_config_coerces_type(self) -> None:
        cfg = ComponentConfig(type="socket", quantity=3)
        self.assertIs(cfg.type, ComponentTypeId.SOCKET)
        self.assertEqual(cfg.modules_used, 6)

    def test_rejects_bad_quantities(self) -> None:
        for bad in (-1, 1.5, True, None, "2"):
            with self.subTest(quantity=bad):
                with self.assertRaises(PanelConfigError):
                    ComponentConfig(type="on_off", quantity=bad)

    def test_rejects_unknown_type(self) -> None:
        with self.assertRaises(PanelConfigError):
            make_component_config("relay", 1)
        with self.assertRaises(PanelConfigError):
            ComponentConfig(type="relay", quantity=1)

    def test_module_size_coercion(self) -> None:
        self.assertEqual(PANEL_SIZES, (2, 4, 6, 8, 12))
        self.assertIs(coerce_module_size(12), ModuleSize.M12)
        for bad in (0, 3, 10, 14, True, "6"):
            with self.subTest(size=bad):
                with self.assertRaises(PanelConfigError):
                    coerce_module_size(bad)


class TestParseAndPresets(unittest.TestCase):
    def test_parse_generated_name(self) -> None:
        parsed = parse_panel_name("6M-4S-1ST-1F")
        self.assertIsNotNone(parsed)
        self.assertEqual(parsed.module_size, 6)
        self.assertEqual(
            parsed.components,
            (
                (ComponentTypeId.ON_OFF, 4),
                (ComponentTypeId.SOCKET, 1),
                (ComponentTypeId.FAN_SPEED, 1),
            ),
        )
        self.assertEqual(parsed.unrecognized_tokens, ())

    def test_parse_bare_tokens_and_unknowns(self) -> None:
        parsed = parse_panel_name("4M-S-D")
        self.assertEqual(parsed.components, ((ComponentTypeId.ON_OFF, 1), (ComponentTypeId.DIMMER, 1)))

        parsed = parse_panel_name("6M-2X-1S")
        self.assertEqual(parsed.components, ((ComponentTypeId.ON_OFF, 1),))
        self.assertEqual(parsed.unrecognized_tokens, ("2X",))

    def test_parse_size_only_and_malformed(self) -> None:
        self.assertEqual(parse_panel_name("12M").components, ())
        self.assertIsNone(parse_panel_name("Panel 6"))
        self.assertIsNone(parse_panel_name(""))

    def test_parse_inverts_generate(self) -> None:
        components = [{"type": "dimmer", "quantity": 2}, {"type": "scene_controller", "quantity": 1}]
        parsed = parse_panel_name(generate_panel_name(8, components))
        self.assertEqual(parsed.components, ((ComponentTypeId.DIMMER, 2), (ComponentTypeId.SCENE_CONTROLLER, 1)))

    def test_build_full_preset(self) -> None:
        preset = build_panel_preset(6, [{"type": "on_off", "quantity": 2}, {"type": "fan_speed", "quantity": 1}])
        self.assertIs(preset.module_size, ModuleSize.M6)
        self.assertEqual(preset.total_modules_used, 6)
        self.assertTrue(preset.is_full)
        self.assertTrue(preset.is_valid)
        self.assertEqual(preset.name, "6M-2S-1F")

    def test_build_over_capacity_preset_is_flagged_not_raised(self) -> None:
        preset = build_panel_preset(4, [{"type": "on_off", "quantity": 3}])
        self.assertEqual(preset.total_modules_used, 6)
        self.assertFalse(preset.is_valid)
        self.assertFalse(preset.is_full)
        self.assertEqual(preset.name, "4M-3S")

    def test_build_rejects_unsupported_size(self) -> None:
        with self.assertRaises(PanelConfigError):
            build_panel_preset(10, [{"type": "on_off", "quantity": 1}])

    def test_canonical_order(self) -> None:
        components = [{"type": "fan_speed", "quantity": 1}, {"type": "on_off", "quantity": 2}]
        self.assertEqual(build_panel_preset(6, components).name, "6M-1F-2S")
        self.assertEqual(build_panel_preset(6, components, canonical_order=True).name, "6M-2S-1F")
        # Input is not reordered in place.
        self.assertEqual(components[0]["type"], "fan_speed")

    def test_canonical_order_puts_unknown_types_last(self) -> None:
        ordered = canonical_component_order(
            [{"type": "relay"}, {"type": "dimmer"}, {"type": "on_off"}]
        )
        self.assertEqual([c["type"] for c in ordered], ["on_off", "dimmer", "relay"])


if __name__ == "__main__":
    unittest.main()
