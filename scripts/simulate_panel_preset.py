from __future__ import annotations

import argparse
import json
import sys
from datetime import date
from pathlib import Path
from typing import List, Sequence, Tuple

_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from dotenv import load_dotenv

from app_config import canonical_name_order
from panel_faceplate import render_preset_faceplate_png
from panel_modules import PANEL_SIZES, ComponentTypeId, PanelConfigError, build_panel_preset
from panel_presets import component_summary, preset_to_row
from panel_schedule_pdf import PanelScheduleArtifact, make_panel_schedule_pdf_bytes, schedule_lines_for_rooms


def _parse_component(value: str) -> Tuple[str, int]:
    """
    Parse "on_off=4" into ("on_off", 4).
    """
    type_part, sep, qty_part = value.partition("=")
    if not sep:
        raise argparse.ArgumentTypeError(f"expected TYPE=QTY (got {value!r})")
    try:
        qty = int(qty_part)
    except ValueError:
        raise argparse.ArgumentTypeError(f"quantity must be a whole number (got {qty_part!r})") from None
    return type_part.strip(), qty


def _build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Build a panel preset and write its schedule PDF + faceplate preview.")
    ap.add_argument("--size", type=int, required=True, choices=PANEL_SIZES, help="Panel module size.")
    ap.add_argument(
        "--component",
        type=_parse_component,
        action="append",
        default=[],
        help=f"TYPE=QTY, repeatable. Types: {', '.join(t.value for t in ComponentTypeId)}",
    )
    ap.add_argument("--canonical-order", action="store_true", help="Sort components by registry order before naming.")
    ap.add_argument("--bare-singles", action="store_true", help='Write quantity 1 without its count ("ST", not "1ST").')
    ap.add_argument("--room", default="Living Room", help="Room name shown on the schedule.")
    ap.add_argument("--price-cents", type=int, default=0, help="Unit price in cents for the schedule line.")
    ap.add_argument("--out", type=Path, default=_ROOT / "out" / "panel_sim", help="Output directory.")
    return ap


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv(dotenv_path=Path.cwd() / ".env")
    args = _build_arg_parser().parse_args(argv)

    components: List[dict] = [{"type": t, "quantity": q} for t, q in args.component]
    try:
        preset = build_panel_preset(
            args.size,
            components,
            canonical_order=args.canonical_order or canonical_name_order(),
            bare_singles=args.bare_singles,
        )
    except PanelConfigError as e:
        print(f"Invalid preset: {e}", file=sys.stderr)
        return 2

    print(f"Name:     {preset.name}")
    print(f"Modules:  {preset.total_modules_used}M of {int(preset.module_size)}M")
    print(f"Valid:    {preset.is_valid}")
    print(f"Full:     {preset.is_full}")
    print(f"Contents: {component_summary(preset.components) or '-'}")

    faceplate_png = render_preset_faceplate_png(preset)
    artifact = PanelScheduleArtifact(
        schedule_id="SIM",
        schedule_date=date.today(),
        project_name="Preset simulation",
        customer_name="",
        customer_email="",
        lines=schedule_lines_for_rooms({args.room: [preset]}, {preset.name: args.price_cents}),
        notes=() if preset.is_valid else ("Configuration is not buildable: odd or over-capacity module total.",),
        faceplates_png={preset.name: faceplate_png},
    )
    pdf_bytes = make_panel_schedule_pdf_bytes(artifact)

    out_dir: Path = args.out
    out_dir.mkdir(parents=True, exist_ok=True)
    (out_dir / "panel_schedule_sim.pdf").write_bytes(pdf_bytes)
    (out_dir / "panel_faceplate_sim.png").write_bytes(faceplate_png)
    report = {
        "preset": preset_to_row(preset),
        "is_valid": preset.is_valid,
        "artifacts": {
            "pdf_path": str(out_dir / "panel_schedule_sim.pdf"),
            "faceplate_png_path": str(out_dir / "panel_faceplate_sim.png"),
        },
    }
    (out_dir / "panel_sim_report.json").write_text(json.dumps(report, indent=2), encoding="utf-8")

    print("")
    print("Wrote:")
    print(f"- {out_dir / 'panel_schedule_sim.pdf'}")
    print(f"- {out_dir / 'panel_faceplate_sim.png'}")
    print(f"- {out_dir / 'panel_sim_report.json'}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
