from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Sequence

_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from dotenv import load_dotenv

from app_config import panel_presets_path
from panel_modules import (
    PanelPreset,
    compute_modules_used,
    generate_panel_name,
    is_panel_full,
    parse_panel_name,
)
from panel_presets import load_panel_presets


def audit_preset(preset: PanelPreset) -> List[str]:
    """
    Compare what a stored preset says about itself with what its components compute to.
    """
    issues: List[str] = []
    computed_total = compute_modules_used(preset.components)
    if computed_total != preset.total_modules_used:
        issues.append(f"stored total {preset.total_modules_used}M, components sum to {computed_total}M")
    if preset.is_full != is_panel_full(preset.module_size, preset.total_modules_used):
        issues.append(f"stored is_full={preset.is_full} disagrees with {preset.total_modules_used}M of {int(preset.module_size)}M")
    if not preset.is_valid:
        issues.append("odd or over-capacity module total")

    expected = {
        generate_panel_name(preset.module_size, preset.components),
        generate_panel_name(preset.module_size, preset.components, bare_singles=True),
    }
    if preset.name not in expected:
        parsed = parse_panel_name(preset.name)
        if parsed is None:
            issues.append(f"name {preset.name!r} is not a generated panel name")
        else:
            issues.append(f"name {preset.name!r} does not match components (expected {sorted(expected)[0]!r})")
            if parsed.unrecognized_tokens:
                issues.append(f"unrecognized name tokens: {', '.join(parsed.unrecognized_tokens)}")
    return issues


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv(dotenv_path=Path.cwd() / ".env")
    ap = argparse.ArgumentParser(description="Check stored panel presets against the allocator rules.")
    ap.add_argument("path", nargs="?", type=Path, default=None, help="Preset catalog JSON (default: PANEL_PRESETS_PATH).")
    args = ap.parse_args(argv)

    path: Path = args.path or panel_presets_path()
    presets = load_panel_presets(path)
    print(f"Audited {len(presets)} presets from {path}")

    flagged = 0
    for p in presets:
        issues = audit_preset(p)
        if not issues:
            continue
        flagged += 1
        print(f"- {p.name} ({p.id or 'no id'}):")
        for issue in issues:
            print(f"    {issue}")
    print(f"{flagged} preset(s) with issues")
    return 1 if flagged else 0


if __name__ == "__main__":
    raise SystemExit(main())
