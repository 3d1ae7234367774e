from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from io import BytesIO
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.units import inch
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from app_config import company_name
from debug_log import debug_log
from panel_modules import PanelPreset
from panel_presets import component_summary

_ROW_H = 0.27 * inch
_FIRST_ROW_OFFSET = 0.55 * inch
_TOTALS_BOX_W = 2.35 * inch
_TOTALS_BOX_H = 1.05 * inch
_TOTALS_BOTTOM_PAD = 0.15 * inch


@dataclass(frozen=True)
class PanelScheduleLine:
    room_name: str
    preset_name: str
    module_size: int
    summary: str
    qty: int
    amount_cents: int


@dataclass(frozen=True)
class PanelScheduleArtifact:
    schedule_id: str
    schedule_date: date
    project_name: str
    customer_name: str
    customer_email: str
    lines: Tuple[PanelScheduleLine, ...]
    notes: Tuple[str, ...] = ()
    # preset name -> faceplate PNG, one "PANEL FACEPLATE" page each
    faceplates_png: Optional[Mapping[str, bytes]] = None

    @property
    def panel_count(self) -> int:
        return sum(max(0, li.qty) for li in self.lines)

    @property
    def module_count(self) -> int:
        return sum(max(0, li.qty) * li.module_size for li in self.lines)

    @property
    def grand_total_cents(self) -> int:
        return sum(li.amount_cents for li in self.lines)


def format_usd(amount: int) -> str:
    """
    Format a USD currency amount from integer cents.
    """
    if not isinstance(amount, int):
        raise TypeError(f"amount must be int cents (got {type(amount).__name__})")
    sign = "-" if amount < 0 else ""
    dollars = abs(amount) / 100.0
    return f"{sign}${dollars:,.2f}"


def schedule_lines_for_rooms(
    rooms: Mapping[str, Sequence[PanelPreset]],
    unit_price_cents_by_preset: Mapping[str, int],
) -> Tuple[PanelScheduleLine, ...]:
    """
    One line per (room, preset); the same preset picked twice in a room becomes qty 2.

    Prices are looked up by preset id, then by name. Unpriced presets are listed at $0.
    Rooms and presets keep their given order.
    """
    out: List[PanelScheduleLine] = []
    for room_name, presets in rooms.items():
        grouped: Dict[str, Tuple[PanelPreset, int]] = {}
        for p in presets:
            key = p.id if p.id is not None else p.name
            prev = grouped.get(key)
            grouped[key] = (p, (prev[1] if prev else 0) + 1)
        for key, (p, qty) in grouped.items():
            unit = unit_price_cents_by_preset.get(key, unit_price_cents_by_preset.get(p.name, 0))
            out.append(
                PanelScheduleLine(
                    room_name=room_name,
                    preset_name=p.name,
                    module_size=int(p.module_size),
                    summary=component_summary(p.components, separator=", "),
                    qty=qty,
                    amount_cents=int(unit) * qty,
                )
            )
    return tuple(out)


def make_panel_schedule_pdf_bytes(artifact: PanelScheduleArtifact) -> bytes:
    """
    Render the panel schedule PDF.

    - Page 1: header + customer/project blocks + line table with totals (continues onto
      more pages when the rows do not fit).
    - Then one "PANEL FACEPLATE" page for each supplied preview.
    """
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    # Uncompressed so tests can find text markers in the bytes.
    c.setPageCompression(0)
    w, h = letter

    margin = 0.6 * inch
    x0 = margin
    y_top = h - margin
    pad = 0.15 * inch

    header_h = 1.15 * inch
    c.rect(x0, y_top - header_h, w - 2 * margin, header_h, stroke=1, fill=0)
    c.setFont("Helvetica-Bold", 12)
    c.drawString(x0 + pad, y_top - 0.40 * inch, company_name())
    c.setFont("Helvetica", 9)
    c.drawString(x0 + pad, y_top - 0.62 * inch, "Control panel schedule")

    box_w = 2.2 * inch
    box_x = w - margin - box_w
    box_y = y_top - header_h + pad
    box_h = header_h - 2 * pad
    c.rect(box_x, box_y, box_w, box_h, stroke=1, fill=0)
    t_y = box_y + box_h - 0.26 * inch
    c.setFont("Helvetica-Bold", 10)
    c.drawString(box_x + pad, t_y, f"SCH-{artifact.schedule_id}")
    c.setFont("Helvetica", 9)
    t_y -= 0.22 * inch
    c.drawString(box_x + pad, t_y, f"Date: {artifact.schedule_date.isoformat()}")
    c.setFont("Helvetica-Bold", 11)
    t_y -= 0.25 * inch
    c.drawString(box_x + pad, t_y, f"Total: {format_usd(artifact.grand_total_cents)}")

    y = y_top - header_h - 0.25 * inch
    block_h = 0.95 * inch
    left_w = 3.2 * inch
    right_w = (w - 2 * margin) - left_w - 0.15 * inch
    right_x = x0 + left_w + 0.15 * inch
    c.rect(x0, y - block_h, left_w, block_h, stroke=1, fill=0)
    c.rect(right_x, y - block_h, right_w, block_h, stroke=1, fill=0)

    c.setFont("Helvetica-Bold", 9)
    c.drawString(x0 + pad, y - 0.25 * inch, "CUSTOMER DETAILS")
    _draw_truncated(c, x0 + pad, y - 0.50 * inch, (artifact.customer_name or "").strip() or "-", max_width=left_w - 2 * pad)
    c.setFont("Helvetica", 8)
    _draw_truncated(c, x0 + pad, y - 0.70 * inch, (artifact.customer_email or "").strip() or "-", max_width=left_w - 2 * pad)

    c.setFont("Helvetica-Bold", 9)
    c.drawString(right_x + pad, y - 0.25 * inch, "PROJECT")
    _draw_truncated(c, right_x + pad, y - 0.50 * inch, (artifact.project_name or "").strip() or "-", max_width=right_w - 2 * pad)
    c.setFont("Helvetica", 8)
    rooms = len({li.room_name for li in artifact.lines})
    c.drawString(right_x + pad, y - 0.70 * inch, f"{rooms} room(s), {artifact.panel_count} panel(s), {artifact.module_count}M")

    y = y - block_h - 0.25 * inch

    footer_base_y = margin + 0.35 * inch
    reserved_bottom_y = footer_base_y
    if artifact.notes:
        reserved_bottom_y = footer_base_y + 0.15 * inch + (min(3, len(artifact.notes)) * 0.12 * inch)

    remaining = list(artifact.lines)
    page_no = 1
    while True:
        if page_no == 1:
            table_top_y = y
        else:
            table_top_y = (h - margin) - 0.55 * inch
            c.setFont("Helvetica-Bold", 10)
            c.drawString(x0, (h - margin) - 0.25 * inch, "PANEL SCHEDULE (CONTINUED)")

        table_h = max(1.0 * inch, table_top_y - reserved_bottom_y - 0.25 * inch)
        capacity_with_totals = _row_capacity(table_h, include_totals=True)
        include_totals = len(remaining) <= capacity_with_totals
        remaining = _render_table_page(
            c,
            artifact=artifact,
            x0=x0,
            margin=margin,
            pad=pad,
            page_w=w,
            table_top_y=table_top_y,
            table_h=table_h,
            include_totals=include_totals,
            lines=tuple(remaining),
        )
        if include_totals:
            break
        c.showPage()
        page_no += 1

    c.setFont("Helvetica", 8)
    c.setFillColor(colors.grey)
    c.drawString(x0, footer_base_y, "Module sizes: each component unit uses one pair (2M) of panel slots.")
    c.setFillColor(colors.black)
    if artifact.notes:
        note_y = footer_base_y + 0.15 * inch
        for n in artifact.notes[:3]:
            c.drawString(x0, note_y, f"Note: {n}")
            note_y += 0.12 * inch
    c.showPage()

    faceplates = artifact.faceplates_png or {}
    for preset_name in sorted(faceplates.keys()):
        png = faceplates.get(preset_name)
        if not png:
            continue
        _render_faceplate_page(c, png_bytes=png, title="PANEL FACEPLATE", label=preset_name)
        c.showPage()

    c.save()
    debug_log(
        location="panel_schedule_pdf.py:make_panel_schedule_pdf_bytes",
        message="Rendered panel schedule",
        data={
            "schedule_id": artifact.schedule_id,
            "lines": len(artifact.lines),
            "pages": page_no + len([p for p in faceplates.values() if p]),
        },
    )
    return buf.getvalue()


def _row_capacity(table_h: float, *, include_totals: bool) -> int:
    usable = table_h - _FIRST_ROW_OFFSET - max(0.45 * inch, 2.0 * _ROW_H)
    if include_totals:
        usable = table_h - _FIRST_ROW_OFFSET - (_TOTALS_BOTTOM_PAD + _TOTALS_BOX_H + 2.0 * _ROW_H)
    if usable < 0:
        # Pages without totals always take at least one row.
        return 0 if include_totals else 1
    return int(usable // _ROW_H) + 1


def _render_table_page(
    c: canvas.Canvas,
    *,
    artifact: PanelScheduleArtifact,
    x0: float,
    margin: float,
    pad: float,
    page_w: float,
    table_top_y: float,
    table_h: float,
    include_totals: bool,
    lines: Tuple[PanelScheduleLine, ...],
) -> List[PanelScheduleLine]:
    """
    Render one page of the schedule table. Returns the lines that did not fit.
    """
    table_w = page_w - 2 * margin
    table_bottom_y = table_top_y - table_h
    c.rect(x0, table_bottom_y, table_w, table_h, stroke=1, fill=0)

    room_x = x0 + pad
    panel_x = x0 + 1.55 * inch
    qty_right = page_w - margin - 1.4 * inch
    amount_right = page_w - margin - 0.15 * inch

    c.setFont("Helvetica-Bold", 9)
    c.drawString(room_x, table_top_y - 0.25 * inch, "ROOM")
    c.drawString(panel_x, table_top_y - 0.25 * inch, "PANEL")
    c.drawRightString(qty_right, table_top_y - 0.25 * inch, "QTY")
    c.drawRightString(amount_right, table_top_y - 0.25 * inch, "AMOUNT")
    c.line(x0, table_top_y - 0.35 * inch, page_w - margin, table_top_y - 0.35 * inch)

    capacity = _row_capacity(table_h, include_totals=include_totals)
    row_y = table_top_y - _FIRST_ROW_OFFSET
    panel_max_w = (qty_right - 0.45 * inch) - panel_x
    for li in lines[:capacity]:
        c.setFont("Helvetica", 9)
        _draw_truncated(c, room_x, row_y, li.room_name, max_width=panel_x - room_x - 0.1 * inch)
        _draw_truncated(c, panel_x, row_y + 0.04 * inch, li.preset_name, max_width=panel_max_w)
        c.setFont("Helvetica", 7)
        c.setFillColor(colors.grey)
        _draw_truncated(c, panel_x, row_y - 0.08 * inch, li.summary, max_width=panel_max_w)
        c.setFillColor(colors.black)
        c.setFont("Helvetica", 9)
        c.drawRightString(qty_right, row_y, str(int(li.qty)))
        c.drawRightString(amount_right, row_y, format_usd(li.amount_cents))
        row_y -= _ROW_H

    if include_totals:
        tx = page_w - margin - _TOTALS_BOX_W
        box_bottom_y = table_bottom_y + _TOTALS_BOTTOM_PAD
        c.rect(tx, box_bottom_y, _TOTALS_BOX_W, _TOTALS_BOX_H, stroke=1, fill=0)
        y_cursor = box_bottom_y + _TOTALS_BOX_H - 0.28 * inch
        c.setFont("Helvetica", 9)
        _totals_row(c, tx, y_cursor, "Panels", str(artifact.panel_count), _TOTALS_BOX_W)
        y_cursor -= 0.19 * inch
        _totals_row(c, tx, y_cursor, "Modules", f"{artifact.module_count}M", _TOTALS_BOX_W)
        y_cursor -= 0.24 * inch
        c.setFont("Helvetica-Bold", 10)
        _totals_row(c, tx, y_cursor, "Grand Total", format_usd(artifact.grand_total_cents), _TOTALS_BOX_W)

    return list(lines[capacity:])


def _totals_row(c: canvas.Canvas, x: float, y: float, label: str, value: str, box_w: float) -> None:
    left_pad = 0.12 * inch
    right_pad = 0.12 * inch
    value_w = c.stringWidth(value)
    label_max = box_w - left_pad - right_pad - value_w - 0.10 * inch
    _draw_truncated(c, x + left_pad, y, label, max_width=max(0.0, label_max))
    c.drawRightString(x + box_w - right_pad, y, value)


def _draw_truncated(c: canvas.Canvas, x: float, y: float, text: str, *, max_width: float) -> None:
    """
    Draw text truncated with an ASCII ellipsis so it stays inside its column.
    """
    t = (text or "").strip()
    if not t or max_width <= 0:
        return
    if c.stringWidth(t) <= max_width:
        c.drawString(x, y, t)
        return
    ell = "..."
    lo = 0
    hi = len(t)
    best = ""
    while lo <= hi:
        mid = (lo + hi) // 2
        cand = (t[:mid].rstrip() + ell) if mid < len(t) else t
        if c.stringWidth(cand) <= max_width:
            best = cand
            lo = mid + 1
        else:
            hi = mid - 1
    if best:
        c.drawString(x, y, best)


def _render_faceplate_page(c: canvas.Canvas, *, png_bytes: bytes, title: str, label: str) -> None:
    w, h = letter
    margin = 0.6 * inch
    pad = 0.18 * inch

    c.setFont("Helvetica-Bold", 11)
    c.drawString(margin, h - margin, title)

    frame_x = margin
    frame_y = margin + 0.85 * inch
    frame_w = w - 2 * margin
    frame_h = h - 2 * margin - 1.35 * inch
    c.rect(frame_x, frame_y, frame_w, frame_h, stroke=1, fill=0)

    try:
        img = ImageReader(BytesIO(png_bytes))
        c.drawImage(
            img,
            frame_x + pad,
            frame_y + pad,
            width=frame_w - 2 * pad,
            height=frame_h - 2 * pad,
            preserveAspectRatio=True,
            anchor="c",
            mask="auto",
        )
    except (OSError, ValueError) as e:
        debug_log(
            location="panel_schedule_pdf.py:_render_faceplate_page",
            message="Skipped undecodable faceplate image",
            data={"label": label, "error": str(e)},
        )

    c.setFont("Helvetica-Bold", 10)
    c.drawCentredString(w / 2.0, margin + 0.45 * inch, (label or "").strip().upper())
