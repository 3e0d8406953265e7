"""
Report Engine — window schedule and quotation workbooks.

Outputs:
  - Window schedule rows (one per window) for listings and exports
  - Schedule Excel workbook (Summary / Window Schedule sheets), returned as bytes
  - Status summary over stored quotation records (count and value per status)
"""
import io
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import xlsxwriter

from app.models.window_models import QuotationAggregate, QuotationStatus
from app.services.catalog_engine import get_archetype
from app.services.costing_engine import PricingCalculator, area_sqft
from app.services.drafting.visual_engine import format_glass, format_material, format_mm
from app.services.persistence_codec import PersistenceCodec

logger = logging.getLogger("fenestra-report")


@dataclass
class ScheduleRow:
    position: int
    name: str
    window_type: str
    location: str
    size: str
    area_sqft: float
    material: str
    glass: str
    quantity: int
    unit_price: float
    total_price: float
    grand_total: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ReportEngine:

    def __init__(
        self,
        calculator: Optional[PricingCalculator] = None,
        codec: Optional[PersistenceCodec] = None,
    ):
        self.calculator = calculator or PricingCalculator()
        self.codec = codec or PersistenceCodec(self.calculator)

    # ── Window schedule ──────────────────────────────────────────────────────

    def build_window_schedule(self, aggregate: QuotationAggregate) -> List[ScheduleRow]:
        rows = []
        for i, window in enumerate(aggregate.windows, start=1):
            spec, pricing = window.spec, window.pricing
            rows.append(ScheduleRow(
                position=i,
                name=window.name,
                window_type=get_archetype(window.archetype).name,
                location=spec.location,
                size=f"{format_mm(spec.width_mm)} × {format_mm(spec.height_mm)} mm",
                area_sqft=round(area_sqft(spec.width_mm, spec.height_mm), 3),
                material=format_material(spec.frame_material),
                glass=format_glass(spec.glass_type),
                quantity=spec.quantity,
                unit_price=pricing.unit_price,
                total_price=pricing.total_price,
                grand_total=pricing.grand_total,
            ))
        return rows

    # ── Excel export ─────────────────────────────────────────────────────────

    def export_schedule_xlsx(self, aggregate: QuotationAggregate, path: Optional[str] = None) -> bytes:
        """Workbook bytes; also written to ``path`` when one is given."""
        buffer = io.BytesIO()
        wb = xlsxwriter.Workbook(buffer, {"in_memory": True})

        hdr = wb.add_format({"bold": True, "bg_color": "#14141E", "font_color": "#FFFFFF",
                             "border": 1, "font_size": 10})
        money = wb.add_format({"num_format": "#,##0.00", "border": 1})
        area_fmt = wb.add_format({"num_format": "#,##0.000", "border": 1})
        normal = wb.add_format({"border": 1, "font_size": 9})
        title_fmt = wb.add_format({"bold": True, "font_size": 14, "font_color": "#14141E"})
        total_fmt = wb.add_format({"bold": True, "bg_color": "#002147", "font_color": "#FFFFFF",
                                   "num_format": "#,##0.00", "border": 1, "font_size": 10})

        totals = self.calculator.quotation_totals(aggregate)
        currency = aggregate.currency
        client = aggregate.client_info

        # ── Sheet 1: Summary ─────────────────────────────────────────────────
        ws = wb.add_worksheet("Summary")
        ws.set_column("A:A", 40)
        ws.set_column("B:B", 20)
        ws.write("A1", aggregate.company_details.name, title_fmt)
        ws.write("A2", f"Quotation: {aggregate.quotation_number}", normal)
        ws.write("A3", f"Client: {client.name or 'N/A'}", normal)
        ws.write("A4", f"Date: {aggregate.date.isoformat()}  |  Valid until: {aggregate.valid_until.isoformat()}", normal)
        ws.write("A5", f"Status: {aggregate.status.value}", normal)
        ws.write_row(6, 0, ["Description", f"Amount ({currency})"], hdr)
        rows = [
            ("Basic Value", totals.basic_value),
            ("Transportation", totals.transportation),
            ("Loading", totals.loading),
            ("Total Project Cost", totals.total_project_cost),
            (f"GST {totals.gst_rate:g}%", totals.gst_amount),
            ("GRAND TOTAL", totals.grand_total),
            ("Total Area (sq ft)", totals.total_area_sqft),
            ("Average per sq ft (incl. tax)", totals.avg_per_sqft_incl_tax),
            ("Average per sq ft (excl. tax)", totals.avg_per_sqft_excl_tax),
        ]
        for i, (label, val) in enumerate(rows):
            fmt = total_fmt if label == "GRAND TOTAL" else (area_fmt if "Area" in label else money)
            ws.write(7 + i, 0, label, normal)
            ws.write(7 + i, 1, val, fmt)
        ws.write(8 + len(rows), 0, f"{totals.window_count} window type(s), {totals.unit_count} unit(s)", normal)

        # ── Sheet 2: Window Schedule ─────────────────────────────────────────
        ws2 = wb.add_worksheet("Window Schedule")
        ws2.set_column("A:A", 6)
        ws2.set_column("B:C", 24)
        ws2.set_column("D:D", 18)
        ws2.set_column("E:E", 20)
        ws2.set_column("F:F", 12)
        ws2.set_column("G:H", 14)
        ws2.set_column("I:I", 8)
        ws2.set_column("J:L", 16)
        ws2.write_row(0, 0, [
            "#", "Name", "Type", "Location", "Size", "Area (sq ft)", "Material", "Glass",
            "Qty", f"Unit Price ({currency})", f"Total ({currency})", f"Grand Total ({currency})",
        ], hdr)
        schedule = self.build_window_schedule(aggregate)
        for r, row in enumerate(schedule, start=1):
            ws2.write(r, 0, row.position, normal)
            ws2.write(r, 1, row.name, normal)
            ws2.write(r, 2, row.window_type, normal)
            ws2.write(r, 3, row.location, normal)
            ws2.write(r, 4, row.size, normal)
            ws2.write(r, 5, row.area_sqft, area_fmt)
            ws2.write(r, 6, row.material, normal)
            ws2.write(r, 7, row.glass, normal)
            ws2.write(r, 8, row.quantity, normal)
            ws2.write(r, 9, row.unit_price, money)
            ws2.write(r, 10, row.total_price, money)
            ws2.write(r, 11, row.grand_total, money)
        last = len(schedule) + 2
        ws2.write(last, 0, "TOTAL", total_fmt)
        ws2.write(last, 10, totals.basic_value, total_fmt)

        ws.write(9 + len(rows), 0, f"Generated: {datetime.now().strftime('%d %b %Y %H:%M')}", normal)
        wb.close()
        content = buffer.getvalue()

        if path:
            with open(path, "wb") as fh:
                fh.write(content)
            logger.info("Schedule workbook written: %s", path,
                        extra={"quotation_number": aggregate.quotation_number})
        return content

    # ── Status summary ───────────────────────────────────────────────────────

    def summarize_by_status(self, records: Iterable[Any]) -> Dict[str, Dict[str, float]]:
        """
        {status: {count, total_value}} over stored records.

        Records are decoded through the codec, so legacy and partial records count too;
        ``total_value`` sums each quotation's grand total.
        """
        summary: Dict[str, Dict[str, float]] = {
            s.value: {"count": 0, "total_value": 0.0} for s in QuotationStatus
        }
        for record in records:
            aggregate = self.codec.decode_or_default(record)
            bucket = summary[aggregate.status.value]
            bucket["count"] += 1
            bucket["total_value"] = round(
                bucket["total_value"] + self.calculator.quotation_totals(aggregate).grand_total, 2
            )
        return summary
