from __future__ import annotations

import io
import re
from datetime import datetime
from typing import Any, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, Side
from openpyxl.utils import get_column_letter

from .forms import SECTION_TITLES, FieldType, TicketField, list_sections
from .models import TripTicketRecord

HEADER_LINES = (
    ("Republic of the Philippines", False),
    ("City Government of Pasig", False),
    ("OFFICE OF GENERAL SERVICES", True),
    ("MOTORPOOL DIVISION", True),
)
DRIVER_CERTIFICATION = "I hereby certify the correctness of the above statement of record of travel."
PASSENGER_CERTIFICATION = "I hereby certify that I used this car on official business as stated above."


def export_ticket(record: TripTicketRecord, *, generated_at: Optional[datetime] = None) -> tuple[str, bytes]:
    """Lay a trip ticket out on a single worksheet, top to bottom like the paper form."""
    generated_at = generated_at or datetime.now()
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Trip Ticket"

    title_font = Font(size=14, bold=True)
    header_font = Font(bold=True)
    muted_font = Font(size=9, italic=True, color="5B6657")
    underline = Border(bottom=Side(style="thin"))

    sheet["A1"] = "Form A"
    sheet["A1"].font = muted_font
    row = 2
    for text, bold in HEADER_LINES:
        sheet.cell(row=row, column=1, value=text)
        sheet.cell(row=row, column=1).font = title_font if bold else Font()
        sheet.cell(row=row, column=1).alignment = Alignment(horizontal="center")
        sheet.merge_cells(start_row=row, start_column=1, end_row=row, end_column=3)
        row += 1

    row += 1
    for section, items in list_sections():
        title = SECTION_TITLES[section]
        if section == "certification":
            row = _write_certification(sheet, record, row, header_font, underline)
            continue
        if title:
            sheet.cell(row=row, column=1, value=title).font = header_font
            sheet.merge_cells(start_row=row, start_column=1, end_row=row, end_column=3)
            row += 1
        for item in items:
            sheet.cell(row=row, column=1, value=item.label)
            value_cell = sheet.cell(row=row, column=2, value=_cell_value(record, item))
            value_cell.border = underline
            if item.read_only:
                value_cell.font = header_font
            if item.section in {"fuel", "oil"}:
                sheet.cell(row=row, column=3, value="liters")
            row += 1
        if section == "header":
            sheet.cell(row=row, column=1, value="DRIVER'S TRIP TICKET").font = title_font
            sheet.cell(row=row, column=1).alignment = Alignment(horizontal="center")
            sheet.merge_cells(start_row=row, start_column=1, end_row=row, end_column=3)
            row += 1
        row += 1

    sheet.cell(row=row + 1, column=1, value=generated_at.strftime("Generated %Y-%m-%d %H:%M")).font = muted_font

    for column, width in [(1, 52), (2, 34), (3, 10)]:
        sheet.column_dimensions[get_column_letter(column)].width = width

    buffer = io.BytesIO()
    workbook.save(buffer)
    slug = re.sub(r"[^A-Za-z0-9]+", "-", record.trip_ticket_no).strip("-") or "draft"
    filename = f"trip-ticket-{slug}-{generated_at.strftime('%Y%m%d-%H%M')}.xlsx"
    return filename, buffer.getvalue()


def _write_certification(sheet, record: TripTicketRecord, row: int, header_font: Font, underline: Border) -> int:
    sheet.cell(row=row, column=1, value="11. Remarks")
    sheet.cell(row=row, column=2, value=record.remarks or None).alignment = Alignment(wrap_text=True)
    row += 2
    for statement, name, caption in (
        (DRIVER_CERTIFICATION, record.driver_signature_name, "(Driver)"),
        (PASSENGER_CERTIFICATION, record.passenger_signature_name, "(Name of Passenger)"),
    ):
        sheet.cell(row=row, column=1, value=statement)
        sheet.merge_cells(start_row=row, start_column=1, end_row=row, end_column=3)
        row += 1
        signature = sheet.cell(row=row, column=2, value=name or None)
        signature.border = underline
        signature.font = header_font
        signature.alignment = Alignment(horizontal="center")
        row += 1
        sheet.cell(row=row, column=2, value=caption).alignment = Alignment(horizontal="center")
        row += 2
    return row


def _cell_value(record: TripTicketRecord, item: TicketField) -> Any:
    value = getattr(record, item.attribute)
    if item.field_type is FieldType.NUMBER:
        if value is None:
            return None
        return int(value) if float(value).is_integer() else value
    return value or None
