"""
Module: registry_kernel.selectors.register_export
Responsibility: Render the filtered general register for printing, as an
    Excel workbook or as CSV text.
Architecture position: Kernel > Selectors.  Read-only.

The workbook keeps dates, years and numbers as native cell values so the
sheet sorts and filters correctly; CSV flattens everything to text.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterator

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from sqlalchemy import select

from registry_kernel.domain.dtos import DocumentDTO, DocumentFilter
from registry_kernel.models.document import Document
from registry_kernel.selectors.base import BaseSelector
from registry_kernel.selectors.document_selector import (
    apply_document_filter,
    register_order,
)

REGISTER_COLUMNS: tuple[str, ...] = (
    "number",
    "registration_date",
    "type",
    "subject",
    "sender",
    "recipient",
    "status",
    "department_id",
    "assigned_to",
    "due_date",
)

# (header, column width)
WORKBOOK_COLUMNS: tuple[tuple[str, int], ...] = (
    ("Number", 15),
    ("Year", 8),
    ("Type", 12),
    ("Registration date", 18),
    ("Subject", 40),
    ("Status", 15),
    ("Priority", 12),
    ("Sender", 30),
    ("Recipient", 30),
    ("External number", 15),
    ("External date", 15),
    ("Due date", 15),
    ("Resolved date", 15),
    ("File index", 18),
    ("Secret", 10),
)

WORKBOOK_SHEET_TITLE = "Register"
_HEADER_FILL = PatternFill(fill_type="solid", fgColor="FFE0E0E0")
_DATE_FORMAT = "yyyy-mm-dd"


def _cell(value) -> str:
    if value is None:
        return ""
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def register_row(document: DocumentDTO) -> list[str]:
    return [
        _cell(document.formatted_number),
        _cell(document.registration_date),
        _cell(document.document_type),
        document.subject,
        _cell(document.sender_name),
        _cell(document.recipient_name),
        _cell(document.status),
        _cell(document.department_id),
        _cell(document.assigned_to),
        _cell(document.due_date),
    ]


def workbook_row(document: DocumentDTO) -> list:
    """One sheet row.  Empty cells stay None."""
    return [
        document.formatted_number,
        document.registration_year,
        document.document_type.value,
        document.registration_date,
        document.subject,
        document.status.value,
        document.priority.value,
        document.sender_name,
        document.recipient_name,
        document.external_number,
        document.external_date,
        document.due_date,
        document.resolved_date,
        document.file_index,
        "yes" if document.is_secret else "no",
    ]


class RegisterExporter(BaseSelector[Document]):
    """Printed register renderings."""

    def _documents(self, filters: DocumentFilter | None) -> Iterator[DocumentDTO]:
        stmt = register_order(
            apply_document_filter(select(Document), filters or DocumentFilter())
        )
        for document in self.session.execute(stmt).scalars():
            yield DocumentDTO.from_model(document)

    def export_xlsx(self, filters: DocumentFilter | None = None) -> bytes:
        """
        Every document matching ``filters`` as an .xlsx workbook.

        One sheet, a bold shaded header row, then one row per document in
        register order.  Date columns carry a date number format.
        """
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = WORKBOOK_SHEET_TITLE

        sheet.append([header for header, _ in WORKBOOK_COLUMNS])
        for cell in sheet[1]:
            cell.font = Font(bold=True)
            cell.fill = _HEADER_FILL
            cell.alignment = Alignment(horizontal="center", vertical="center")
        for index, (_, width) in enumerate(WORKBOOK_COLUMNS, start=1):
            sheet.column_dimensions[get_column_letter(index)].width = width

        for document in self._documents(filters):
            sheet.append(workbook_row(document))
            for cell in sheet[sheet.max_row]:
                if cell.is_date:
                    cell.number_format = _DATE_FORMAT

        sheet.freeze_panes = "A2"
        buffer = io.BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    def export_csv(
        self,
        filters: DocumentFilter | None = None,
        delimiter: str = ",",
    ) -> str:
        """Every document matching ``filters`` as CSV text with a header row."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, delimiter=delimiter, quoting=csv.QUOTE_MINIMAL)
        writer.writerow(REGISTER_COLUMNS)
        for document in self._documents(filters):
            writer.writerow(register_row(document))
        return buffer.getvalue()
