from io import BytesIO
from datetime import datetime
from typing import Iterable, List

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font

from warranty.models.submission import Submission

EXPORT_SHEET_NAME = "Gewährleistungsanfragen"

EXPORT_HEADERS = [
    "Datum",
    "Vorname",
    "Nachname",
    "Straße und Hausnummer",
    "PLZ",
    "Ort",
    "TC-Nummer",
    "E-Mail",
    "Telefon",
    "Beschreibung",
    "Haustyp",
    "Bauleitung",
    "Verantwortlicher",
    "Gewerk",
    "Firma",
    "1. Frist",
    "2. Frist",
    "Erledigt am",
    "Abnahme",
    "Anzahl Dateien",
    "Status",
]

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _format_date(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%d.%m.%Y %H:%M")
    return value.strftime("%d.%m.%Y")


def _submission_row(submission: Submission, status_labels: dict) -> List:
    return [
        _format_date(submission.created_at),
        submission.first_name,
        submission.last_name,
        submission.street,
        submission.postal_code,
        submission.city,
        submission.tc_number,
        submission.email,
        submission.phone,
        submission.description,
        submission.house_type or "",
        submission.bauleitung.name if submission.bauleitung else "",
        submission.verantwortlicher.name if submission.verantwortlicher else "",
        submission.gewerk.name if submission.gewerk else "",
        submission.firma.name if submission.firma else "",
        _format_date(submission.first_deadline),
        _format_date(submission.second_deadline),
        _format_date(submission.completed_at),
        submission.acceptance or "",
        len(submission.files),
        status_labels[submission.status],
    ]


def build_submission_export_workbook(submissions: Iterable[Submission], status_labels: dict) -> Workbook:
    workbook = Workbook()
    data_sheet = workbook.active
    data_sheet.title = EXPORT_SHEET_NAME
    data_sheet.append(EXPORT_HEADERS)

    for submission in submissions:
        data_sheet.append(_submission_row(submission, status_labels))

    for idx, header in enumerate(EXPORT_HEADERS, start=1):
        cell = data_sheet.cell(row=1, column=idx)
        cell.font = Font(bold=True)
        cell.alignment = Alignment(wrap_text=True)
        column_letter = cell.column_letter
        data_sheet.column_dimensions[column_letter].width = max(15, len(header) + 2)

    return workbook


def workbook_to_bytes(workbook: Workbook) -> bytes:
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def export_filename(today=None) -> str:
    today = today or datetime.now().date()
    return f"gewaehrleistungsanfragen_{today.isoformat()}.xlsx"
