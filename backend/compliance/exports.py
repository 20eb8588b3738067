"""
Downloadable versions of a calculation.

CSV and Excel files are produced with Pandas (Excel through openpyxl), the
printable report with ReportLab.  Every function returns bytes so the view
can decide how to send them; nothing is written to disk.
"""
from __future__ import annotations

from datetime import date, datetime
from io import BytesIO, StringIO

import pandas as pd
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from .calculator import CalculationResult, PackagingParameters

COLUMNS = [
    "Chemical Name",
    "CAS Number",
    "Q Value (mg/kg)",
    "M Value (mg/kg)",
    "Regulation Name",
    "SML (mg/kg)",
    "Result",
]

# Width (in characters) of each column in the Excel sheet.
COLUMN_WIDTHS = [25, 15, 15, 15, 30, 15, 10]

FORMULA = "M = (Q × A × Lp × D) / F"

RESULT_LABELS = {"pass": "Pass", "fail": "Fail", "unknown": "Unknown"}

CONTENT_TYPES = {
    "csv": "text/csv; charset=utf-8",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "pdf": "application/pdf",
}


def export_filename(file_format: str, on: date | None = None) -> str:
    on = on or date.today()
    return f"m_value_calculation_{on:%Y-%m-%d}.{file_format}"


def result_rows(results: list[CalculationResult]) -> list[list]:
    """
    One row per regulation outcome.

    The substance columns are only filled on the first row of each
    substance, which reads much better in a spreadsheet than repeating them.
    """
    rows: list[list] = []
    for result in results:
        substance = result.substance
        name = substance.name or "Unnamed"
        cas_number = substance.cas_number or "-"

        if not result.limit_outcomes:
            rows.append(
                [
                    name,
                    cas_number,
                    substance.contamination,
                    result.m_value,
                    "No regulation data",
                    "-",
                    "-",
                ]
            )
            continue

        for index, outcome in enumerate(result.limit_outcomes):
            first = index == 0
            sml = outcome.limit.sml_value
            rows.append(
                [
                    name if first else "",
                    cas_number if first else "",
                    substance.contamination if first else "",
                    result.m_value if first else "",
                    outcome.limit.display_name,
                    sml if sml is not None else "-",
                    RESULT_LABELS[outcome.status],
                ]
            )
    return rows


def parameter_rows(case: int, params: PackagingParameters) -> list[list]:
    return [
        ["Calculation Parameters"],
        ["Case Type:", f"Case {case}"],
        ["A (Surface Area):", f"{params.surface_area:g} cm²"],
        ["Lp (Thickness):", f"{params.thickness:g} cm"],
        ["D (Density):", f"{params.density:g} g/cm³"],
        ["F (Food Weight):", f"{params.food_mass:g} g"],
        ["Formula:", FORMULA],
    ]


def build_dataframe(
    case: int, params: PackagingParameters, results: list[CalculationResult]
) -> pd.DataFrame:
    """Results, an empty spacer row and the parameter block in one frame."""
    trailer = [[]] + parameter_rows(case, params)
    padded = [row + [""] * (len(COLUMNS) - len(row)) for row in trailer]
    return pd.DataFrame(result_rows(results) + padded, columns=COLUMNS)


def to_csv(case: int, params: PackagingParameters, results: list[CalculationResult]) -> bytes:
    buffer = StringIO()
    build_dataframe(case, params, results).to_csv(buffer, index=False)
    # BOM so Excel picks up the UTF-8 (cm², ×) when the CSV is double clicked.
    return buffer.getvalue().encode("utf-8-sig")


def to_xlsx(case: int, params: PackagingParameters, results: list[CalculationResult]) -> bytes:
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        build_dataframe(case, params, results).to_excel(
            writer, sheet_name="Calculation Results", index=False
        )
        worksheet = writer.sheets["Calculation Results"]
        for letter, width in zip("ABCDEFG", COLUMN_WIDTHS):
            worksheet.column_dimensions[letter].width = width
    return buffer.getvalue()


def to_pdf(case: int, params: PackagingParameters, results: list[CalculationResult]) -> bytes:
    """
    Short, text-only report of the calculation.

    Same idea as the spreadsheet, laid out as a printable page: parameters
    first, then one block per substance with its regulation outcomes.
    """
    buffer = BytesIO()
    pdf_canvas = canvas.Canvas(buffer, pagesize=A4)
    _, height = A4

    y = height - 50

    def next_line(step: int) -> None:
        nonlocal y
        y -= step
        # Simple page break when we get close to the bottom edge.
        if y < 60:
            pdf_canvas.showPage()
            pdf_canvas.setFont("Helvetica", 10)
            y = height - 50

    pdf_canvas.setFont("Helvetica-Bold", 14)
    pdf_canvas.drawString(40, y, "Worst Case Migration Report")
    next_line(20)
    pdf_canvas.setFont("Helvetica", 10)
    pdf_canvas.drawString(40, y, f"Generated at: {datetime.now():%Y-%m-%d %H:%M:%S}")
    next_line(30)

    pdf_canvas.setFont("Helvetica-Bold", 12)
    pdf_canvas.drawString(40, y, "Calculation Parameters")
    next_line(20)
    pdf_canvas.setFont("Helvetica", 10)
    for label, value in parameter_rows(case, params)[1:]:
        pdf_canvas.drawString(60, y, f"{label} {value}")
        next_line(15)
    next_line(10)

    pdf_canvas.setFont("Helvetica-Bold", 12)
    pdf_canvas.drawString(40, y, "Results")
    next_line(20)

    for result in results:
        substance = result.substance
        pdf_canvas.setFont("Helvetica-Bold", 10)
        pdf_canvas.drawString(
            60,
            y,
            f"{substance.name or 'Unnamed'} (CAS {substance.cas_number or '-'}): "
            f"Q = {substance.contamination:g} mg/kg, M = {result.m_value:.4f} mg/kg",
        )
        next_line(15)
        pdf_canvas.setFont("Helvetica", 10)
        if not result.limit_outcomes:
            pdf_canvas.drawString(80, y, "No regulation data")
            next_line(15)
        for outcome in result.limit_outcomes:
            sml = outcome.limit.sml_value
            sml_text = f"{sml:g} {outcome.limit.sml_unit}" if sml is not None else "-"
            pdf_canvas.drawString(
                80,
                y,
                f"{outcome.limit.display_name}: SML {sml_text} - {RESULT_LABELS[outcome.status]}",
            )
            next_line(15)
        next_line(5)

    pdf_canvas.showPage()
    pdf_canvas.save()
    return buffer.getvalue()


RENDERERS = {
    "csv": to_csv,
    "xlsx": to_xlsx,
    "pdf": to_pdf,
}
