"""
Billing Workbook Export

Writes computed billing lines to an Excel workbook with a per-response sheet
and a per-client summary sheet.
"""

import io
import logging
from datetime import datetime
from typing import List

import pandas as pd
from openpyxl.styles import Font, Alignment, PatternFill, Border, Side
from openpyxl.utils import get_column_letter

from notice_tracker.schemas import BillingLine, BillingTotals, ClientBilling

logger = logging.getLogger(__name__)

# Styling constants
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
BORDER = Border(
    left=Side(style='thin'),
    right=Side(style='thin'),
    top=Side(style='thin'),
    bottom=Side(style='thin')
)
CURRENCY_FORMAT = '"$"#,##0.00'

LINE_COLUMNS = [
    "Date", "Client", "Notice", "Response Method", "Minutes",
    "Hourly Rate", "Billable", "Billing", "Outcome", "Amount",
]
SUMMARY_COLUMNS = ["Client ID", "Client", "Responses", "Billable Hours", "Total Amount"]


def apply_header_style(ws, row_num: int = 1):
    """Apply header styling to a row"""
    for cell in ws[row_num]:
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.alignment = Alignment(horizontal='center', vertical='center')
        cell.border = BORDER


def auto_adjust_columns(ws):
    """Size columns to their longest value"""
    for column in ws.columns:
        max_length = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
        column_letter = get_column_letter(column[0].column)
        ws.column_dimensions[column_letter].width = min(max_length + 2, 50)


def format_currency_column(ws, header: str):
    for cell in ws[1]:
        if cell.value == header:
            for row in ws.iter_rows(min_row=2, min_col=cell.column, max_col=cell.column):
                row[0].number_format = CURRENCY_FORMAT


def lines_dataframe(lines: List[BillingLine], client_names: dict) -> pd.DataFrame:
    rows = []
    for line in lines:
        call = line.call
        rows.append({
            "Date": call.date.strftime("%m/%d/%Y"),
            "Client": client_names.get(call.client_id, f"Client {call.client_id}"),
            "Notice": call.notice_id,
            "Response Method": call.response_method or "",
            "Minutes": call.duration_minutes,
            "Hourly Rate": float(call.hourly_rate) if call.hourly_rate else None,
            "Billable": "Yes" if call.billable else "No",
            "Billing": call.billing.value,
            "Outcome": call.outcome or "",
            "Amount": float(line.billable_amount),
        })
    return pd.DataFrame(rows, columns=LINE_COLUMNS)


def summary_dataframe(summaries: List[ClientBilling], totals: BillingTotals) -> pd.DataFrame:
    rows = [
        {
            "Client ID": s.client.id,
            "Client": s.client.name,
            "Responses": len(s.lines),
            "Billable Hours": round(s.billable_hours, 2),
            "Total Amount": float(s.total_amount),
        }
        for s in summaries
    ]
    rows.append({"Client ID": "", "Client": "Unbilled", "Total Amount": float(totals.unbilled)})
    rows.append({"Client ID": "", "Client": "Billed", "Total Amount": float(totals.billed)})
    rows.append({"Client ID": "", "Client": "Total", "Total Amount": float(totals.total)})
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def generate_billing_workbook(
    lines: List[BillingLine],
    summaries: List[ClientBilling],
    totals: BillingTotals,
) -> io.BytesIO:
    """
    Build the billing workbook.

    Returns:
        BytesIO positioned at the start of the xlsx payload.
    """
    client_names = {s.client.id: s.client.name for s in summaries}
    output = io.BytesIO()

    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        summary_dataframe(summaries, totals).to_excel(writer, sheet_name="Client Summary", index=False)
        lines_dataframe(lines, client_names).to_excel(writer, sheet_name="Responses", index=False)

        summary_ws = writer.sheets["Client Summary"]
        apply_header_style(summary_ws)
        format_currency_column(summary_ws, "Total Amount")
        auto_adjust_columns(summary_ws)

        lines_ws = writer.sheets["Responses"]
        apply_header_style(lines_ws)
        format_currency_column(lines_ws, "Amount")
        format_currency_column(lines_ws, "Hourly Rate")
        auto_adjust_columns(lines_ws)

    output.seek(0)
    logger.info(f"Generated billing workbook: {len(lines)} responses, {len(summaries)} clients")
    return output


def export_filename() -> str:
    return f"billing_{datetime.now().strftime('%Y%m%d')}.xlsx"
