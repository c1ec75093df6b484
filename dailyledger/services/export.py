"""
Export service for monthly ledger sheets.

Provides functionality to export one month of a ledger (or of a member
list) to XLSX and CSV formats: a member x day grid of payments followed by
the month's balances and a daily statistics block.
"""

import csv
import io
from datetime import date, datetime
from enum import Enum
from typing import Optional, cast

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from dailyledger.db.repository import LedgerRepository

from .accounting import (
    active_in_month,
    by_rank,
    month_end,
    month_key,
    monthly_reconciliation,
    parse_month,
)

MEMBER_COLUMN = "Member Name"
SUMMARY_COLUMNS = ["Monthly Total", "Monthly Target", "Previous Balance", "Balance Due"]
DAILY_ROWS = ["Total Paid", "Members Paid", "Members Didn't Pay"]


class ExportFormat(str, Enum):
    """Supported export formats."""

    CSV = "csv"
    XLSX = "xlsx"


class ExportService:
    """Service for exporting monthly ledger sheets to various formats."""

    def __init__(self, repository: LedgerRepository):
        """
        Initialize the export service.

        Args:
            repository: Repository for members and transactions
        """
        self.repository = repository

    # =========================================================================
    # Grid
    # =========================================================================

    def build_grid(
        self,
        user_id: str,
        month_year: str,
        member_ids: Optional[list[int]] = None,
    ) -> pd.DataFrame:
        """
        Build the member x day grid for a month.

        Day cells hold the sum of payments on that day; clearing transactions
        never show up in them. The balance columns come from the month's
        reconciliation, so they do count clearing transactions.

        Args:
            user_id: Discord user ID
            month_year: Month in YYYY-MM format
            member_ids: Restrict the sheet to these members (a member list)

        Returns:
            DataFrame indexed by member ID with a "Member Name" column, one
            column per day of the month and the summary columns
        """
        first = parse_month(month_year)
        last = month_end(first)
        month_year = month_key(first)
        days = list(range(1, last.day + 1))

        members = [
            m
            for m in by_rank(
                self.repository.members.list_members(user_id, member_ids=member_ids)
            )
            if active_in_month(m, first)
        ]
        transactions = self.repository.transactions.query(
            user_id, date_range=(date.min, last)
        )

        payments = pd.DataFrame(
            [
                {"member_id": t.member_id, "day": t.date.day, "amount": t.amount}
                for t in transactions
                if t.type.is_payment and t.date >= first
            ],
            columns=["member_id", "day", "amount"],
        )
        index = [m.id for m in members]
        if payments.empty:
            cells = pd.DataFrame(0.0, index=index, columns=days)
        else:
            cells = pd.pivot_table(
                payments,
                index="member_id",
                columns="day",
                values="amount",
                aggfunc="sum",
                fill_value=0.0,
            ).reindex(index=index, columns=days, fill_value=0.0)
        cells = cells.astype(float)

        grid = cells.copy()
        grid.insert(0, MEMBER_COLUMN, [m.name for m in members])
        grid["Monthly Total"] = cells.sum(axis=1)

        reconciliations = [
            monthly_reconciliation(
                m, [t for t in transactions if t.member_id == m.id], month_year
            )
            for m in members
        ]
        grid["Monthly Target"] = [r.monthly_target for r in reconciliations]
        grid["Previous Balance"] = [r.previous_balance for r in reconciliations]
        grid["Balance Due"] = [r.final_balance for r in reconciliations]
        grid.index.name = "member_id"
        return grid

    def daily_statistics(self, grid: pd.DataFrame) -> pd.DataFrame:
        """Per-day totals of a grid: amount paid, members paid and not paid."""
        cells = grid[self._day_columns(grid)]
        paid = (cells > 0).sum(axis=0)
        return pd.DataFrame(
            [cells.sum(axis=0), paid, len(grid) - paid],
            index=DAILY_ROWS,
        )

    def _day_columns(self, grid: pd.DataFrame) -> list[int]:
        fixed = {MEMBER_COLUMN, *SUMMARY_COLUMNS}
        return [int(c) for c in grid.columns if c not in fixed]

    # =========================================================================
    # Writers
    # =========================================================================

    def export_to_csv(
        self,
        user_id: str,
        month_year: str,
        member_ids: Optional[list[int]] = None,
    ) -> io.BytesIO:
        """
        Export a month to CSV format.

        Args:
            user_id: Discord user ID
            month_year: Month in YYYY-MM format
            member_ids: Optional member list restriction

        Returns:
            BytesIO buffer containing the CSV data
        """
        grid = self.build_grid(user_id, month_year, member_ids)
        daily = self.daily_statistics(grid)
        days = self._day_columns(grid)

        buffer = io.BytesIO()
        text_buffer = io.StringIO()

        writer = csv.writer(text_buffer)
        writer.writerow([MEMBER_COLUMN, *days, *SUMMARY_COLUMNS])

        for _, row in grid.iterrows():
            writer.writerow(
                [
                    row[MEMBER_COLUMN],
                    *[_format_cell(row[d]) for d in days],
                    *[f"{row[c]:.2f}" for c in SUMMARY_COLUMNS],
                ]
            )

        writer.writerow([])
        writer.writerow(["Daily Statistics"])
        for label, values in daily.iterrows():
            if label == "Total Paid":
                writer.writerow([label, *[f"{values[d]:.2f}" for d in days]])
            else:
                writer.writerow([label, *[int(values[d]) for d in days]])

        # Convert to bytes
        buffer.write(text_buffer.getvalue().encode("utf-8-sig"))  # BOM for Excel
        buffer.seek(0)

        return buffer

    def export_to_xlsx(
        self,
        user_id: str,
        month_year: str,
        member_ids: Optional[list[int]] = None,
        title: Optional[str] = None,
    ) -> io.BytesIO:
        """
        Export a month to XLSX format with formatting.

        Args:
            user_id: Discord user ID
            month_year: Month in YYYY-MM format
            member_ids: Optional member list restriction
            title: Sheet heading, e.g. the list name

        Returns:
            BytesIO buffer containing the XLSX data
        """
        grid = self.build_grid(user_id, month_year, member_ids)
        daily = self.daily_statistics(grid)
        days = self._day_columns(grid)
        first = parse_month(month_year)

        wb = Workbook()
        ws = cast(Worksheet, wb.active)
        ws.title = first.strftime("%B %Y")

        # Define styles
        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(
            start_color="4472C4", end_color="4472C4", fill_type="solid"
        )
        paid_fill = PatternFill(
            start_color="C6EFCE", end_color="C6EFCE", fill_type="solid"
        )
        due_fill = PatternFill(
            start_color="FFC7CE", end_color="FFC7CE", fill_type="solid"
        )
        stats_fill = PatternFill(
            start_color="FFEB9C", end_color="FFEB9C", fill_type="solid"
        )

        # Headers
        headers = [MEMBER_COLUMN, *days, *SUMMARY_COLUMNS]
        for col, header in enumerate(headers, 1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal="center")

        summary_start = len(days) + 2

        # Member rows
        for row_idx, (_, row) in enumerate(grid.iterrows(), 2):
            ws.cell(row=row_idx, column=1, value=row[MEMBER_COLUMN])
            for col, day in enumerate(days, 2):
                amount = float(row[day])
                if amount > 0:
                    cell = ws.cell(row=row_idx, column=col, value=amount)
                    cell.fill = paid_fill
                    cell.number_format = "#,##0.00"
            for offset, column in enumerate(SUMMARY_COLUMNS):
                cell = ws.cell(
                    row=row_idx, column=summary_start + offset, value=float(row[column])
                )
                cell.number_format = "#,##0.00"
            if row["Balance Due"] > 0:
                ws.cell(row=row_idx, column=summary_start + 3).fill = due_fill

        # Daily statistics block, one empty row below the members
        stats_row = len(grid) + 3
        ws.cell(row=stats_row, column=1, value="Daily Statistics").font = Font(
            bold=True
        )
        for offset, (label, values) in enumerate(daily.iterrows(), 1):
            ws.cell(row=stats_row + offset, column=1, value=label).fill = stats_fill
            for col, day in enumerate(days, 2):
                value = values[day]
                cell = ws.cell(
                    row=stats_row + offset,
                    column=col,
                    value=float(value) if label == "Total Paid" else int(value),
                )
                if label == "Total Paid":
                    cell.number_format = "#,##0.00"

        # Column widths
        ws.column_dimensions["A"].width = 20
        for col in range(2, summary_start):
            ws.column_dimensions[get_column_letter(col)].width = 10
        for offset in range(len(SUMMARY_COLUMNS)):
            ws.column_dimensions[get_column_letter(summary_start + offset)].width = 16

        # Freeze header row and name column
        ws.freeze_panes = "B2"

        self._add_summary_sheet(wb, grid, first, title)

        # Save to buffer
        buffer = io.BytesIO()
        wb.save(buffer)
        buffer.seek(0)

        return buffer

    def _add_summary_sheet(
        self,
        wb: Workbook,
        grid: pd.DataFrame,
        first: date,
        title: Optional[str],
    ):
        """Add a monthly summary sheet to the workbook."""
        ws = wb.create_sheet(title="Summary")

        # Styles
        header_font = Font(bold=True)
        title_font = Font(bold=True, size=14)

        heading = f"{title or 'Daily Ledger'} - {first.strftime('%B %Y')}"
        ws.cell(row=1, column=1, value=heading).font = title_font
        ws.cell(
            row=2,
            column=1,
            value=f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}",
        )

        total_collected = float(grid["Monthly Total"].sum())
        total_target = float(grid["Monthly Target"].sum())
        dues = grid["Balance Due"]
        days_in_month = len(self._day_columns(grid))

        rows = [
            ("Total Members", len(grid)),
            ("Total Collected", total_collected),
            ("Total Target", total_target),
            ("Total Outstanding", float(dues[dues > 0].sum())),
            ("Average Daily Collection", total_collected / days_in_month),
            ("Members Paid Full/Excess", int((dues <= 0).sum())),
            ("Members with Balance Due", int((dues > 0).sum())),
        ]

        summary_start = 4
        ws.cell(row=summary_start, column=1, value="Metric").font = header_font
        ws.cell(row=summary_start, column=2, value="Value").font = header_font
        for offset, (label, value) in enumerate(rows, 1):
            ws.cell(row=summary_start + offset, column=1, value=label)
            cell = ws.cell(row=summary_start + offset, column=2, value=value)
            if isinstance(value, float):
                cell.number_format = "#,##0.00"

        # Column widths
        ws.column_dimensions["A"].width = 28
        ws.column_dimensions["B"].width = 18

    def get_filename(
        self,
        month_year: str,
        format: ExportFormat,
        list_name: Optional[str] = None,
    ) -> str:
        """
        Generate a filename for the export.

        Args:
            month_year: Month in YYYY-MM format
            format: Export format
            list_name: Optional list the export is restricted to

        Returns:
            Suggested filename
        """
        prefix = "dailyledger"
        if list_name:
            prefix += "_" + "_".join(list_name.split())
        return f"{prefix}_{month_key(parse_month(month_year))}.{format.value}"


def _format_cell(amount: float) -> str:
    return f"{amount:.2f}" if amount > 0 else ""
