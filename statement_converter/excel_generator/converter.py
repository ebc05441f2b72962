"""Excel conversion utilities for extracted statement tables."""

import os
import re
import time
from typing import Dict, Optional

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.utils.dataframe import dataframe_to_rows

from statement_converter.config.settings import EXCEL_OUTPUT_FORMAT, OUTPUT_DIR
from statement_converter.parser.amounts import parse_amount
from statement_converter.parser.assembler import OutputTable
from statement_converter.utils.logger import get_logger
from statement_converter.utils.validators import ValidationError, validate_directory_path

STATEMENT_SHEET = "Transactions"
GENERIC_SHEET = "PDF Data"
AMOUNT_HINTS = ("debit", "credit", "balance")
MAX_COLUMN_WIDTH = 50


class ExcelConversionError(Exception):
    """Custom exception for Excel conversion errors."""
    pass


class ExcelConverter:
    """Writes an OutputTable to a styled workbook."""

    def __init__(self, output_dir: str = OUTPUT_DIR) -> None:
        """Initialize Excel converter.

        Args:
            output_dir: Default directory for generated workbooks.
        """
        self.logger = get_logger(__name__)
        self.output_dir = output_dir

        # Define Excel styles
        self.header_font = Font(bold=True, color="FFFFFF")
        self.header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
        self.header_alignment = Alignment(horizontal="center", vertical="center")
        self.stripe_fill = PatternFill(start_color="F8F9FA", end_color="F8F9FA", fill_type="solid")
        self.debit_font = Font(color="CC0000")
        self.credit_font = Font(color="006600")

        thin = Side(style="thin", color="D0D0D0")
        self.border = Border(left=thin, right=thin, top=thin, bottom=thin)

        self.amount_format = '#,##0.00'

    def generate_filename(self, original_name: str, timestamp: Optional[int] = None) -> str:
        """Generate workbook filename from the uploaded file name.

        Args:
            original_name: Name of the source PDF.
            timestamp: Unix timestamp suffix; defaults to now.

        Returns:
            Generated filename.
        """
        base_name = os.path.splitext(os.path.basename(original_name or ""))[0] or "statement"
        base_name = re.sub(r"[^A-Za-z0-9_-]", "_", base_name)
        if timestamp is None:
            timestamp = int(time.time())
        return f"{base_name}_{timestamp}.{EXCEL_OUTPUT_FORMAT}"

    def table_to_dataframe(self, table: OutputTable) -> pd.DataFrame:
        """Convert the table to a DataFrame, parsing hinted amount columns.

        Amount text that does not parse is kept as it is.
        """
        df = table.to_dataframe()
        if df.empty:
            return df

        for index, hint in table.column_hints().items():
            if hint not in AMOUNT_HINTS:
                continue
            column = df.columns[index]
            df[column] = df[column].map(self._to_number)
        return df

    @staticmethod
    def _to_number(value):
        if value is None or value == "":
            return None
        parsed = parse_amount(str(value))
        if parsed is None:
            return value
        return float(parsed)

    def _style_header(self, worksheet, column_count: int) -> None:
        for col_num in range(1, column_count + 1):
            cell = worksheet.cell(row=1, column=col_num)
            cell.font = self.header_font
            cell.fill = self.header_fill
            cell.alignment = self.header_alignment
            cell.border = self.border

    def _auto_width(self, worksheet) -> None:
        for col_idx in range(1, worksheet.max_column + 1):
            max_length = 0
            for row_idx in range(1, worksheet.max_row + 1):
                value = worksheet.cell(row=row_idx, column=col_idx).value
                if value is not None and len(str(value)) > max_length:
                    max_length = len(str(value))

            adjusted_width = min(max_length + 2, MAX_COLUMN_WIDTH)
            worksheet.column_dimensions[get_column_letter(col_idx)].width = adjusted_width

    def create_table_sheet(self, workbook: Workbook, table: OutputTable, sheet_name: str) -> None:
        """Create the data sheet in workbook.

        Args:
            workbook: Excel workbook object.
            table: Table to write.
            sheet_name: Name for the sheet.
        """
        worksheet = workbook.create_sheet(title=sheet_name)
        df = self.table_to_dataframe(table)
        hints: Dict[int, str] = table.column_hints()
        has_header = table.header is not None

        if df.empty and not has_header:
            self.logger.warning("No data to write to Excel")
            return

        rows = dataframe_to_rows(df, index=False, header=has_header)
        for row_num, row in enumerate(rows, 1):
            is_header = has_header and row_num == 1
            stripe = not is_header and row_num % 2 == 0
            for col_num, value in enumerate(row, 1):
                if isinstance(value, float) and pd.isna(value):
                    value = None
                cell = worksheet.cell(row=row_num, column=col_num, value=value)
                if is_header:
                    continue
                cell.border = self.border
                if stripe:
                    cell.fill = self.stripe_fill

                hint = hints.get(col_num - 1)
                if hint in AMOUNT_HINTS and isinstance(value, (int, float)):
                    cell.number_format = self.amount_format
                    cell.alignment = Alignment(horizontal="right")
                if hint == "debit" and value is not None:
                    cell.font = self.debit_font
                elif hint == "credit" and value is not None:
                    cell.font = self.credit_font

        if has_header:
            self._style_header(worksheet, len(table.header))
            worksheet.freeze_panes = "A2"

        self._auto_width(worksheet)
        self.logger.info(f"Created {sheet_name} sheet with {len(table)} rows")

    def write_table(
        self,
        table: OutputTable,
        original_name: str,
        output_dir: Optional[str] = None
    ) -> str:
        """Write table to a new Excel file.

        Args:
            table: Rows produced by the extraction engine.
            original_name: Name of the source PDF, used for the filename.
            output_dir: Optional output directory path.

        Returns:
            Path to created Excel file.

        Raises:
            ExcelConversionError: If conversion fails.
        """
        try:
            if output_dir is None:
                output_dir = self.output_dir

            validate_directory_path(output_dir)

            full_path = os.path.join(output_dir, self.generate_filename(original_name))

            workbook = Workbook()

            # Remove default sheet
            if "Sheet" in workbook.sheetnames:
                workbook.remove(workbook["Sheet"])

            sheet_name = STATEMENT_SHEET if table.is_bank_statement else GENERIC_SHEET
            self.create_table_sheet(workbook, table, sheet_name)

            workbook.save(full_path)
            workbook.close()

            self.logger.info(f"Excel file created successfully: {full_path}")
            return full_path

        except ValidationError as e:
            raise ExcelConversionError(f"Validation error: {str(e)}")
        except Exception as e:
            raise ExcelConversionError(f"Failed to convert to Excel: {str(e)}")
