#!/usr/bin/env python3
"""Bank statement PDF to Excel converter.

Extracts the transactions of a PDF bank statement and writes them to a styled
Excel workbook. Documents that are not bank statements are converted with a
generic table splitter instead.

Usage:
    python main.py --pdf-file <path_to_pdf> [--password <password>] [--output-dir <dir>]

    python main.py --batch-dir <directory_with_pdfs> [--password-file <file>] [--output-dir <dir>]

    python main.py --daemon  # Run as background service
"""

import argparse
import os
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from statement_converter.config.settings import (
    OUTPUT_DIR,
    Settings,
    load_config_from_file,
    merge_configs,
)
from statement_converter.excel_generator.converter import ExcelConversionError, ExcelConverter
from statement_converter.excel_generator.storage import OutputStorage
from statement_converter.parser.engine import parse_statement
from statement_converter.pdf_processor.extractor import PDFExtractionError, TextExtractor
from statement_converter.utils.logger import get_logger, setup_logger
from statement_converter.utils.validators import ValidationError, validate_password, validate_pdf_file

FILE_TYPE_KEYWORDS = [
    ("bank_statement", ("bank", "statement", "account")),
    ("invoice", ("invoice", "bill")),
    ("financial_report", ("report", "financial")),
]


def detect_file_type(filename: str) -> str:
    """Guess the kind of document from its file name."""
    name = (filename or "").lower()
    for file_type, keywords in FILE_TYPE_KEYWORDS:
        if any(keyword in name for keyword in keywords):
            return file_type
    return "general"


@dataclass
class ConversionResult:
    """Outcome of converting one PDF."""

    success: bool
    source: str
    output_path: Optional[str] = None
    row_count: int = 0
    is_bank_statement: bool = False
    file_type: str = "general"
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class BankStatementProcessor:
    """Main processor for bank statement PDF files."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        """Initialize the processor.

        Args:
            settings: Runtime settings; read from the environment when None.
        """
        self.logger = get_logger(__name__)
        self.settings = settings or Settings.from_env()
        self.extractor = TextExtractor()
        self.storage = OutputStorage(self.settings.output_dir, self.settings.prune_old_output_folders)

    def convert(
        self,
        pdf_path: str,
        password: Optional[str] = None,
        output_dir: Optional[str] = None,
        original_name: Optional[str] = None
    ) -> ConversionResult:
        """Convert a single PDF file to an Excel workbook.

        Args:
            pdf_path: Path to the PDF file.
            password: Optional password for encrypted PDF.
            output_dir: Optional output directory; defaults to today's folder.
            original_name: Name used for the output file; defaults to the
                PDF's own name.

        Returns:
            ConversionResult; on failure ``error`` holds a message suitable
            for the user.
        """
        original_name = original_name or os.path.basename(pdf_path)
        result = ConversionResult(
            success=False,
            source=pdf_path,
            file_type=detect_file_type(original_name),
        )

        try:
            self.logger.info(f"Processing PDF: {pdf_path}")

            validate_pdf_file(pdf_path, self.settings.max_file_size_mb)
            validate_password(password, self.settings.max_password_length)

            full_text = self.extractor.extract_text(pdf_path, password)
            table = parse_statement(full_text, self.settings.parser_settings())

            if output_dir is None:
                output_dir = self.storage.dated_folder()

            converter = ExcelConverter(output_dir)
            result.output_path = converter.write_table(table, original_name)
            result.row_count = len(table)
            result.is_bank_statement = table.is_bank_statement
            result.success = True

            self.logger.info(f"Excel report created: {result.output_path}")

        except PDFExtractionError as e:
            self.logger.error(f"PDF extraction failed for {pdf_path}: {str(e)}")
            result.error = e.user_message
        except ValidationError as e:
            self.logger.error(f"Invalid input {pdf_path}: {str(e)}")
            result.error = str(e)
        except ExcelConversionError as e:
            self.logger.error(f"Excel conversion failed for {pdf_path}: {str(e)}")
            result.error = f"Conversion failed: {str(e)}"

        return result

    def process_batch(
        self,
        batch_dir: str,
        password_file: Optional[str] = None,
        output_dir: Optional[str] = None
    ) -> List[ConversionResult]:
        """Process multiple PDF files in a directory.

        Args:
            batch_dir: Directory containing PDF files.
            password_file: Optional file containing passwords (filename=password per line).
            output_dir: Optional output directory for reports.

        Returns:
            One ConversionResult per PDF file, in file name order.
        """
        self.logger.info(f"Processing batch directory: {batch_dir}")

        passwords = load_password_file(password_file)

        pdf_files = sorted(Path(batch_dir).glob("*.pdf"))
        if not pdf_files:
            self.logger.warning(f"No PDF files found in {batch_dir}")
            return []

        self.logger.info(f"Found {len(pdf_files)} PDF files")

        results = []
        for pdf_file in pdf_files:
            results.append(self.convert(str(pdf_file), passwords.get(pdf_file.name), output_dir))

        successful = sum(1 for result in results if result.success)
        self.logger.info(f"Successfully processed {successful}/{len(pdf_files)} files")
        return results

    def start_daemon(self) -> None:
        """Start the processor as a background daemon."""
        self.logger.info("Starting statement converter daemon")

        # Import here to avoid connecting to the broker for one-off runs
        from statement_converter.tasks.celery_app import celery_app

        celery_app.start(['worker', '--loglevel=info'])


def load_password_file(password_file: Optional[str]) -> Dict[str, str]:
    """Read ``filename=password`` lines into a dictionary."""
    passwords = {}
    if password_file and os.path.exists(password_file):
        with open(password_file, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if line and '=' in line:
                    filename, pwd = line.split('=', 1)
                    passwords[filename.strip()] = pwd.strip()
    return passwords


def load_settings(config_file: Optional[str] = None) -> Settings:
    """Build settings from the environment, overridden by a JSON file."""
    settings = Settings.from_env()
    if config_file:
        merged = merge_configs(settings.to_dict(), load_config_from_file(config_file))
        settings = Settings.from_dict({key: value for key, value in merged.items() if hasattr(settings, key)})
    if not settings.validate():
        raise ValueError("Invalid configuration values")
    return settings


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="Convert PDF bank statements to Excel workbooks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Convert single PDF with password
    python main.py --pdf-file statement.pdf --password mypassword

    # Convert single PDF into today's output folder
    python main.py --pdf-file statement.pdf

    # Convert multiple PDFs in directory
    python main.py --batch-dir ./statements --password-file passwords.txt

    # Run as background service
    python main.py --daemon
        """
    )

    # Create mutually exclusive group for main operations
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        '--pdf-file',
        type=str,
        help='Path to single PDF file to convert'
    )
    group.add_argument(
        '--batch-dir',
        type=str,
        help='Directory containing multiple PDF files to convert'
    )
    group.add_argument(
        '--daemon',
        action='store_true',
        help='Run as background daemon service'
    )

    # Optional arguments
    parser.add_argument(
        '--password',
        type=str,
        help='Password for encrypted PDF (only used with --pdf-file)'
    )
    parser.add_argument(
        '--password-file',
        type=str,
        help='File containing passwords for batch processing (format: filename=password)'
    )
    parser.add_argument(
        '--output-dir',
        type=str,
        default=None,
        help=f'Output directory for workbooks (default: dated folder under {OUTPUT_DIR})'
    )
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='JSON file with settings overrides'
    )

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for error, 130 if interrupted).
    """
    try:
        args = parse_arguments(argv)
        settings = load_settings(args.config)
        setup_logger("statement_converter", level=settings.get_log_level(), logs_dir=settings.logs_dir)

        processor = BankStatementProcessor(settings)

        if args.daemon:
            processor.start_daemon()
        elif args.pdf_file:
            result = processor.convert(
                pdf_path=args.pdf_file,
                password=args.password,
                output_dir=args.output_dir
            )

            if result.success:
                print(f"Success! Workbook created: {result.output_path} ({result.row_count} rows)")
                return 0
            print(f"Error: {result.error}")
            return 1

        elif args.batch_dir:
            results = processor.process_batch(
                batch_dir=args.batch_dir,
                password_file=args.password_file,
                output_dir=args.output_dir
            )

            created = [result for result in results if result.success]
            for result in results:
                if not result.success:
                    print(f"  ! {result.source}: {result.error}")
            if created:
                print(f"Success! Created {len(created)} workbooks:")
                for result in created:
                    print(f"  - {result.output_path}")
                return 0
            print("Error: No files were converted successfully. Check logs for details.")
            return 1

        return 0

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 130
    except Exception as e:
        print(f"Unexpected error: {str(e)}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
