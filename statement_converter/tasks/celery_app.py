"""Celery application and task definitions for statement conversion."""

import os
from typing import Any, Dict, Optional

from celery import Celery

from statement_converter.config.settings import (
    CELERY_ACCEPT_CONTENT,
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CELERY_RESULT_SERIALIZER,
    CELERY_TASK_SERIALIZER,
    CELERY_TIMEZONE,
    MAX_RETRIES,
    RETRY_DELAY_SECONDS,
    Settings,
)
from statement_converter.excel_generator.converter import ExcelConverter
from statement_converter.excel_generator.storage import OutputStorage
from statement_converter.parser.engine import parse_statement
from statement_converter.pdf_processor.extractor import PDFExtractionError, TextExtractor
from statement_converter.utils.logger import ConversionLogger, get_logger
from statement_converter.utils.validators import ValidationError, validate_password, validate_pdf_file

# Initialize Celery app
celery_app = Celery(
    "statement_converter",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
    task_serializer=CELERY_TASK_SERIALIZER,
    result_serializer=CELERY_RESULT_SERIALIZER,
    accept_content=CELERY_ACCEPT_CONTENT,
    timezone=CELERY_TIMEZONE,
)

# Celery configuration
celery_app.conf.update(
    task_routes={
        "convert_statement": {"queue": "statement_conversion"},
    },
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    worker_max_tasks_per_child=1000,
)

logger = get_logger("celery_tasks")


@celery_app.task(bind=True, name="convert_statement")
def convert_statement(
    self,
    pdf_path: str,
    password: Optional[str] = None,
    output_dir: Optional[str] = None,
    original_name: Optional[str] = None
) -> Dict[str, Any]:
    """Convert a PDF statement to an Excel workbook.

    Password, validation and unreadable-file errors are final; retrying
    cannot change their outcome. Anything else is retried.

    Args:
        self: Celery task instance.
        pdf_path: Path to PDF file.
        password: Optional PDF password.
        output_dir: Optional output directory; defaults to today's folder.
        original_name: Name shown to the user; defaults to the file name.

    Returns:
        Dictionary with conversion results.
    """
    task_id = self.request.id
    conversion_logger = ConversionLogger(task_id)
    settings = Settings.from_env()

    try:
        validate_pdf_file(pdf_path, settings.max_file_size_mb)
        validate_password(password, settings.max_password_length)
        conversion_logger.log_start(pdf_path)

        conversion_logger.log_progress("Extracting text from PDF...")
        full_text = TextExtractor().extract_text(pdf_path, password)

        conversion_logger.log_progress("Parsing transactions...")
        table = parse_statement(full_text, settings.parser_settings())

        if output_dir is None:
            output_dir = OutputStorage(settings.output_dir, settings.prune_old_output_folders).dated_folder()

        output_path = ExcelConverter(output_dir).write_table(
            table,
            original_name or os.path.basename(pdf_path),
        )

        conversion_logger.log_completion(output_path, len(table))
        return {
            "success": True,
            "output_path": output_path,
            "row_count": len(table),
            "is_bank_statement": table.is_bank_statement,
            "error": None,
            "task_id": task_id,
        }

    except PDFExtractionError as e:
        conversion_logger.log_error(e, "PDF extraction failed")
        return {
            "success": False,
            "output_path": None,
            "row_count": 0,
            "is_bank_statement": False,
            "error": e.user_message,
            "task_id": task_id,
        }

    except ValidationError as e:
        conversion_logger.log_error(e, "Input validation failed")
        return {
            "success": False,
            "output_path": None,
            "row_count": 0,
            "is_bank_statement": False,
            "error": str(e),
            "task_id": task_id,
        }

    except Exception as e:
        conversion_logger.log_error(e, "Unexpected error during conversion")

        if self.request.retries < MAX_RETRIES:
            conversion_logger.log_progress(f"Retrying task (attempt {self.request.retries + 1}/{MAX_RETRIES})")
            raise self.retry(countdown=RETRY_DELAY_SECONDS, exc=e)

        return {
            "success": False,
            "output_path": None,
            "row_count": 0,
            "is_bank_statement": False,
            "error": f"Unexpected error: {str(e)}",
            "task_id": task_id,
        }
