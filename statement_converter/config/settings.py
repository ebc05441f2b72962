"""Configuration settings for the statement conversion system."""

import os
import json
from typing import Dict, Any, List
from dataclasses import dataclass, asdict, field

# Statement Parsing Configuration
STATEMENT_KEYWORD_THRESHOLD = int(os.getenv("STATEMENT_KEYWORD_THRESHOLD", "3"))
MAX_CONSECUTIVE_NON_TRANSACTION = int(os.getenv("MAX_CONSECUTIVE_NON_TRANSACTION", "20"))
BALANCE_POSITION_RATIO = float(os.getenv("BALANCE_POSITION_RATIO", "0.7"))
BARE_AMOUNT_TAIL_RATIO = float(os.getenv("BARE_AMOUNT_TAIL_RATIO", "0.4"))
MAX_AMOUNTS_PER_LINE = int(os.getenv("MAX_AMOUNTS_PER_LINE", "2"))
MIN_AMOUNT = float(os.getenv("MIN_AMOUNT", "0.01"))
MIN_BARE_AMOUNT = float(os.getenv("MIN_BARE_AMOUNT", "10"))

# Celery Configuration
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0")
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TIMEZONE = "UTC"

# File Paths
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
OUTPUT_DIR = os.getenv("OUTPUT_DIR", os.path.join(BASE_DIR, "converted"))
LOGS_DIR = os.getenv("LOGS_DIR", os.path.join(BASE_DIR, "logs"))
PRUNE_OLD_OUTPUT_FOLDERS = os.getenv("PRUNE_OLD_OUTPUT_FOLDERS", "True").lower() == "true"

# Upload limits
MAX_FILE_SIZE_MB = int(os.getenv("MAX_FILE_SIZE_MB", "20"))
MAX_PASSWORD_LENGTH = int(os.getenv("MAX_PASSWORD_LENGTH", "255"))
SUPPORTED_PDF_FORMATS = [".pdf"]

# Logging Configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Excel Output Configuration
EXCEL_OUTPUT_FORMAT = os.getenv("EXCEL_OUTPUT_FORMAT", "xlsx")

# Processing Configuration
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
RETRY_DELAY_SECONDS = int(os.getenv("RETRY_DELAY_SECONDS", "60"))


@dataclass(frozen=True)
class ParserSettings:
    """Tuning knobs of the transaction extraction engine."""

    statement_keyword_threshold: int = STATEMENT_KEYWORD_THRESHOLD
    max_consecutive_non_transaction: int = MAX_CONSECUTIVE_NON_TRANSACTION
    balance_position_ratio: float = BALANCE_POSITION_RATIO
    bare_amount_tail_ratio: float = BARE_AMOUNT_TAIL_RATIO
    max_amounts_per_line: int = MAX_AMOUNTS_PER_LINE
    min_amount: float = MIN_AMOUNT
    min_bare_amount: float = MIN_BARE_AMOUNT


@dataclass
class Settings:
    """Configuration settings class."""

    # Parsing
    statement_keyword_threshold: int = STATEMENT_KEYWORD_THRESHOLD
    max_consecutive_non_transaction: int = MAX_CONSECUTIVE_NON_TRANSACTION
    balance_position_ratio: float = BALANCE_POSITION_RATIO
    bare_amount_tail_ratio: float = BARE_AMOUNT_TAIL_RATIO
    max_amounts_per_line: int = MAX_AMOUNTS_PER_LINE
    min_amount: float = MIN_AMOUNT
    min_bare_amount: float = MIN_BARE_AMOUNT

    # Output Configuration
    output_dir: str = OUTPUT_DIR
    prune_old_output_folders: bool = PRUNE_OLD_OUTPUT_FOLDERS
    excel_output_format: str = EXCEL_OUTPUT_FORMAT
    log_level: str = "INFO"
    log_format: str = LOG_FORMAT
    logs_dir: str = LOGS_DIR

    # Upload limits
    max_file_size_mb: int = MAX_FILE_SIZE_MB
    max_password_length: int = MAX_PASSWORD_LENGTH
    supported_pdf_formats: List[str] = field(default_factory=lambda: SUPPORTED_PDF_FORMATS.copy())

    # Background processing
    celery_broker_url: str = CELERY_BROKER_URL
    celery_result_backend: str = CELERY_RESULT_BACKEND
    max_retries: int = MAX_RETRIES
    retry_delay_seconds: int = RETRY_DELAY_SECONDS

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings from environment variables."""
        return cls(
            statement_keyword_threshold=int(os.getenv("STATEMENT_KEYWORD_THRESHOLD", "3")),
            max_consecutive_non_transaction=int(os.getenv("MAX_CONSECUTIVE_NON_TRANSACTION", "20")),
            balance_position_ratio=float(os.getenv("BALANCE_POSITION_RATIO", "0.7")),
            bare_amount_tail_ratio=float(os.getenv("BARE_AMOUNT_TAIL_RATIO", "0.4")),
            max_amounts_per_line=int(os.getenv("MAX_AMOUNTS_PER_LINE", "2")),
            min_amount=float(os.getenv("MIN_AMOUNT", "0.01")),
            min_bare_amount=float(os.getenv("MIN_BARE_AMOUNT", "10")),
            output_dir=os.getenv("OUTPUT_DIR", OUTPUT_DIR),
            prune_old_output_folders=os.getenv("PRUNE_OLD_OUTPUT_FOLDERS", "True").lower() == "true",
            excel_output_format=os.getenv("EXCEL_OUTPUT_FORMAT", "xlsx"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", LOG_FORMAT),
            logs_dir=os.getenv("LOGS_DIR", LOGS_DIR),
            max_file_size_mb=int(os.getenv("MAX_FILE_SIZE_MB", "20")),
            max_password_length=int(os.getenv("MAX_PASSWORD_LENGTH", "255")),
            celery_broker_url=os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0"),
            celery_result_backend=os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0"),
            max_retries=int(os.getenv("MAX_RETRIES", "3")),
            retry_delay_seconds=int(os.getenv("RETRY_DELAY_SECONDS", "60")),
        )

    def validate(self) -> bool:
        """Validate settings."""
        return (
            self.statement_keyword_threshold > 0 and
            self.max_consecutive_non_transaction > 0 and
            0 < self.balance_position_ratio < 1 and
            0 < self.bare_amount_tail_ratio <= 1 and
            self.max_amounts_per_line >= 2 and
            self.min_amount >= 0 and
            self.max_file_size_mb > 0 and
            self.max_retries >= 0
        )

    def get_log_level(self) -> str:
        """Get log level as string."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level.upper() in valid_levels:
            return self.log_level.upper()
        return "INFO"

    def parser_settings(self) -> ParserSettings:
        """Collect the engine knobs into a ParserSettings value."""
        return ParserSettings(
            statement_keyword_threshold=self.statement_keyword_threshold,
            max_consecutive_non_transaction=self.max_consecutive_non_transaction,
            balance_position_ratio=self.balance_position_ratio,
            bare_amount_tail_ratio=self.bare_amount_tail_ratio,
            max_amounts_per_line=self.max_amounts_per_line,
            min_amount=self.min_amount,
            min_bare_amount=self.min_bare_amount,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        """Create settings from dictionary."""
        return cls(**data)


def load_config_from_file(file_path: str) -> Dict[str, Any]:
    """Load configuration from file."""
    with open(file_path, 'r') as f:
        return json.load(f)


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge two configuration dictionaries."""
    result = base.copy()
    result.update(override)
    return result
