"""Text extraction from PDF statements.

pdfplumber reads the pages; PyPDF2 (through :class:`PDFDecryptor`) takes over
when a protected file has to be opened with a password. Every failure is
mapped onto a small exception hierarchy whose ``user_message`` can be shown
to the person who uploaded the file.
"""

from typing import List, Optional

import pdfplumber

from statement_converter.pdf_processor.decryptor import PDFDecryptionError, PDFDecryptor
from statement_converter.utils.logger import get_logger

GENERIC_FAILURE_MESSAGE = "Failed to process the PDF file. Please try again or contact support."


class PDFExtractionError(Exception):
    """Custom exception for PDF extraction errors."""

    default_message = GENERIC_FAILURE_MESSAGE

    def __init__(self, message: Optional[str] = None, user_message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)
        self.user_message = user_message or self.default_message


class PasswordRequiredError(PDFExtractionError):
    default_message = (
        "This PDF is password protected. Please provide the password to proceed with conversion."
    )


class InvalidPasswordError(PDFExtractionError):
    default_message = "Invalid password. Please check the password and try again."


class CorruptedPDFError(PDFExtractionError):
    default_message = (
        "The PDF file appears to be corrupted or damaged. Please try with a different PDF file."
    )


class UnsupportedPDFError(PDFExtractionError):
    default_message = (
        "This PDF format is not supported. Please ensure you are uploading a valid PDF file."
    )


class EmptyPDFError(PDFExtractionError):
    default_message = (
        "The PDF file appears to be empty or contains no readable content. "
        "Please check your PDF file."
    )


class PDFTooLargeError(PDFExtractionError):
    default_message = (
        "The PDF file is too large to process. Please try with a smaller file or split it into parts."
    )


# Checked in order against the lower-cased exception type name and message.
ERROR_SIGNATURES = [
    ("password", ("secured", "password", "encrypted", "locked", "missing catalog")),
    ("corrupted", ("invalid pdf", "corrupted", "malformed")),
    ("unsupported", ("not a pdf", "invalid format", "unsupported")),
    ("empty", ("empty", "no content", "blank")),
    ("too_large", ("memory", "too large", "size")),
]


def classify_extraction_error(exc: Exception, password: Optional[str] = None) -> PDFExtractionError:
    """Map a raw library failure onto the extraction error hierarchy.

    Args:
        exc: The exception raised while reading the PDF.
        password: Password the caller supplied, if any.

    Returns:
        A PDFExtractionError subclass instance carrying the user message.
    """
    if isinstance(exc, PDFExtractionError):
        return exc

    haystack = f"{type(exc).__name__} {exc}".lower()
    detail = str(exc)

    for category, keywords in ERROR_SIGNATURES:
        if not any(keyword in haystack for keyword in keywords):
            continue
        if category == "password":
            if password:
                return InvalidPasswordError(detail)
            return PasswordRequiredError(detail)
        if category == "corrupted":
            return CorruptedPDFError(detail)
        if category == "unsupported":
            return UnsupportedPDFError(detail)
        if category == "empty":
            return EmptyPDFError(detail)
        return PDFTooLargeError(detail)

    return PDFExtractionError(detail)


def _is_password_failure(exc: Exception) -> bool:
    return isinstance(classify_extraction_error(exc, None), PasswordRequiredError)


class TextExtractor:
    """Extracts ordered page texts from PDF statements."""

    def __init__(self, decryptor: Optional[PDFDecryptor] = None) -> None:
        """Initialize text extractor.

        Args:
            decryptor: Fallback extractor for protected files.
        """
        self.logger = get_logger(__name__)
        self.decryptor = decryptor or PDFDecryptor()

    def _read_pages(self, pdf_path: str, password: Optional[str]) -> List[str]:
        text_content = []

        with pdfplumber.open(pdf_path, password=password or "") as pdf:
            for page_num, page in enumerate(pdf.pages, 1):
                try:
                    page_text = page.extract_text()
                    if page_text and page_text.strip():
                        text_content.append(page_text)
                        self.logger.debug(f"Extracted text from page {page_num}")
                    else:
                        self.logger.warning(f"No text found on page {page_num}")
                except Exception as e:
                    self.logger.warning(f"Failed to extract text from page {page_num}: {str(e)}")
                    continue

        return text_content

    def _requires_password(self, pdf_path: str) -> bool:
        try:
            return self.decryptor.is_encrypted(pdf_path)
        except PDFDecryptionError as e:
            # pdfplumber reports and classifies unreadable files itself.
            self.logger.warning(f"Could not check encryption of {pdf_path}: {str(e)}")
            return False

    def _fallback_pages(self, pdf_path: str, password: str) -> List[str]:
        self.logger.info("Primary extractor could not open protected PDF; trying fallback extractor")
        try:
            return self.decryptor.extract_pages(pdf_path, password)
        except PDFDecryptionError as e:
            raise InvalidPasswordError(str(e))

    def extract_pages(self, pdf_path: str, password: Optional[str] = None) -> List[str]:
        """Extract text content from PDF file.

        Args:
            pdf_path: Path to PDF file.
            password: Password for a protected file.

        Returns:
            List of text strings, one per non-blank page.

        Raises:
            PDFExtractionError: A subclass describing why extraction failed.
        """
        if not password and self._requires_password(pdf_path):
            raise PasswordRequiredError(f"{pdf_path} is encrypted")

        try:
            text_content = self._read_pages(pdf_path, password)
        except Exception as e:
            if not _is_password_failure(e):
                self.logger.error(f"Failed to extract text from {pdf_path}: {str(e)}")
                raise classify_extraction_error(e, password)
            if not password:
                raise PasswordRequiredError(str(e))
            text_content = self._fallback_pages(pdf_path, password)

        if not text_content:
            raise EmptyPDFError("No text content extracted from PDF")

        self.logger.info(f"Extracted text from {len(text_content)} pages")
        return text_content

    def extract_text(self, pdf_path: str, password: Optional[str] = None) -> str:
        """Extract the whole document as one string, pages joined by newlines."""
        return "\n".join(self.extract_pages(pdf_path, password))
