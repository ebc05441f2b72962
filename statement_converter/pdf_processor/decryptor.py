"""PDF decryption and fallback text extraction for protected statements."""

from typing import List, Optional

from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from statement_converter.utils.logger import get_logger


class PDFDecryptionError(Exception):
    """Custom exception for PDF decryption errors."""
    pass


class PDFDecryptor:
    """Handles PDF decryption operations with PyPDF2."""

    def __init__(self) -> None:
        """Initialize PDF decryptor."""
        self.logger = get_logger(__name__)

    def is_encrypted(self, pdf_path: str) -> bool:
        """Check if PDF file is encrypted.

        Args:
            pdf_path: Path to PDF file.

        Returns:
            True if PDF is encrypted, False otherwise.

        Raises:
            PDFDecryptionError: If PDF cannot be read.
        """
        try:
            with open(pdf_path, 'rb') as file:
                reader = PdfReader(file)
                return reader.is_encrypted

        except Exception as e:
            raise PDFDecryptionError(f"Failed to check encryption status: {str(e)}")

    def decrypt_pdf(self, pdf_path: str, password: Optional[str] = None) -> PdfReader:
        """Open a PDF and decrypt it when needed.

        Args:
            pdf_path: Path to PDF file.
            password: Password for an encrypted file.

        Returns:
            Decrypted PdfReader object.

        Raises:
            PDFDecryptionError: If decryption fails.
        """
        try:
            reader = PdfReader(pdf_path)

            if not reader.is_encrypted:
                self.logger.info(f"PDF {pdf_path} is not encrypted")
                return reader

            if not password:
                raise PDFDecryptionError("PDF is encrypted and no password was provided")

            if not reader.decrypt(password):
                raise PDFDecryptionError("Failed to decrypt PDF with provided password")

            self.logger.info("Successfully decrypted PDF with password")
            return reader

        except PDFDecryptionError:
            raise
        except PdfReadError as e:
            raise PDFDecryptionError(f"PDF read error: {str(e)}")
        except Exception as e:
            raise PDFDecryptionError(f"Unexpected error during decryption: {str(e)}")

    def extract_pages(self, pdf_path: str, password: Optional[str] = None) -> List[str]:
        """Extract page texts with PyPDF2.

        Used when pdfplumber cannot open a protected file.

        Args:
            pdf_path: Path to PDF file.
            password: Password for an encrypted file.

        Returns:
            Non-blank page texts in page order.

        Raises:
            PDFDecryptionError: If the file cannot be decrypted or read.
        """
        reader = self.decrypt_pdf(pdf_path, password)

        pages = []
        for page_num, page in enumerate(reader.pages, 1):
            try:
                page_text = page.extract_text() or ""
            except Exception as e:
                self.logger.warning(f"Fallback extraction failed on page {page_num}: {str(e)}")
                continue
            if page_text.strip():
                pages.append(page_text)

        self.logger.info(f"Fallback extractor read {len(pages)} pages from {pdf_path}")
        return pages
