"""Bank Statement Converter.

Extracts transactions from the text of PDF bank statements and writes them
to styled Excel workbooks.
"""

__version__ = "1.0.0"
__author__ = "Statement Converter Team"
