"""Workbook output and output folder management."""
