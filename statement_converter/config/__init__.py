"""Configuration package."""

from statement_converter.config.settings import ParserSettings, Settings

__all__ = ["ParserSettings", "Settings"]
