"""Dated output folders for generated workbooks."""

import os
import re
import shutil
from datetime import date
from typing import Optional

from statement_converter.config.settings import OUTPUT_DIR, PRUNE_OLD_OUTPUT_FOLDERS
from statement_converter.utils.logger import get_logger

DATE_FOLDER = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class OutputStorage:
    """Keeps converted files under ``<base>/<YYYY-MM-DD>`` folders.

    Only the current day's folder is retained: creating a new date folder
    removes the folders of earlier days.
    """

    def __init__(self, base_dir: str = OUTPUT_DIR, prune_old_folders: bool = PRUNE_OLD_OUTPUT_FOLDERS) -> None:
        self.logger = get_logger(__name__)
        self.base_dir = base_dir
        self.prune_old_folders = prune_old_folders

    def dated_folder(self, today: Optional[date] = None) -> str:
        """Return today's output folder, creating it if needed."""
        folder_name = (today or date.today()).isoformat()
        folder = os.path.join(self.base_dir, folder_name)

        if not os.path.isdir(folder):
            if self.prune_old_folders:
                self.prune(keep=folder_name)
            os.makedirs(folder, exist_ok=True)
            self.logger.info(f"Created output folder: {folder}")

        return folder

    def prune(self, keep: str) -> int:
        """Remove date folders other than ``keep``; failures are logged."""
        if not os.path.isdir(self.base_dir):
            return 0

        removed = 0
        for name in os.listdir(self.base_dir):
            path = os.path.join(self.base_dir, name)
            if name == keep or not DATE_FOLDER.match(name) or not os.path.isdir(path):
                continue
            try:
                shutil.rmtree(path)
                removed += 1
                self.logger.info(f"Removed old date folder: {path}")
            except OSError as e:
                self.logger.warning(f"Failed to remove old date folder {path}: {str(e)}")
        return removed

    def find_file(self, filename: str) -> Optional[str]:
        """Look up a converted file in the date folders, newest first."""
        if not filename or os.path.basename(filename) != filename:
            return None
        if not os.path.isdir(self.base_dir):
            return None

        folders = sorted(
            (name for name in os.listdir(self.base_dir) if DATE_FOLDER.match(name)),
            reverse=True,
        )
        for folder in folders:
            candidate = os.path.join(self.base_dir, folder, filename)
            if os.path.isfile(candidate):
                return candidate
        return None
