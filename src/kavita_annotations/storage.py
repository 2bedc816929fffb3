"""Vault storage for generated notes.

A vault is a directory of markdown notes (an Obsidian vault, or any folder).
Paths given to VaultStorage are relative to the vault root.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from kavita_annotations.errors import VaultFileNotFoundError, VaultWriteError

logger = logging.getLogger(__name__)


class VaultStorage:
    """Reads and writes notes inside a vault directory."""

    def __init__(self, root: Union[str, Path] = "."):
        self.root = Path(root).expanduser()

    def resolve(self, path: str) -> Path:
        """Absolute location of a vault-relative path."""
        return self.root / path

    def get_file(self, path: str) -> Optional[Path]:
        """Returns the file for path, or None if it doesn't exist."""
        target = self.resolve(path)
        return target if target.is_file() else None

    def write_file(self, path: str, content: str) -> Path:
        """
        Write content to a note, creating it (and its folders) if needed.

        Existing content is replaced.

        Raises:
            VaultWriteError: If the note cannot be written
        """
        target = self.resolve(path)
        is_new = not target.exists()
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise VaultWriteError(path, str(e)) from e

        logger.debug("%s %s", "Created" if is_new else "Updated", target)
        return target

    def append_to_file(self, path: str, content: str) -> None:
        """
        Append content to an existing note.

        Raises:
            VaultWriteError: If the note does not exist or cannot be written
        """
        target = self.get_file(path)
        if target is None:
            raise VaultWriteError(path, "File does not exist")
        try:
            with open(target, "a", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise VaultWriteError(path, str(e)) from e

    def read_file(self, path: str) -> str:
        """
        Read a note.

        Raises:
            VaultFileNotFoundError: If the note does not exist or cannot be read
        """
        target = self.get_file(path)
        if target is None:
            raise VaultFileNotFoundError(path, "File not found")
        try:
            with open(target, "r", encoding="utf-8") as f:
                return f.read()
        except OSError as e:
            raise VaultFileNotFoundError(path, str(e)) from e

    def list_markdown_files(self) -> List[Path]:
        """All markdown notes in the vault, sorted by path."""
        if not self.root.is_dir():
            return []
        return sorted(p for p in self.root.rglob("*.md") if p.is_file())
