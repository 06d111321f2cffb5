"""
Credential Store - persisted WhatsApp auth state
================================================
One JSON file per auth-state entry inside the session directory
(``creds.json``, ``pre-key-1.json``, ...). The store does not interpret the
contents; the transport owns their meaning.
"""

import asyncio
import json
import os
import re
import shutil
from pathlib import Path
from typing import Any, Dict

import aiofiles

from lodgebot.core.exceptions import SessionStorageError
from lodgebot.core.logger import get_logger

logger = get_logger(__name__)

CREDS_ENTRY = "creds"
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def _file_name(entry: str) -> str:
    return _UNSAFE_CHARS.sub("-", entry) + ".json"


class CredentialStore:

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def ensure_directory(self) -> None:
        """
        Create the session directory (and parents) if missing.

        Raises:
            SessionStorageError: If the directory cannot be created
        """
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SessionStorageError(str(self.directory), str(e)) from e

        if not self.directory.is_dir():
            raise SessionStorageError(str(self.directory), "path exists and is not a directory")

    def has_credentials(self) -> bool:
        return (self.directory / _file_name(CREDS_ENTRY)).is_file()

    async def load(self) -> Dict[str, Any]:
        """
        Read every entry in the session directory.

        Unreadable or corrupt entries are skipped with a warning, so a damaged
        store degrades to a fresh pairing instead of blocking startup.
        """
        if not self.directory.is_dir():
            return {}

        state: Dict[str, Any] = {}
        for path in sorted(self.directory.glob("*.json")):
            try:
                async with aiofiles.open(path, 'r', encoding='utf-8') as f:
                    state[path.stem] = json.loads(await f.read())
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("credential_store.entry_unreadable", {
                    "file": str(path),
                    "error": str(e)
                })

        logger.debug("credential_store.loaded", {
            "directory": str(self.directory),
            "entries": len(state),
            "has_creds": CREDS_ENTRY in state
        })
        return state

    async def save(self, credentials: Dict[str, Any]) -> None:
        """
        Write each entry atomically (temp file + rename).

        Entries set to None are removed from disk.

        Raises:
            OSError: On write failure; callers persisting in the background log it
        """
        self.directory.mkdir(parents=True, exist_ok=True)

        for entry, value in credentials.items():
            target = self.directory / _file_name(entry)
            if value is None:
                if target.exists():
                    target.unlink()
                continue

            tmp_path = target.with_suffix(".json.tmp")
            async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
                await f.write(json.dumps(value, default=str))
            os.replace(tmp_path, target)

        logger.debug("credential_store.saved", {
            "directory": str(self.directory),
            "entries": len(credentials)
        })

    async def clear(self) -> bool:
        """
        Delete the whole session directory, forcing a fresh pairing.

        Returns:
            True if something was deleted, False if the directory was already gone
        """
        try:
            await asyncio.to_thread(shutil.rmtree, self.directory)
        except FileNotFoundError:
            return False

        logger.info("credential_store.cleared", {"directory": str(self.directory)})
        return True
