"""File-backed JSON document store.

Four named documents live as pretty-printed JSON files in one data directory.
Each document is read and written whole; there is no locking and no version
token, so two concurrent writers of the same document race and the last
write to finish wins. That is acceptable for a single-operator local tool.
"""
from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

ALLOWED_FILES = ("products.json", "faqs.json", "seller_notes.json", "payment_config.json")

_DEFAULTS: Dict[str, Any] = {
    "products.json": [],
    "faqs.json": [],
    "seller_notes.json": {"title": "Important Seller Notes", "notes": []},
    "payment_config.json": {
        "telegramContact": "",
        "paymentInstructionsTitle": "",
        "paymentInstructions": "",
        "accounts": [],
        "confirmationNote": "",
    },
}


class StoreError(Exception):
    """Base class for document store failures."""


class AccessDenied(StoreError):
    pass


class InvalidName(StoreError):
    pass


class IOFailure(StoreError):
    pass


class ParseFailure(StoreError):
    def __init__(self, path: str, detail: str):
        super().__init__(f"{os.path.basename(path)} is not valid JSON: {detail}")
        self.path = path
        self.detail = detail


def default_for(name: str) -> Any:
    """Return a fresh copy of the canonical default value for `name`."""
    return copy.deepcopy(_DEFAULTS.get(name, {}))


def is_allowed(name: Any) -> bool:
    return isinstance(name, str) and name in ALLOWED_FILES


class DocumentStore:
    def __init__(self, data_dir: str, development: bool = False):
        self.data_dir = os.path.abspath(data_dir)
        self.development = bool(development)

    def names(self) -> List[str]:
        return list(ALLOWED_FILES)

    def path_for(self, name: str) -> str:
        self._check_name(name)
        return os.path.join(self.data_dir, name)

    # -------------------------
    # Admin operations (gated)
    # -------------------------
    def read(self, name: str) -> Any:
        """Read a whole document, creating it with its default when absent."""
        self._check_name(name)
        self._check_access()
        path = os.path.join(self.data_dir, name)
        if not os.path.exists(path):
            logger.info("Creating %s with default content", name)
            self._replace(path, default_for(name))
        return self._parse(path)

    def write(self, name: str, document: Any) -> None:
        """Overwrite a whole document. No schema check is applied."""
        self._check_name(name)
        self._check_access()
        path = os.path.join(self.data_dir, name)
        self._replace(path, document)
        logger.info("Wrote %s", name)

    # -------------------------
    # Storefront read path
    # -------------------------
    def load(self, name: str) -> Any:
        """Read a document for display. Never creates files and is not gated."""
        self._check_name(name)
        path = os.path.join(self.data_dir, name)
        if not os.path.exists(path):
            return default_for(name)
        return self._parse(path)

    # -------------------------
    # Internals
    # -------------------------
    def _check_name(self, name: Any) -> None:
        if not is_allowed(name):
            raise InvalidName(f"Invalid or missing file parameter: {name!r}")

    def _check_access(self) -> None:
        if not self.development:
            raise AccessDenied("Access denied. Admin API is for development only.")

    def _parse(self, path: str) -> Any:
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = f.read()
        except OSError as e:
            logger.exception("Error reading %s", path)
            raise IOFailure(f"Failed to read {os.path.basename(path)}") from e
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.error("Error parsing %s: %s", path, e)
            raise ParseFailure(path, str(e)) from e

    def _replace(self, path: str, document: Any) -> None:
        # Reject NaN/Infinity: the file must stay strict JSON.
        try:
            text = json.dumps(document, ensure_ascii=False, indent=2, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise IOFailure(f"Document for {os.path.basename(path)} is not JSON-serializable") from e
        directory = os.path.dirname(path)
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            # Unique temp file per write.
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=os.path.basename(path) + ".", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_path, path)
            tmp_path = None
        except OSError as e:
            logger.exception("Error writing %s", path)
            raise IOFailure(f"Failed to write {os.path.basename(path)}") from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.remove(tmp_path)
