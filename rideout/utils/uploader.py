"""
Image uploader.

Object-storage collaborator used when a bike is first posted. The rating
subsystem only keeps the returned URL.
"""

import os
import logging
from pathlib import Path
from typing import Protocol

from rideout.errors import StoreUnavailableError, ValidationError

logger = logging.getLogger(__name__)


class ImageUploader(Protocol):
    """Accepts a binary blob and returns a retrievable URL."""

    def upload(self, data: bytes, path: str) -> str:
        ...


class LocalImageUploader:
    """
    Stores uploads under a local directory and returns file:// URLs.
    """

    def __init__(self, upload_root: str):
        self.upload_root = Path(upload_root)
        logger.info(f"Initialized LocalImageUploader with upload_root={upload_root}")

    def upload(self, data: bytes, path: str) -> str:
        """
        Write `data` to `<upload_root>/<path>`.

        Raises:
            ValidationError: If the path escapes the upload root or data is empty
            StoreUnavailableError: If the file cannot be written
        """
        if not data:
            raise ValidationError("Refusing to upload an empty image")

        root = self.upload_root.resolve()
        target = (root / path).resolve()
        if root not in target.parents:
            raise ValidationError(f"Invalid upload path: {path}")

        try:
            os.makedirs(target.parent, exist_ok=True)
            with open(target, 'wb') as f:
                f.write(data)
        except OSError as e:
            logger.error(f"Failed to upload {path}: {e}")
            raise StoreUnavailableError(f"Cannot write upload {path}: {e}") from e

        logger.info(f"Uploaded {len(data)} bytes to {target}")
        return target.as_uri()
