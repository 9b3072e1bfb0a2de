"""Filesystem access for the pipeline: directory listing and raw file reads."""
from __future__ import annotations

import logging
import os

from ..utils.exceptions import FatalIOError

logger = logging.getLogger(__name__)

__all__ = ["list_directory", "read_document"]


def list_directory(path: str) -> list[str]:
    """Sorted names of the regular entries in ``path``.

    Sub-directories are skipped. Raises FatalIOError when the directory
    itself cannot be listed.
    """
    try:
        names = sorted(os.listdir(path))
    except OSError as e:
        raise FatalIOError(path, e.strerror or str(e)) from e
    entries: list[str] = []
    for name in names:
        if os.path.isdir(os.path.join(path, name)):
            logger.debug("skipping sub-directory %s", name)
            continue
        entries.append(name)
    return entries


def read_document(path: str) -> bytes:
    try:
        with open(path, 'rb') as fh:
            return fh.read()
    except OSError as e:
        raise FatalIOError(path, e.strerror or str(e)) from e
