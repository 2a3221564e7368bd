"""
Module for enumerating local files and deriving their object keys and content types.
"""
import logging
import mimetypes
import os
from pathlib import Path, PurePath
from typing import List, Optional

from .errors import ScanError
from .models import UploadTask

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES = {
    "html": "text/html",
    "htm": "text/html",
    "css": "text/css",
    "js": "application/javascript",
    "mjs": "application/javascript",
    "json": "application/json",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "svg": "image/svg+xml",
    "webp": "image/webp",
    "ico": "image/x-icon",
    "pdf": "application/pdf",
    "txt": "text/plain",
    "xml": "application/xml",
    "woff": "font/woff",
    "woff2": "font/woff2",
    "ttf": "font/ttf",
    "eot": "application/vnd.ms-fontobject",
}

# Python's built-in registry only; host mime.types files are not read.
_local_types = mimetypes.MimeTypes()


def _extension(filename: str) -> str:
    name = PurePath(filename).name.lower()
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1]


def content_type_for(filename: str) -> str:
    """Look a file name up in the fixed extension table.

    Args:
        filename: File name or key

    Returns:
        MIME type, ``application/octet-stream`` for unknown extensions
    """
    return CONTENT_TYPES.get(_extension(filename), DEFAULT_CONTENT_TYPE)


def resolve_content_type(path: Path) -> str:
    """Pick the content type for a local file.

    The fixed table decides for every extension it lists; the
    interpreter's built-in registry only covers extensions the table
    does not know.
    """
    extension = _extension(path.name)
    if extension in CONTENT_TYPES:
        return CONTENT_TYPES[extension]
    guessed, _ = _local_types.guess_type(path.name, strict=True)
    return guessed or DEFAULT_CONTENT_TYPE


class FileScanner:
    """Enumerates every file below an upload root."""

    def scan_folder(self, folder: Path) -> List[Path]:
        """Recursively list all files below a folder.

        Args:
            folder: Path to the folder to scan

        Returns:
            Sorted list of file paths found

        Raises:
            ScanError: If the folder or one of its subdirectories cannot be read
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise ScanError(f"Folder does not exist or is not a directory: {folder}")

        def _raise(error: OSError) -> None:
            raise error

        files = []
        try:
            for dirpath, dirnames, filenames in os.walk(folder, onerror=_raise):
                dirnames.sort()
                for name in sorted(filenames):
                    files.append(Path(dirpath) / name)
        except OSError as e:
            logger.error(f"Error scanning folder {folder}: {e}")
            raise ScanError(f"Error scanning folder {folder}: {e}") from e

        logger.debug(f"Found {len(files)} files in {folder}")
        return files

    def get_key(self, file_path: Path, base_path: Path) -> str:
        """Get the object key of a file relative to the upload root.

        Args:
            file_path: Path to the file
            base_path: Upload root

        Returns:
            Forward-slash separated key without a leading separator
        """
        try:
            relative = Path(file_path).relative_to(base_path)
        except ValueError:
            raise ScanError(f"File {file_path} is not inside {base_path}")
        return relative.as_posix().lstrip("/")

    def build_tasks(self, folder: Path, files: Optional[List[Path]] = None) -> List[UploadTask]:
        """Turn the files of a folder into upload tasks.

        Args:
            folder: Upload root
            files: Files already enumerated below ``folder``; scanned when omitted

        Returns:
            One task per file, in scan order
        """
        folder = Path(folder)
        if files is None:
            files = self.scan_folder(folder)
        return [UploadTask(local_path=f, key=self.get_key(f, folder)) for f in files]
