"""
Local file storage for imported attachments.

Files are copied under the importer upload directory, addressed by their
SHA-1 digest, so the same file imported twice is stored once.
"""

from __future__ import annotations

import hashlib
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_SUBDIR = "import_uploads"
IMAGE_EXTENSIONS: frozenset[str] = frozenset({"gif", "jpeg", "jpg", "png", "svg", "webp", "bmp", "ico", "tif", "tiff"})
_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class UploadHandle:
    sha1: str
    url: str
    original_filename: str
    filesize: int
    extension: str | None
    user_id: int
    width: int | None = None
    height: int | None = None

    @property
    def is_image(self) -> bool:
        return (self.extension or "") in IMAGE_EXTENSIONS

    def as_row(self, imported_id: Any = None) -> dict[str, Any]:
        """Row for ``MigrationEngine.create_uploads``."""

        row: dict[str, Any] = {
            "user_id": self.user_id,
            "original_filename": self.original_filename,
            "filesize": self.filesize,
            "width": self.width,
            "height": self.height,
            "url": self.url,
            "sha1": self.sha1,
            "extension": self.extension,
        }
        if imported_id is not None:
            row["imported_id"] = imported_id
        return row


class UploadStore(Protocol):
    def create_upload(self, user_id: int, path: str | Path, source_filename: str) -> UploadHandle: ...

    def html_for_upload(self, upload: UploadHandle, display_filename: str | None = None) -> str: ...


def normalize_upload_dir(configured_path: str | None, instance_path: str) -> Path:
    if not configured_path:
        return Path(instance_path) / DEFAULT_UPLOAD_SUBDIR

    candidate = Path(configured_path)
    if candidate.is_absolute():
        return candidate

    return Path(instance_path) / candidate


def resolve_upload_directory(app) -> Path:
    """
    Determine and create (if necessary) the importer upload directory.
    """

    upload_dir = normalize_upload_dir(app.config.get("IMPORTER_UPLOAD_DIR"), app.instance_path)
    upload_dir.mkdir(parents=True, exist_ok=True)
    return upload_dir


def file_sha1(path: Path) -> str:
    digest = hashlib.sha1()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def human_size(size: int) -> str:
    value = float(size)
    for unit in ("Bytes", "KB", "MB"):
        if value < 1024:
            return f"{int(value)} Bytes" if unit == "Bytes" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


class LocalUploadStore:
    def __init__(self, root: str | Path, *, base_url: str = "/uploads"):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def create_upload(self, user_id: int, path: str | Path, source_filename: str) -> UploadHandle:
        source = Path(path)
        if not source.is_file():
            raise FileNotFoundError(f"Upload source not found at {source}")

        sha1 = file_sha1(source)
        original_filename = secure_filename(source_filename or "") or secure_filename(source.name) or sha1
        extension = original_filename.rsplit(".", 1)[1].lower() if "." in original_filename else None

        relative = Path("original") / sha1[:2] / (f"{sha1}.{extension}" if extension else sha1)
        destination = self.root / relative
        if not destination.exists():
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, destination)
            logger.debug("Stored upload %s at %s", original_filename, destination)

        return UploadHandle(
            sha1=sha1,
            url=f"{self.base_url}/{relative.as_posix()}",
            original_filename=original_filename,
            filesize=source.stat().st_size,
            extension=extension,
            user_id=user_id,
        )

    def html_for_upload(self, upload: UploadHandle, display_filename: str | None = None) -> str:
        name = display_filename or upload.original_filename
        if upload.is_image:
            return f"![{name}]({upload.url})"
        return f"[{name}|attachment]({upload.url}) ({human_size(upload.filesize)})"
