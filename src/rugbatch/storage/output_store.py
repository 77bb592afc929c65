"""Output persistence: results files, extracted images and zip archives."""

import base64
import binascii
import io
import logging
import re
import zipfile
from datetime import date
from pathlib import Path

from rugbatch.config import get_settings
from rugbatch.models.batch import ExtractedImage
from rugbatch.models.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".webp"}
_DATE_FOLDER = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class OutputStore:
    """Stores results under ``<base>/<YYYY-MM-DD>/{jsonl,images}``."""

    def __init__(self, base_dir: Path | None = None):
        self.base_dir = base_dir or get_settings().output_dir
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _date_dir(self, day: str | None = None) -> Path:
        day = day or date.today().isoformat()
        if not _DATE_FOLDER.match(day):
            raise ValidationError(f"Invalid date folder: {day}")
        return self.base_dir / day

    def jsonl_dir(self, day: str | None = None) -> Path:
        d = self._date_dir(day) / "jsonl"
        d.mkdir(parents=True, exist_ok=True)
        return d

    def images_dir(self, day: str | None = None) -> Path:
        d = self._date_dir(day) / "images"
        d.mkdir(parents=True, exist_ok=True)
        return d

    def save_results(self, chunk_index: int, jsonl: str) -> Path:
        """Save a chunk's raw results file."""
        path = self.jsonl_dir() / f"batch-results-chunk-{chunk_index + 1}.jsonl"
        path.write_text(jsonl, encoding="utf-8")
        logger.info(f"Saved results for chunk {chunk_index + 1} to {path}")
        return path

    def save_images(self, images: list[ExtractedImage]) -> tuple[Path, list[str]]:
        """Decode and write images; returns the folder and per-image errors."""
        folder = self.images_dir()
        errors = []
        for image in images:
            try:
                content = base64.b64decode(image.data, validate=True)
            except (binascii.Error, ValueError) as e:
                errors.append(f"{image.key}: Invalid image data - {e}")
                continue
            (folder / image.filename).write_bytes(content)
        return folder, errors

    def list_dates(self) -> list[dict]:
        """Date folders holding images, newest first."""
        dates = []
        for folder in self.base_dir.iterdir():
            if not folder.is_dir() or not _DATE_FOLDER.match(folder.name):
                continue
            count = len(self._image_files(folder / "images"))
            if count:
                dates.append({"date": folder.name, "image_count": count})
        return sorted(dates, key=lambda d: d["date"], reverse=True)

    def archive(self, day: str | None = None) -> bytes:
        """Zip every image saved on ``day`` (today by default)."""
        folder = self._date_dir(day) / "images"
        if not folder.is_dir():
            raise NotFoundError(f"No images found for date: {folder.parent.name}")
        files = self._image_files(folder)
        if not files:
            raise NotFoundError("No images found in the directory")

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=5) as zf:
            for path in files:
                zf.write(path, arcname=path.name)
        logger.info(f"Archived {len(files)} images from {folder}")
        return buffer.getvalue()

    @staticmethod
    def _image_files(folder: Path) -> list[Path]:
        if not folder.is_dir():
            return []
        return sorted(p for p in folder.iterdir() if p.suffix.lower() in IMAGE_SUFFIXES)
