"""Local image storage for movie posters and scene stills."""
import logging
import re
from pathlib import Path
from uuid import uuid4

from movie_api.errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}


class LocalImageStore:
    """Saves uploaded images on disk and returns their public URL."""

    def __init__(self, storage_path: Path, public_base_url: str):
        self.storage_path = Path(storage_path)
        self.public_base_url = public_base_url.rstrip("/")

    def save(self, file_storage) -> str:
        """
        Persist an uploaded file and return its URL.

        Args:
            file_storage: Werkzeug ``FileStorage`` from ``request.files``.

        Returns:
            Public URL under ``/images/``.

        Raises:
            ValidationError: when the file is missing or not an image.
        """
        original_filename = (getattr(file_storage, "filename", None) or "").strip()
        if not original_filename:
            raise ValidationError("Uploaded image has no filename")

        local_filename = self._generate_filename(original_filename)
        self.storage_path.mkdir(parents=True, exist_ok=True)
        file_storage.save(str(self.storage_path / local_filename))

        logger.info(f"Saved image: {local_filename}")
        return f"{self.public_base_url}/images/{local_filename}"

    def path_for(self, filename: str) -> Path:
        return self.storage_path / filename

    def _generate_filename(self, original_filename: str) -> str:
        """
        Generate filename: {sanitized_name}_{uuid}.{ext}

        Example: Blade-Runner-poster_3f1c9a6e2b7d4c0f.jpg
        """
        if "." not in original_filename:
            raise ValidationError(f"Unsupported image type: {original_filename}")
        name, ext = original_filename.rsplit(".", 1)
        ext = ext.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(f"Unsupported image type: .{ext}")

        return f"{self._sanitize(name)}_{uuid4().hex[:16]}.{ext}"

    def _sanitize(self, name: str) -> str:
        """Sanitize filename component."""
        name = name.replace(" ", "-")
        name = re.sub(r"[^A-Za-z0-9._-]", "_", name)
        # Collapse runs of separators
        name = re.sub(r"[-_]+", "-", name)
        name = name.strip("-_.")
        return name[:100] if name else "image"
