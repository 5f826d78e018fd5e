"""Local blob storage for generated media.

Files live under ``<storage_dir>/<project_id>/<timestamp>_<name>`` and are
served back at ``<base_url>/uploads/<project_id>/<timestamp>_<name>``.
"""

import mimetypes
import re
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import httpx

from .config import PathsConfig


MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".mov": "video/quicktime",
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".m4a": "audio/mp4",
    ".srt": "text/srt",
    ".vtt": "text/vtt",
    ".json": "application/json",
}


def content_type(filename: str) -> str:
    """MIME type for a stored file, by extension."""
    suffix = Path(filename).suffix.lower()
    if suffix in MIME_TYPES:
        return MIME_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


def sanitize_filename(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.-]", "_", name)


@dataclass
class StoredFile:
    """A file written to storage."""

    path: Path
    url: str


class LocalStorage:
    """Filesystem storage with public URLs."""

    URL_PREFIX = "/uploads/"

    def __init__(self, root: Path | str, base_url: str = "http://localhost:8000"):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_config(cls, paths: PathsConfig) -> "LocalStorage":
        return cls(paths.storage_dir, paths.base_url)

    def _target(self, project_id: str, name: str) -> tuple[Path, str]:
        project_dir = self.root / sanitize_filename(project_id)
        project_dir.mkdir(parents=True, exist_ok=True)
        filename = f"{int(time.time() * 1000)}_{sanitize_filename(name)}"
        return project_dir / filename, f"{self.base_url}{self.URL_PREFIX}{project_dir.name}/{filename}"

    def save_bytes(self, data: bytes, name: str, project_id: str) -> StoredFile:
        """Write raw bytes and return their path and URL."""
        path, url = self._target(project_id, name)
        path.write_bytes(data)
        return StoredFile(path=path, url=url)

    def save_file(self, source: Path | str, name: str, project_id: str, move: bool = False) -> StoredFile:
        """Copy (or move) an existing file into storage."""
        path, url = self._target(project_id, name)
        if move:
            shutil.move(str(source), path)
        else:
            shutil.copy2(source, path)
        return StoredFile(path=path, url=url)

    def path_for(self, project_id: str, filename: str) -> Optional[Path]:
        """Local path of a stored file, or None if missing or outside storage."""
        candidate = (self.root / project_id / filename).resolve()
        if self.root.resolve() not in candidate.parents or not candidate.is_file():
            return None
        return candidate

    def resolve(self, url: str) -> Optional[Path]:
        """Map a storage URL (or plain local path) back to a local file."""
        parsed = urlparse(url)
        if parsed.scheme in ("", "file"):
            local = Path(parsed.path if parsed.scheme == "file" else url)
            return local if local.is_file() else None

        if not url.startswith(self.base_url + self.URL_PREFIX):
            return None
        parts = parsed.path[len(self.URL_PREFIX):].split("/", 1)
        if len(parts) != 2:
            return None
        return self.path_for(parts[0], parts[1])

    def fetch(self, url: str, dest: Path, client: httpx.Client | None = None) -> Path:
        """Copy a stored file or download a remote one to ``dest``.

        Raises:
            httpx.HTTPError: If a remote download fails.
        """
        dest.parent.mkdir(parents=True, exist_ok=True)
        local = self.resolve(url)
        if local is not None:
            shutil.copy2(local, dest)
            return dest

        owns_client = client is None
        client = client or httpx.Client(timeout=120.0, follow_redirects=True)
        try:
            response = client.get(url)
            response.raise_for_status()
            dest.write_bytes(response.content)
        finally:
            if owns_client:
                client.close()
        return dest
