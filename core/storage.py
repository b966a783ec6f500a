from __future__ import annotations

import json
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol

from core.io import decode_source
from core.logger import get_logger
from core.state import SourceImage

_logger = get_logger("storage")

INDEX_VERSION = 1


@dataclass(frozen=True)
class ImageRecord:
    id: str
    name: str
    data: bytes
    mime_type: str
    width: int
    height: int
    created_at: float = 0.0
    last_modified: float = 0.0

    def to_source(self) -> SourceImage:
        return decode_source(self.data, name=self.name, mime_type=self.mime_type)


class ImageStore(Protocol):
    def list_images(self) -> List[ImageRecord]: ...

    def save_image(self, record: ImageRecord) -> None: ...

    def delete_image(self, image_id: str) -> None: ...

    def get_output_location(self) -> Optional[str]: ...

    def set_output_location(self, path: Optional[str]) -> None: ...


def record_from_bytes(data: bytes, name: str, mime_type: Optional[str] = None) -> ImageRecord:
    """Build a record for an uploaded file; raises SourceDecodeFailure for non-images."""
    source = decode_source(data, name=name, mime_type=mime_type)
    now = time.time()
    return ImageRecord(
        id=str(uuid.uuid4()),
        name=name,
        data=data,
        mime_type=source.mime_type,
        width=source.width,
        height=source.height,
        created_at=now,
        last_modified=now,
    )


class FolderImageStore:
    """Image library kept in a folder: one blob file per image plus a JSON index."""

    def __init__(self, root: str) -> None:
        self.root = Path(root)
        self._blobs = self.root / "images"
        self._index_path = self.root / "index.json"

    def _read_index(self) -> dict:
        if not self._index_path.exists():
            return {"version": INDEX_VERSION, "images": {}, "settings": {}}
        try:
            raw = json.loads(self._index_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            _logger.warning("image index unreadable, starting empty: %s", e)
            return {"version": INDEX_VERSION, "images": {}, "settings": {}}
        raw.setdefault("images", {})
        raw.setdefault("settings", {})
        return raw

    def _write_index(self, raw: dict) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        raw["version"] = INDEX_VERSION
        self._index_path.write_text(json.dumps(raw, indent=2), encoding="utf-8")

    def list_images(self) -> List[ImageRecord]:
        raw = self._read_index()
        records: List[ImageRecord] = []
        for image_id, meta in raw["images"].items():
            blob = self._blobs / image_id
            try:
                data = blob.read_bytes()
            except OSError as e:
                _logger.warning("missing blob for %s: %s", image_id, e)
                continue
            records.append(
                ImageRecord(
                    id=image_id,
                    name=str(meta.get("name", image_id)),
                    data=data,
                    mime_type=str(meta.get("mime_type", "image/png")),
                    width=int(meta.get("width", 0)),
                    height=int(meta.get("height", 0)),
                    created_at=float(meta.get("created_at", 0.0)),
                    last_modified=float(meta.get("last_modified", 0.0)),
                )
            )
        # Newest first
        records.sort(key=lambda r: r.last_modified, reverse=True)
        return records

    def save_image(self, record: ImageRecord) -> None:
        self._blobs.mkdir(parents=True, exist_ok=True)
        (self._blobs / record.id).write_bytes(record.data)
        raw = self._read_index()
        raw["images"][record.id] = {
            "name": record.name,
            "mime_type": record.mime_type,
            "width": record.width,
            "height": record.height,
            "created_at": record.created_at,
            "last_modified": record.last_modified,
        }
        self._write_index(raw)
        _logger.debug("saved image %s (%s)", record.id, record.name)

    def delete_image(self, image_id: str) -> None:
        raw = self._read_index()
        raw["images"].pop(image_id, None)
        self._write_index(raw)
        (self._blobs / image_id).unlink(missing_ok=True)
        _logger.debug("deleted image %s", image_id)

    def get_output_location(self) -> Optional[str]:
        value = self._read_index()["settings"].get("output_location")
        return str(value) if value else None

    def set_output_location(self, path: Optional[str]) -> None:
        raw = self._read_index()
        raw["settings"]["output_location"] = path
        self._write_index(raw)
