from __future__ import annotations

from pathlib import Path
from typing import Iterable

from core.errors import ImageStudioError
from core.io import load_source
from core.logger import get_logger
from core.output import FolderSink, OutputSink, output_filename
from core.pipeline import render_image
from core.state import ProcessOptions, SourceImage
from core.storage import ImageRecord

_logger = get_logger("batch")

IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".bmp", ".webp", ".tif", ".tiff", ".gif", ".avif"}


def iter_images(folder: str) -> Iterable[Path]:
    root = Path(folder)
    for p in sorted(root.iterdir()):
        if p.is_file() and p.suffix.lower() in IMAGE_EXTS:
            yield p


def _export_one(source: SourceImage, options: ProcessOptions, sink: OutputSink, suffix: str) -> str:
    rendered = render_image(source, options)
    filename = output_filename(f"{source.base_name}{suffix}", options.format)
    return sink.deliver(filename, rendered.data)


def batch_export(
    records: Iterable[ImageRecord],
    options: ProcessOptions,
    sink: OutputSink,
    suffix: str = "-processed",
) -> int:
    """Render every record with the same options. Failed items are logged and skipped."""
    count = 0
    for record in records:
        try:
            _export_one(record.to_source(), options, sink, suffix)
        except (ImageStudioError, OSError) as e:
            _logger.error("failed to process %s: %s", record.name, e)
            continue
        count += 1
    return count


def batch_export_folder(
    input_dir: str,
    output_dir: str,
    options: ProcessOptions,
    suffix: str = "-processed",
) -> int:
    sink = FolderSink(output_dir)
    count = 0
    for src_path in iter_images(input_dir):
        try:
            _export_one(load_source(str(src_path)), options, sink, suffix)
        except (ImageStudioError, OSError) as e:
            _logger.error("failed to process %s: %s", src_path.name, e)
            continue
        count += 1
    _logger.info("batch exported %d image(s) to %s", count, output_dir)
    return count
