"""
citybuilder/client/compression.py

Purpose: Shrink photos below a byte ceiling before they are uploaded

- Any format Pillow can open goes in, JPEG comes out
- Quality is lowered first, then width, for at most 8 attempts
- Batches run on a fixed pool of two workers, output order preserved
"""

import asyncio
import io
from pathlib import Path
from typing import List, Optional, Union

from PIL import Image, ImageOps

from citybuilder.core.logging import get_logger

logger = get_logger(__name__)

# 8 photos x 1.6 MB stays under a 16 MB request
MAXIMUM_BYTES_PER_IMAGE = int(1.6 * 1024 * 1024)

MAXIMUM_ATTEMPTS = 8
START_WIDTH = 1600
START_QUALITY = 0.82
MINIMUM_WIDTH = 900
MINIMUM_QUALITY = 0.45
QUALITY_STEP = 0.12
WIDTH_FACTOR = 0.85
QUALITY_AFTER_RESIZE = 0.78
MAXIMUM_CONCURRENT_WORKERS = 2


def _resize_and_encode(image_bytes: bytes, width: int, quality: float) -> bytes:
    """
    Resize to `width` (keeping aspect ratio) and re-encode as JPEG.
    Images narrower than `width` keep their size. The EXIF orientation is
    applied first, since the re-encoded JPEG carries no EXIF.
    """
    with Image.open(io.BytesIO(image_bytes)) as image:
        image = ImageOps.exif_transpose(image)
        image = image.convert("RGB")
        if image.width > width:
            height = max(1, round(image.height * width / image.width))
            image = image.resize((width, height), Image.LANCZOS)

        out = io.BytesIO()
        image.save(out, format="JPEG", quality=int(round(quality * 100)), optimize=True)
        return out.getvalue()


def compress_image_to_max_bytes(
    image_bytes: bytes,
    max_bytes: int = MAXIMUM_BYTES_PER_IMAGE
) -> bytes:
    """
    Compress a single image until it is <= max_bytes.

    Strategy:
    1) Start at width 1600 px, JPEG quality 0.82
    2) Lower quality by 0.12 per pass (floor 0.45)
    3) Once quality is floored, shrink width by 15% (floor 900 px)
       and bump quality back to 0.78
    4) Up to 8 attempts; returns the best effort if the limit is not met

    Args:
        image_bytes: Encoded image (JPEG, PNG, WebP, BMP, ...)
        max_bytes: Byte ceiling

    Returns:
        Encoded image bytes; the input itself when it already fits
    """
    if 0 < len(image_bytes) <= max_bytes:
        logger.debug(f"Image already under limit: {len(image_bytes)} bytes")
        return image_bytes

    width = START_WIDTH
    quality = START_QUALITY
    current = image_bytes

    for attempt in range(MAXIMUM_ATTEMPTS):
        result = _resize_and_encode(current, width, quality)

        logger.debug(
            f"Compression attempt {attempt + 1}: width={width} "
            f"quality={quality:.2f} size={len(result)} bytes"
        )

        if 0 < len(result) <= max_bytes:
            return result

        if quality > MINIMUM_QUALITY:
            quality = max(MINIMUM_QUALITY, quality - QUALITY_STEP)
        elif width > MINIMUM_WIDTH:
            width = max(MINIMUM_WIDTH, int(width * WIDTH_FACTOR))
            quality = QUALITY_AFTER_RESIZE
        else:
            return result

        current = result

    logger.warning(f"Image still above {max_bytes} bytes after {MAXIMUM_ATTEMPTS} attempts")
    return current


async def compress_images_for_upload(
    images: List[bytes],
    max_bytes: int = MAXIMUM_BYTES_PER_IMAGE,
    concurrency: int = MAXIMUM_CONCURRENT_WORKERS
) -> List[bytes]:
    """
    Compress a batch of images, each to <= max_bytes.

    Workers pull the next index from a shared counter, so at most
    `concurrency` images are in flight. Results keep input order.
    If any image fails, the remaining workers are cancelled and the
    error is raised.
    """
    if not images:
        return []

    results: List[Optional[bytes]] = [None] * len(images)
    next_index = 0

    async def worker():
        nonlocal next_index
        while next_index < len(images):
            index = next_index
            next_index += 1
            results[index] = await asyncio.to_thread(
                compress_image_to_max_bytes, images[index], max_bytes
            )

    workers = [asyncio.ensure_future(worker()) for _ in range(min(concurrency, len(images)))]
    try:
        await asyncio.gather(*workers)
    except BaseException:
        for task in workers:
            task.cancel()
        # Collect the cancelled siblings before re-raising
        await asyncio.gather(*workers, return_exceptions=True)
        logger.error(f"Batch compression aborted after {next_index} of {len(images)} images started")
        raise

    return [r for r in results if r is not None]


def compress_image_file(
    source: Union[str, Path],
    destination: Optional[Union[str, Path]] = None,
    max_bytes: int = MAXIMUM_BYTES_PER_IMAGE
) -> Path:
    """
    File-path variant of compress_image_to_max_bytes.

    Writes `<stem>.compressed.jpg` next to the source when no destination
    is given, and returns the path that was written.
    """
    source = Path(source)
    if destination is None:
        destination = source.with_name(f"{source.stem}.compressed.jpg")
    destination = Path(destination)

    compressed = compress_image_to_max_bytes(source.read_bytes(), max_bytes)
    destination.write_bytes(compressed)

    logger.info(f"Compressed {source.name}: {source.stat().st_size} -> {len(compressed)} bytes")
    return destination
