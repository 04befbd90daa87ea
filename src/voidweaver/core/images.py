"""
Image handling for voidweaver.

Source images are loaded from disk (or bytes), downscaled to the configured
pixel budget, converted to RGB and sent as bare base64 without a data URL
prefix. Generated images come back the same way and are decoded and saved
here.
"""

import base64
import binascii
import io
from pathlib import Path

from PIL import Image

from voidweaver.core.config import get_config
from voidweaver.logging_config import get_logger
from voidweaver.utils.exceptions import ImageProcessingError, ValidationError

logger = get_logger(__name__)

SUPPORTED_FORMATS = {"PNG", "JPEG", "JPG", "WEBP"}
_DATA_URL_MARKER = ";base64,"


def strip_data_url(data: str) -> str:
    """Remove a ``data:image/...;base64,`` prefix if present."""
    data = data.strip()
    if data.startswith("data:"):
        idx = data.find(_DATA_URL_MARKER)
        if idx == -1:
            raise ValidationError("Data URL missing ;base64, part", field="image")
        return data[idx + len(_DATA_URL_MARKER) :]
    return data


def load_image(source: str | Path | bytes) -> Image.Image:
    """
    Load an image from a file path or in-memory bytes.

    Raises:
        FileNotFoundError: If the path does not exist
        ValidationError: If the file extension is not a supported format
        ImageProcessingError: If Pillow cannot read the image
    """
    if isinstance(source, bytes):
        if not source:
            raise ValidationError("Image data is empty", field="image")
        try:
            image = Image.open(io.BytesIO(source))
            image.load()
            return image
        except Exception as e:
            raise ImageProcessingError(f"Failed to load image from bytes: {str(e)}") from e

    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {path}")
    suffix = path.suffix.upper().lstrip(".")
    if suffix not in SUPPORTED_FORMATS:
        raise ValidationError(
            f"Unsupported image format: {suffix or '(none)'}. "
            f"Supported formats: {', '.join(sorted(SUPPORTED_FORMATS))}",
            field="image_format",
        )
    try:
        image = Image.open(path)
        image.load()
        return image
    except Exception as e:
        raise ImageProcessingError(f"Failed to load image: {str(e)}", image_path=str(path)) from e


def resize_image(image: Image.Image, max_pixels: int | None = None) -> Image.Image:
    """Downscale to at most max_pixels, keeping the aspect ratio. Smaller images pass through."""
    if max_pixels is None:
        max_pixels = get_config().max_image_pixels
    width, height = image.size
    current_pixels = width * height
    if current_pixels <= max_pixels:
        logger.debug("Source image no resize needed dimensions=%dx%d", width, height)
        return image
    scale_factor = (max_pixels / current_pixels) ** 0.5
    out_w = max(1, int(width * scale_factor))
    out_h = max(1, int(height * scale_factor))
    logger.debug("Source image resizing %dx%d -> %dx%d", width, height, out_w, out_h)
    return image.resize((out_w, out_h), Image.Resampling.LANCZOS)


def convert_to_rgb(image: Image.Image) -> Image.Image:
    """Convert to RGB, compositing any transparency onto white."""
    if image.mode == "RGB":
        return image
    if image.mode in ("RGBA", "LA"):
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[-1])
        return background
    return image.convert("RGB")


def encode_image_base64(image: Image.Image, format: str = "PNG") -> str:
    """
    Encode a PIL Image to a bare base64 string.

    Raises:
        ImageProcessingError: If encoding fails
    """
    try:
        buffer = io.BytesIO()
        image.save(buffer, format=format)
        return base64.b64encode(buffer.getvalue()).decode("utf-8")
    except Exception as e:
        raise ImageProcessingError(f"Failed to encode image: {str(e)}") from e


def prepare_source_image(source: str | Path | bytes, max_pixels: int | None = None) -> str:
    """
    Load, downscale, convert and encode an image for upload.

    Returns:
        Base64 PNG data without a data URL prefix
    """
    image = load_image(source)
    image = resize_image(image, max_pixels=max_pixels)
    image = convert_to_rgb(image)
    encoded = encode_image_base64(image, "PNG")
    logger.debug("Prepared source image size=%dx%d chars=%d", *image.size, len(encoded))
    return encoded


def decode_image_data(data: str) -> bytes:
    """
    Decode base64 image data (with or without a data URL prefix) to bytes.

    Raises:
        ValidationError: If the data is not valid base64
    """
    payload = strip_data_url(data)
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Invalid base64 image data: {e}", field="image") from e


def save_image_data(data: str, output_path: str | Path) -> Path:
    """
    Decode base64 image data and write it to output_path.

    Parent directories are created as needed.

    Raises:
        ValidationError: If the data is not valid base64
        ImageProcessingError: If the file cannot be written
    """
    raw = decode_image_data(data)
    path = Path(output_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(raw)
    except OSError as e:
        raise ImageProcessingError(
            f"Failed to save image: {str(e)}", image_path=str(path)
        ) from e
    logger.info("Saved image path=%s bytes=%d", path, len(raw))
    return path
