"""
Image preparation for vision requests.

Photos straight off a phone camera are several megabytes; they are
down-scaled and re-encoded before being sent to the model.
"""
import base64
import io

from django.conf import settings
from django.core.exceptions import ValidationError
from PIL import Image, UnidentifiedImageError
import pillow_heif


def open_image_convert_heic(file):
    """
    Open an uploaded image file, converting HEIC/HEIF to RGB.
    Returns a Pillow Image object in RGB mode.
    """
    try:
        img = Image.open(file)
        img.load()
    except UnidentifiedImageError:
        file.seek(0)
        try:
            heif_file = pillow_heif.read_heif(file.read())
        except (ValueError, RuntimeError) as e:
            raise ValidationError('Unsupported or corrupt image file') from e
        img = Image.frombytes(
            heif_file.mode,
            heif_file.size,
            heif_file.data,
            "raw"
        )
    if img.mode != 'RGB':
        img = img.convert('RGB')
    return img


def compress_image(file, max_dimension=None, quality=None):
    """
    Down-scale so the long side is at most ``max_dimension`` px and
    re-encode as JPEG. Returns the JPEG bytes.
    """
    max_dimension = max_dimension or settings.AI_IMAGE_MAX_DIMENSION
    quality = quality or settings.AI_IMAGE_JPEG_QUALITY

    img = open_image_convert_heic(file)
    img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

    buf = io.BytesIO()
    img.save(buf, format='JPEG', quality=quality)
    return buf.getvalue()


def image_data_url(file):
    """Compressed image as a base64 ``data:`` URL for the chat API."""
    if hasattr(file, 'seek'):
        file.seek(0)
    encoded = base64.b64encode(compress_image(file)).decode('ascii')
    return f"data:image/jpeg;base64,{encoded}"
