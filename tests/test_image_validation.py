"""Tests for image validation."""

import base64
import io

import pytest
from PIL import Image

from src.image_validation import ImageValidationError
from src.image_validation import encode_uploaded_image
from src.image_validation import validate_image_file


def create_test_image(format: str = "JPEG") -> bytes:
    """Create a test image in memory."""
    img = Image.new("RGB", (100, 100), color="red")
    buffer = io.BytesIO()
    img.save(buffer, format=format)
    return buffer.getvalue()


@pytest.mark.parametrize(
    "format,extension",
    [
        ("JPEG", "jpeg"),
        ("JPEG", "jpg"),
        ("PNG", "png"),
        ("WEBP", "webp"),
    ],
)
def test_validate_image_file_valid_formats(format: str, extension: str):
    """Test validation accepts supported image formats."""
    image_data = create_test_image(format)
    validate_image_file(image_data, f"menu.{extension}")


def test_validate_image_file_invalid_format():
    """Test validation rejects unsupported formats."""
    image_data = create_test_image("JPEG")
    with pytest.raises(ImageValidationError, match="Unsupported file format"):
        validate_image_file(image_data, "menu.gif")


def test_validate_image_file_too_large():
    """Test validation rejects files exceeding size limit."""
    large_data = b"x" * (11 * 1024 * 1024)
    with pytest.raises(ImageValidationError, match="exceeds maximum"):
        validate_image_file(large_data, "menu.jpg")


def test_validate_image_file_invalid_image():
    """Test validation rejects invalid image data."""
    with pytest.raises(ImageValidationError, match="Invalid image file"):
        validate_image_file(b"not an image", "menu.jpeg")


def test_validate_image_file_empty_filename():
    """Test validation rejects empty filename."""
    with pytest.raises(ImageValidationError, match="Filename cannot be empty"):
        validate_image_file(create_test_image(), "")


def test_validate_image_file_empty_content():
    """Test validation rejects empty file content."""
    with pytest.raises(ImageValidationError, match="File is empty"):
        validate_image_file(b"", "menu.jpg")


def test_encode_uploaded_image():
    """Test a valid upload comes back base64 encoded."""
    image_data = create_test_image()

    encoded = encode_uploaded_image(image_data, "menu.jpg")

    assert base64.b64decode(encoded) == image_data


def test_encode_uploaded_image_rejects_invalid():
    """Test encoding validates first."""
    with pytest.raises(ImageValidationError):
        encode_uploaded_image(b"not an image", "menu.jpg")
