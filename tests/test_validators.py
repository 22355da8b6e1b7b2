"""Tests for request and image payload validation."""

import pytest

from garment_compose.core.errors import ImageValidationError, ValidationError
from garment_compose.core.validators import (
    MAX_IMAGE_SIZE,
    MIN_IMAGE_SIZE,
    validate_edit_request,
    validate_encoded_image,
)
from garment_compose.models import EditRequest, EncodedImage


def _request(**overrides):
    fields = {
        "subject_image_ref": "https://example.com/user.jpg",
        "garment_image_ref": "https://example.com/shirt.jpg",
    }
    fields.update(overrides)
    return EditRequest(**fields)


class TestValidateEditRequest:
    def test_valid_request_passes(self):
        validate_edit_request(_request(custom_instructions="tuck in the shirt"))

    def test_missing_user_image(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_edit_request(_request(subject_image_ref=None))

        assert str(exc_info.value) == "Validation failed: User image is required"

    def test_non_string_garment_image(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_edit_request(_request(garment_image_ref=42))

        assert "Garment image must be a valid URL or base64 string" in str(exc_info.value)

    def test_invalid_position_lists_options(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_edit_request(_request(placement="head"))

        assert str(exc_info.value) == (
            "Validation failed: Invalid position: head. "
            "Valid options: upper-body, lower-body, full-body, accessory"
        )

    def test_collects_every_violation(self):
        request = _request(
            subject_image_ref="",
            fit="baggy",
            render_style="cartoon",
            custom_instructions="x" * 501,
        )

        with pytest.raises(ValidationError) as exc_info:
            validate_edit_request(request)

        violations = exc_info.value.violations
        assert violations == [
            "User image is required",
            "Invalid fit: baggy. Valid options: snug, regular, loose",
            "Invalid style: cartoon. Valid options: realistic, stylized, enhanced",
            "Instructions too long: maximum 500 characters",
        ]
        assert str(exc_info.value) == "Validation failed: " + "; ".join(violations)

    def test_instructions_at_limit_pass(self):
        validate_edit_request(_request(custom_instructions="x" * 500))

    def test_non_string_instructions(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_edit_request(_request(custom_instructions=["wear", "it"]))

        assert "Instructions must be a string" in str(exc_info.value)


class TestValidateEncodedImage:
    def test_accepts_minimum_size(self):
        # ceil(1365 * 3 / 4) == 1024
        validate_encoded_image("A" * 1365)

    def test_rejects_below_minimum(self):
        with pytest.raises(ImageValidationError) as exc_info:
            validate_encoded_image("A" * 1364)

        assert str(exc_info.value) == (
            "Image validation failed: Image too small: must be at least 1KB"
        )

    def test_accepts_maximum_size(self):
        payload = "A" * 27962026
        assert MIN_IMAGE_SIZE < MAX_IMAGE_SIZE
        validate_encoded_image(payload)

    def test_rejects_above_maximum(self):
        with pytest.raises(ImageValidationError) as exc_info:
            validate_encoded_image("A" * 27962027)

        assert "Image size exceeds 20MB limit (actual: 20.00MB)" in str(exc_info.value)

    def test_rejects_empty_payload(self):
        with pytest.raises(ImageValidationError) as exc_info:
            validate_encoded_image("")

        assert "Invalid image data: empty or not a string" in str(exc_info.value)

    def test_rejects_non_base64_characters(self):
        with pytest.raises(ImageValidationError) as exc_info:
            validate_encoded_image("A" * 2000 + "!!")

        assert str(exc_info.value) == "Image validation failed: Invalid base64 image format"

    def test_rejects_trailing_newline(self):
        with pytest.raises(ImageValidationError):
            validate_encoded_image("A" * 2000 + "\n")

    def test_rejects_unsupported_extension(self):
        image = EncodedImage(data="A" * 2000, mime_type="image/gif", extension="gif")

        with pytest.raises(ImageValidationError) as exc_info:
            validate_encoded_image(image)

        assert str(exc_info.value) == (
            "Image validation failed: Unsupported image format: gif. "
            "Supported: jpg, jpeg, png, webp"
        )

    def test_unknown_extension_is_not_checked(self):
        validate_encoded_image(EncodedImage(data="A" * 2000))

    def test_explicit_extension_overrides(self):
        image = EncodedImage(data="A" * 2000, extension="gif")
        validate_encoded_image(image, extension=".PNG")

    def test_is_an_edit_validation_error(self):
        with pytest.raises(ValidationError):
            validate_encoded_image("short")
