"""
Unit tests for generation request assembly
"""
import pytest

from genie.domain.entities.image_asset import FilePart, ImageAsset, TextPart
from genie.domain.errors import MissingImageDataError
from genie.domain.services.request_builder import (
    MAX_REFERENCE_IMAGES,
    build,
    combine_instruction,
)


class TestBuild:
    def test_text_first_then_images_in_order(self):
        subject = ImageAsset(media_type="image/png", url="https://cdn.example.com/a.png")
        garment = ImageAsset(media_type="image/webp", data="QUJD")

        request = build("Put the outfit on the person", [subject, garment])

        assert len(request.parts) == 3
        text, first, second = request.parts
        assert isinstance(text, TextPart)
        assert text.text == "Put the outfit on the person"
        assert first == FilePart(media_type="image/png", url="https://cdn.example.com/a.png")
        assert second == FilePart(media_type="image/webp", base64="QUJD")
        assert request.image_parts == (first, second)

    def test_inline_data_preferred_over_url(self):
        image = ImageAsset(data="QUJD", url="https://cdn.example.com/a.png")
        part = build("prompt", [image]).parts[1]
        assert part.base64 == "QUJD"
        assert part.url is None

    def test_no_images(self):
        request = build("A thumbnail for a neon city template", [])
        assert len(request.parts) == 1
        assert request.image_parts == ()

    def test_image_without_data_or_url(self):
        images = [ImageAsset(data="QUJD"), ImageAsset()]
        with pytest.raises(MissingImageDataError) as exc:
            build("prompt", images)
        assert exc.value.message == "Image 2 must have either data or url"

    @pytest.mark.parametrize("prompt", ["", "   "])
    def test_empty_instruction(self, prompt):
        with pytest.raises(ValueError, match="textPrompt required"):
            build(prompt, [ImageAsset(data="QUJD")])

    def test_expected_count_mismatch(self):
        with pytest.raises(ValueError, match="Expected exactly 2"):
            build("prompt", [ImageAsset(data="QUJD")], expected_count=2)

    def test_too_many_images(self):
        images = [ImageAsset(data="QUJD")] * (MAX_REFERENCE_IMAGES + 1)
        with pytest.raises(ValueError, match="Maximum"):
            build("prompt", images)

    def test_addendum_is_appended(self):
        request = build("Turn the background black and white", [ImageAsset(data="QUJD")], addendum="Keep the smile")
        assert request.instruction == "Turn the background black and white\nKeep the smile"
        assert request.parts[0].text == request.instruction


class TestCombineInstruction:
    def test_without_addendum(self):
        assert combine_instruction("base") == "base"
        assert combine_instruction("base", "") == "base"

    def test_with_addendum(self):
        assert combine_instruction("base", "extra") == "base\nextra"
