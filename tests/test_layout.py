import pytest

from transform_factory.core.errors import InvalidInputError
from transform_factory.services.layout import fit_rect, format_size, number_position, page_size


class TestPageSize:
    def test_landscape_swaps_dimensions(self):
        assert page_size("a4", "landscape") == (841.89, 595.28)

    def test_unknown_size(self):
        with pytest.raises(InvalidInputError, match="Unsupported page size"):
            page_size("b5")


class TestFitRect:
    def test_wide_image_is_centred_vertically(self):
        x, y, w, h = fit_rect(200, 100, 400, 400)
        assert (x, y, w, h) == (0, 100, 400, 200)

    def test_margin_is_respected(self):
        x, y, w, h = fit_rect(100, 100, 300, 500, margin=50)
        assert w == h == 200
        assert x == 50
        assert y == 150

    def test_small_images_are_scaled_up(self):
        _, _, w, h = fit_rect(10, 20, 100, 100)
        assert (w, h) == (50, 100)


class TestNumberPosition:
    def test_bottom_center(self):
        assert number_position("bottom-center", 600, 800, 20, 12) == (290, 12)

    def test_top_right(self):
        assert number_position("top-right", 600, 800, 20, 12) == (568, 776)

    def test_invalid_position(self):
        with pytest.raises(InvalidInputError, match="Invalid position"):
            number_position("middle", 600, 800, 20, 12)


@pytest.mark.parametrize(
    "size, expected",
    [(512, "512 bytes"), (2048, "2.00 KB"), (3 * 1024 * 1024, "3.00 MB")],
)
def test_format_size(size, expected):
    assert format_size(size) == expected
