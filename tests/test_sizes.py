import pytest
from PIL import Image

from pngtoico.services.sizes import SizeProfile, parse_sizes, pick_source, resolve_sizes, sort_by_size


def squares(*sides: int) -> list[Image.Image]:
    return [Image.new("RGBA", (side, side)) for side in sides]


def test_profiles_list_sizes_largest_first():
    assert SizeProfile.APPLICATION.sizes == (256, 128, 64, 48, 32, 24, 16)
    assert SizeProfile.GENERIC.sizes == (256, 128, 96, 64, 48, 40, 32, 24, 22, 20, 16, 14, 10, 8)


def test_resolve_sizes_collapses_duplicates_in_order():
    assert resolve_sizes([32, 16, 32, 256, 16]) == (32, 16, 256)


@pytest.mark.parametrize("size", [1, 0, 257, -16])
def test_resolve_sizes_rejects_out_of_range(size):
    with pytest.raises(ValueError, match="between 2 and 256"):
        resolve_sizes([16, size])


def test_parse_sizes_reads_comma_list():
    assert parse_sizes("16, 32,16,,256") == (16, 32, 256)


def test_parse_sizes_rejects_garbage():
    with pytest.raises(ValueError, match="comma separated"):
        parse_sizes("16,big")


def test_sort_by_size_orders_by_width_then_height():
    images = [Image.new("RGBA", size) for size in [(48, 48), (16, 20), (16, 16), (32, 8)]]

    assert [image.size for image in sort_by_size(images)] == [(16, 16), (16, 20), (32, 8), (48, 48)]


def test_pick_source_prefers_smallest_without_upscaling():
    ordered = sort_by_size(squares(128, 16, 48))

    assert pick_source(16, ordered).width == 16
    assert pick_source(32, ordered).width == 48
    assert pick_source(48, ordered).width == 48
    assert pick_source(64, ordered).width == 128


def test_pick_source_falls_back_to_widest():
    ordered = sort_by_size(squares(16, 32))

    assert pick_source(256, ordered) is ordered[-1]


def test_pick_source_requires_candidates():
    with pytest.raises(ValueError):
        pick_source(16, [])
