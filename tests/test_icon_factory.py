import io
import struct

import pytest
from PIL import Image

from pngtoico.services import icon_factory
from pngtoico.services.ico_layout import payload_format, read_icon
from pngtoico.services.sizes import SizeProfile


def first_pixel_bgra(payload: bytes) -> tuple[int, ...]:
    return tuple(payload[40:44])


def close_to(actual, expected, tolerance: int = 1) -> bool:
    return all(abs(a - b) <= tolerance for a, b in zip(actual, expected))


def test_convert_requires_images_and_sink():
    with pytest.raises(ValueError, match="images"):
        icon_factory.convert(None, io.BytesIO())
    with pytest.raises(ValueError, match="sink"):
        icon_factory.convert([Image.new("RGBA", (16, 16))], None)


def test_convert_single_large_source_to_three_sizes():
    sink = io.BytesIO()
    source = Image.new("RGBA", (512, 512), (0, 200, 0, 255))

    entries = icon_factory.convert([source], sink, [16, 32, 256])

    data = sink.getvalue()
    assert len(entries) == 3
    assert len(data) == 6 + 48 + 3 * 40 + (16**2 + 32**2 + 256**2) * 4
    directory = [struct.unpack_from("<BB", data, 6 + 16 * index) for index in range(3)]
    assert directory == [(16, 16), (32, 32), (0, 0)]
    assert source.size == (512, 512)


def test_convert_only_undersized_source_writes_empty_icon():
    sink = io.BytesIO()

    entries = icon_factory.convert([Image.new("RGBA", (1, 1))], sink, [16, 32])

    assert entries == []
    assert sink.getvalue() == struct.pack("<HHH", 0, 1, 0)


def test_convert_without_sizes_writes_normalized_sources():
    sink = io.BytesIO()

    entries = icon_factory.convert([Image.new("RGBA", (300, 150)), Image.new("RGB", (20, 10))], sink)

    assert [(entry.width, entry.height) for entry in entries] == [(256, 256), (20, 20)]
    assert [entry.bit_count for entry in entries] == [32, 32]


def test_convert_picks_smallest_source_that_avoids_upscaling():
    red = Image.new("RGBA", (32, 32), (255, 0, 0, 255))
    blue = Image.new("RGBA", (128, 128), (0, 0, 255, 255))
    sink = io.BytesIO()

    icon_factory.convert([blue, red], sink, [16, 64, 256])

    container = read_icon(sink.getvalue())
    assert [entry.width for entry in container.entries] == [16, 64, 256]
    assert close_to(first_pixel_bgra(container.payloads[0]), (0, 0, 255, 255))
    assert close_to(first_pixel_bgra(container.payloads[1]), (255, 0, 0, 255))
    assert close_to(first_pixel_bgra(container.payloads[2]), (255, 0, 0, 255))


def test_convert_rejects_out_of_range_sizes():
    with pytest.raises(ValueError, match="between 2 and 256"):
        icon_factory.convert([Image.new("RGBA", (16, 16))], io.BytesIO(), [16, 512])


def test_convert_bottom_up_rows():
    image = Image.new("RGBA", (2, 2), (0, 0, 0, 255))
    image.putpixel((0, 1), (255, 255, 255, 255))
    top_down, bottom_up = io.BytesIO(), io.BytesIO()

    icon_factory.convert([image], top_down)
    icon_factory.convert([image], bottom_up, bottom_up=True)

    assert first_pixel_bgra(read_icon(top_down.getvalue()).payloads[0]) == (0, 0, 0, 255)
    assert first_pixel_bgra(read_icon(bottom_up.getvalue()).payloads[0]) == (255, 255, 255, 255)


def test_save_application_profile_never_upscales():
    sink = io.BytesIO()

    entries = icon_factory.save(Image.new("RGBA", (64, 64), (9, 9, 9, 255)), sink)

    container = read_icon(sink.getvalue())
    assert [entry.width for entry in entries] == [64, 48, 32, 24, 16]
    assert container.entries == entries
    assert {payload_format(payload) for payload in container.payloads} == {"PNG"}


def test_save_generic_profile_from_non_square_source():
    sink = io.BytesIO()

    entries = icon_factory.save(Image.new("RGB", (40, 12)), sink, SizeProfile.GENERIC)

    assert [entry.width for entry in entries] == [40, 32, 24, 22, 20, 16, 14, 10, 8]
    assert all(entry.width == entry.height for entry in entries)


def test_save_large_source_covers_full_profile():
    entries = icon_factory.save(Image.new("RGBA", (1024, 1024)), io.BytesIO())

    assert [entry.width for entry in entries] == list(SizeProfile.APPLICATION.sizes)


def test_save_rejects_undersized_image():
    with pytest.raises(ValueError, match="too small"):
        icon_factory.save(Image.new("RGBA", (1, 1)), io.BytesIO())


def test_save_dispose_closes_sink_and_image():
    sink = io.BytesIO()
    image = Image.new("RGBA", (32, 32))

    icon_factory.save(image, sink, dispose=True)

    assert sink.closed
    with pytest.raises(ValueError):
        image.getpixel((0, 0))


def test_save_without_dispose_leaves_image_and_sink_usable():
    sink = io.BytesIO()
    image = Image.new("RGBA", (32, 32), (5, 6, 7, 255))

    icon_factory.save(image, sink)

    assert not sink.closed
    assert image.getpixel((0, 0)) == (5, 6, 7, 255)


def test_save_images_dispose_closes_every_image():
    images = [Image.new("RGBA", (16, 16)), Image.new("RGBA", (48, 48))]

    icon_factory.save_images(images, io.BytesIO(), dispose=True)

    for image in images:
        with pytest.raises(ValueError):
            image.load()


def test_save_images_writes_explicit_list():
    sink = io.BytesIO()

    entries = icon_factory.save_images([Image.new("RGBA", (16, 16)), Image.new("RGBA", (48, 48))], sink)

    assert [entry.width for entry in entries] == [48, 16]
    assert read_icon(sink.getvalue()).entries == entries


def test_save_to_path_truncates_existing_file(tmp_path):
    target = tmp_path / "app.ico"
    target.write_bytes(b"x" * 1_000_000)

    entries = icon_factory.save_to_path(Image.new("RGBA", (32, 32)), target)

    data = target.read_bytes()
    assert len(data) == 6 + 16 * len(entries) + sum(entry.payload_size for entry in entries)
    assert read_icon(data).entries == entries


def test_save_to_path_requires_path():
    with pytest.raises(ValueError, match="path"):
        icon_factory.save_to_path(Image.new("RGBA", (32, 32)), "")
