from __future__ import annotations

import io
import zlib
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest
from PIL import Image

from pngforge import (
    ColorType,
    ConfigurationError,
    EncoderConfig,
    FilterMethod,
    ImageMetadata,
    InterlaceMode,
    PNG_SIGNATURE,
    PixelFormat,
    PngEncoder,
    ResolutionUnit,
    SourceImage,
    encode,
)
from patterns import (
    few_colors_pattern,
    gray_alpha_pattern,
    gray_pattern,
    many_colors_pattern,
    rgba_pattern,
)
from reference_decoder import read_chunks, to_rgba16, to_rgba8

SIZES = [(47, 13), (1, 1), (8, 8), (9, 17), (2, 3)]
INTERLACE = [InterlaceMode.NONE, InterlaceMode.ADAM7]

PALETTE_COLORS = {1: 2, 2: 4, 4: 16, 8: 200}


def _lossless_source(color_type: ColorType, bit_depth: int, width: int, height: int) -> SourceImage:
    if color_type == ColorType.GRAYSCALE:
        return gray_pattern(width, height, bit_depth)
    if color_type == ColorType.GRAYSCALE_WITH_ALPHA:
        return gray_alpha_pattern(width, height, bit_depth)
    if color_type == ColorType.RGB:
        return rgba_pattern(width, height, bit_depth, alpha=False)
    if color_type == ColorType.RGB_WITH_ALPHA:
        return rgba_pattern(width, height, bit_depth)
    return few_colors_pattern(width, height, PALETTE_COLORS[bit_depth], transparent=bit_depth > 1)


LEGAL = [
    (ColorType.GRAYSCALE, 1), (ColorType.GRAYSCALE, 2), (ColorType.GRAYSCALE, 4),
    (ColorType.GRAYSCALE, 8), (ColorType.GRAYSCALE, 16),
    (ColorType.RGB, 8), (ColorType.RGB, 16),
    (ColorType.PALETTE, 1), (ColorType.PALETTE, 2), (ColorType.PALETTE, 4), (ColorType.PALETTE, 8),
    (ColorType.GRAYSCALE_WITH_ALPHA, 8), (ColorType.GRAYSCALE_WITH_ALPHA, 16),
    (ColorType.RGB_WITH_ALPHA, 8), (ColorType.RGB_WITH_ALPHA, 16),
]


def test_output_starts_with_signature_and_ends_with_iend(rgba_image) -> None:
    data = encode(rgba_image)
    assert data[:8] == PNG_SIGNATURE
    assert data[-12:] == b"\x00\x00\x00\x00IEND\xaeB`\x82"


@pytest.mark.parametrize("interlace", INTERLACE)
@pytest.mark.parametrize("width,height", SIZES)
@pytest.mark.parametrize("color_type,bit_depth", LEGAL)
def test_lossless_round_trip(decode_png, color_type, bit_depth, width, height, interlace) -> None:
    image = _lossless_source(color_type, bit_depth, width, height)
    data = encode(image, color_type=color_type, bit_depth=bit_depth, interlace_mode=interlace)
    decoded = decode_png(data)
    assert (decoded.width, decoded.height) == (width, height)
    assert (decoded.color_type, decoded.bit_depth, decoded.interlace) == (
        int(color_type), bit_depth, int(interlace))
    np.testing.assert_array_equal(to_rgba16(decoded), image.rgba16())


@pytest.mark.parametrize("width,height", [(48, 24), (47, 8), (49, 7), (1, 1), (7, 5)])
@pytest.mark.parametrize("color_type", list(ColorType))
def test_pillow_reads_what_reference_decoder_reads(decode_png, color_type, width, height) -> None:
    data = encode(rgba_pattern(width, height), color_type=color_type, bit_depth=8)
    decoded = decode_png(data)
    with Image.open(io.BytesIO(data)) as pil:
        pil.load()
        if color_type == ColorType.PALETTE:
            np.testing.assert_array_equal(np.asarray(pil.convert("RGBA")), to_rgba8(decoded))
        else:
            np.testing.assert_array_equal(np.asarray(pil).reshape(decoded.samples.shape),
                                          decoded.samples)


@pytest.mark.parametrize("interlace", INTERLACE)
def test_pixel_layout_does_not_change_output(interlace) -> None:
    rgba = rgba_pattern(23, 11).pixels
    layouts = [
        SourceImage(rgba, PixelFormat.RGBA32),
        SourceImage(rgba[:, :, [2, 1, 0, 3]], PixelFormat.BGRA32),
        SourceImage(rgba[:, :, [3, 0, 1, 2]], PixelFormat.ARGB32),
    ]
    outputs = {encode(image, interlace_mode=interlace) for image in layouts}
    assert len(outputs) == 1

    # Without alpha in the target, RGB24, BGR24 and RGBA32 sources agree too
    rgb_layouts = layouts + [
        SourceImage(rgba[:, :, :3], PixelFormat.RGB24),
        SourceImage(rgba[:, :, 2::-1], PixelFormat.BGR24),
    ]
    outputs = {encode(image, color_type="rgb", interlace_mode=interlace) for image in rgb_layouts}
    assert len(outputs) == 1


@pytest.mark.parametrize("interlace", INTERLACE)
@pytest.mark.parametrize("method", list(FilterMethod))
def test_every_filter_method_round_trips(decode_png, rgba_image, method, interlace) -> None:
    decoded = decode_png(encode(rgba_image, filter_method=method, interlace_mode=interlace))
    np.testing.assert_array_equal(to_rgba16(decoded), rgba_image.rgba16())
    if method != FilterMethod.ADAPTIVE:
        assert set(decoded.filter_types) == {int(method)}
    else:
        assert set(decoded.filter_types) <= {0, 1, 2, 3, 4}


def test_compression_level_changes_size_not_content(decode_png, rgba_image) -> None:
    inflated = set()
    for level in range(10):
        data = encode(rgba_image, compression_level=level)
        chunks = read_chunks(data)
        inflated.add(zlib.decompress(b"".join(body for t, body in chunks if t == b"IDAT")))
        np.testing.assert_array_equal(to_rgba16(decode_png(data)), rgba_image.rgba16())
    assert len(inflated) == 1


@pytest.mark.parametrize("palette_size", [30, 55, 100, 201, 255])
def test_palette_size_is_respected(decode_png, palette_size: int) -> None:
    lossless = few_colors_pattern(40, 20, palette_size)
    decoded = decode_png(encode(lossless, color_type="palette", palette_size=palette_size))
    assert len(decoded.palette) == palette_size
    np.testing.assert_array_equal(to_rgba16(decoded), lossless.rgba16())


@pytest.mark.parametrize("palette_size", [80, 100, 120, 230])
def test_large_image_is_quantized_within_palette_size(decode_png, palette_size: int) -> None:
    image = many_colors_pattern()
    decoded = decode_png(encode(image, color_type="palette", palette_size=palette_size))
    assert 1 <= len(decoded.palette) <= palette_size
    assert decoded.trns is None
    error = np.abs(to_rgba8(decoded).astype(int)[:, :, :3] - image.pixels.astype(int))
    assert error.mean() < 32


@pytest.mark.parametrize("bit_depth", [1, 2, 4])
def test_palette_size_clamped_to_low_bit_depths(decode_png, bit_depth: int) -> None:
    decoded = decode_png(encode(many_colors_pattern(16, 16), color_type="palette",
                                bit_depth=bit_depth, palette_size=256))
    assert len(decoded.palette) <= 1 << bit_depth


def test_palette_transparency_is_written(decode_png) -> None:
    image = few_colors_pattern(6, 6, 5, transparent=True)
    decoded = decode_png(encode(image, color_type="palette"))
    assert decoded.chunk_types[:3] == [b"IHDR", b"PLTE", b"tRNS"]
    assert list(decoded.trns) == [255, 255, 255, 255, 0]


@pytest.mark.parametrize("x,y,unit,expected", [
    (11810, 11810, ResolutionUnit.PIXELS_PER_METER, (11810, 11810, 1)),
    (1, 4, ResolutionUnit.ASPECT_RATIO, (1, 4, 0)),
    (4, 1, ResolutionUnit.ASPECT_RATIO, (4, 1, 0)),
    (96, 96, ResolutionUnit.PIXELS_PER_INCH, (3780, 3780, 1)),
])
def test_resolution_is_preserved(decode_png, x, y, unit, expected) -> None:
    meta = ImageMetadata(horizontal_resolution=x, vertical_resolution=y, resolution_unit=unit)
    image = rgba_pattern(4, 4, metadata=meta)
    assert decode_png(encode(image)).phys == expected
    assert decode_png(encode(image, write_physical=False)).phys is None


def test_no_resolution_chunk_without_metadata(decode_png, rgba_image) -> None:
    assert b"pHYs" not in decode_png(encode(rgba_image)).chunk_types


@pytest.mark.parametrize("bit_depth,key8,expected", [
    (1, 255, 1), (2, 85, 1), (4, 17, 1), (8, 200, 200),
])
def test_gray_transparency_key_is_preserved(decode_png, bit_depth, key8, expected) -> None:
    image = gray_pattern(12, 5, bit_depth, metadata=ImageMetadata(transparent_l8=key8))
    decoded = decode_png(encode(image, color_type="grayscale", bit_depth=bit_depth))
    assert decoded.transparent_gray == expected
    alpha = to_rgba16(decoded)[:, :, 3]
    np.testing.assert_array_equal(alpha == 0, image.pixels[:, :, 0] == key8)


def test_sixteen_bit_transparency_keys(decode_png) -> None:
    gray = gray_pattern(5, 5, 16, metadata=ImageMetadata(transparent_l16=0xBEEF))
    assert decode_png(encode(gray)).transparent_gray == 0xBEEF

    meta = ImageMetadata(transparent_rgb48=(1, 2, 0xFFFF))
    rgb = rgba_pattern(5, 5, bits=16, alpha=False, metadata=meta)
    assert decode_png(encode(rgb)).transparent_rgb == (1, 2, 0xFFFF)


def test_rgb24_transparency_key(decode_png) -> None:
    image = rgba_pattern(5, 5, alpha=False, metadata=ImageMetadata(transparent_rgb24=(9, 8, 7)))
    assert decode_png(encode(image)).transparent_rgb == (9, 8, 7)


def test_key_detected_from_alpha_keeps_transparent_pixels_transparent(decode_png) -> None:
    pixels = rgba_pattern(10, 10).pixels.copy()
    pixels[:, :, 3] = 255
    pixels[2:4, 5:9] = (0, 255, 0, 0)
    pixels[:, :, 1] = np.where(pixels[:, :, 3] == 0, 255, np.minimum(pixels[:, :, 1], 254))
    image = SourceImage(pixels, PixelFormat.RGBA32)
    decoded = decode_png(encode(image, color_type="rgb"))
    assert decoded.transparent_rgb == (0, 255, 0)
    np.testing.assert_array_equal(to_rgba16(decoded), image.rgba16())


def test_chunk_order(decode_png) -> None:
    meta = ImageMetadata(horizontal_resolution=72, vertical_resolution=72, gamma=1 / 2.2,
                         text=(("Title", "Test pattern"), ("Software", "PNGForge")))
    image = few_colors_pattern(8, 8, 3, transparent=True)
    image = SourceImage(image.pixels, image.pixel_format, meta)
    decoded = decode_png(encode(image, color_type="palette", idat_size=16))
    types = decoded.chunk_types
    idat_start = types.index(b"IDAT")
    assert types[:idat_start] == [b"IHDR", b"gAMA", b"PLTE", b"tRNS", b"pHYs", b"tEXt", b"tEXt"]
    assert set(types[idat_start:-1]) == {b"IDAT"}
    assert types[-1] == b"IEND"
    assert decoded.gamma == 45455
    assert decoded.text == {"Title": "Test pattern", "Software": "PNGForge"}


def test_optional_chunks_can_be_disabled(decode_png) -> None:
    meta = ImageMetadata(gamma=0.5, text=(("Comment", "x"),))
    image = SourceImage(rgba_pattern(4, 4).pixels, PixelFormat.RGBA32, meta)
    decoded = decode_png(encode(image, write_gamma=False, write_text=False))
    assert decoded.chunk_types == [b"IHDR", b"IDAT", b"IEND"]


def test_idat_payloads_are_split(rgba_image) -> None:
    data = encode(rgba_image, idat_size=100, compression_level=0)
    sizes = [len(body) for t, body in read_chunks(data) if t == b"IDAT"]
    assert len(sizes) > 1
    assert all(size == 100 for size in sizes[:-1])
    assert 0 < sizes[-1] <= 100


def test_encoding_is_deterministic_and_leaves_source_untouched(rgba_image) -> None:
    before = rgba_image.pixels.copy()
    first = encode(rgba_image, color_type="palette")
    second = encode(rgba_image, color_type="palette")
    assert first == second
    np.testing.assert_array_equal(rgba_image.pixels, before)


def test_encoder_can_be_shared_between_threads(rgba_image) -> None:
    encoder = PngEncoder(interlace_mode="adam7")
    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(lambda _: encoder.encode(rgba_image), range(8)))
    assert len(set(results)) == 1


def test_invalid_configuration_fails_before_output(tmp_path, rgba_image) -> None:
    path = tmp_path / "out.png"
    with pytest.raises(ConfigurationError):
        PngEncoder(color_type="palette", bit_depth=16).save(rgba_image, path)
    with pytest.raises(ConfigurationError):
        encode(gray_pattern(4, 4), bit_depth=2, color_type="rgb")
    assert not path.exists()


class _FailingCompressor:
    def compressobj(self, level):
        return self

    def compress(self, data):
        raise zlib.error("Error -2 while compressing data")

    def flush(self):
        return b""


def test_compressor_errors_propagate_and_nothing_is_written(tmp_path, rgba_image) -> None:
    path = tmp_path / "out.png"
    with pytest.raises(zlib.error):
        PngEncoder(compressor=_FailingCompressor()).save(rgba_image, path)
    assert not path.exists()


def test_pillow_images_are_accepted(decode_png) -> None:
    pil = Image.new("RGB", (5, 3), (10, 20, 30))
    decoded = decode_png(encode(pil))
    assert decoded.color_type == int(ColorType.RGB)
    assert decoded.samples[0, 0].tolist() == [10, 20, 30]


def test_encode_to_stream_and_save(tmp_path, rgba_image) -> None:
    encoder = PngEncoder(EncoderConfig(), compression_level=9)
    assert encoder.config.compression_level == 9
    stream = io.BytesIO()
    written = encoder.encode_to_stream(rgba_image, stream)
    assert written == len(stream.getvalue())

    path = tmp_path / "image.png"
    assert encoder.save(rgba_image, path) == written
    assert path.read_bytes() == stream.getvalue()


@pytest.mark.parametrize("bit_depth", [1, 2, 4])
def test_low_depth_gray_key_survives_reload(tmp_path, decode_png, bit_depth: int) -> None:
    top = (1 << bit_depth) - 1
    levels = np.arange(top + 1) * (255 // top)
    pixels = np.tile(levels, (3, 1)).astype(np.uint8)
    image = SourceImage(pixels, PixelFormat.L8, ImageMetadata(transparent_l8=255))
    path = tmp_path / "gray.png"
    PngEncoder(color_type="grayscale", bit_depth=bit_depth).save(image, path)

    loaded = SourceImage.open(path)
    assert loaded.metadata.transparent_l8 == 255
    np.testing.assert_array_equal(loaded.pixels[:, :, 0], pixels)

    decoded = decode_png(encode(loaded))
    assert decoded.transparent_gray == top
    np.testing.assert_array_equal(to_rgba16(decoded)[:, :, 3] == 0, pixels == 255)


@pytest.mark.parametrize("source,color_type,bit_depth", [
    (lambda: gray_pattern(9, 3, 1), ColorType.GRAYSCALE, 1),
    (lambda: gray_pattern(9, 3, 2), ColorType.GRAYSCALE, 2),
    (lambda: few_colors_pattern(8, 4, 10), ColorType.PALETTE, 4),
    (lambda: few_colors_pattern(8, 4, 2), ColorType.PALETTE, 1),
    (lambda: rgba_pattern(5, 4, bits=16, alpha=False), ColorType.RGB, 16),
    (lambda: gray_alpha_pattern(5, 4, 16), ColorType.GRAYSCALE_WITH_ALPHA, 16),
])
def test_reloaded_png_keeps_color_type_and_bit_depth(tmp_path, decode_png, source,
                                                     color_type, bit_depth) -> None:
    path = tmp_path / "source.png"
    PngEncoder(color_type=color_type, bit_depth=bit_depth).save(source(), path)

    loaded = SourceImage.open(path)
    assert (loaded.metadata.color_type, loaded.metadata.bit_depth) == (color_type, bit_depth)
    decoded = decode_png(encode(loaded))
    assert (decoded.color_type, decoded.bit_depth) == (int(color_type), bit_depth)


def test_pillow_bilevel_png_reencodes_at_one_bit(tmp_path, decode_png) -> None:
    pil = Image.new("1", (11, 3))
    pil.putpixel((4, 1), 1)
    path = tmp_path / "bilevel.png"
    pil.save(path)
    decoded = decode_png(encode(SourceImage.open(path)))
    assert (decoded.color_type, decoded.bit_depth) == (0, 1)
    assert decoded.samples[:, :, 0].sum() == 1 and decoded.samples[1, 4, 0] == 1


def test_explicit_options_override_source_header(tmp_path, decode_png) -> None:
    path = tmp_path / "gray.png"
    PngEncoder(color_type="grayscale", bit_depth=1).save(gray_pattern(8, 2, 1), path)
    decoded = decode_png(encode(SourceImage.open(path), bit_depth=8))
    assert (decoded.color_type, decoded.bit_depth) == (0, 8)


@pytest.mark.parametrize("pixel_format,key,metadata", [
    (PixelFormat.RGB24, (9, 8, 7), ImageMetadata(transparent_rgb24=(9, 8, 7))),
    (PixelFormat.L8, (60,), ImageMetadata(transparent_l8=60)),
])
def test_declared_key_becomes_transparent_palette_entry(decode_png, pixel_format, key, metadata) -> None:
    if pixel_format is PixelFormat.RGB24:
        pixels = rgba_pattern(6, 4, alpha=False).pixels.copy()
    else:
        pixels = gray_pattern(6, 4).pixels.copy()
    pixels[1, 2:4] = key
    keyed = (pixels == np.array(key, dtype=np.uint8)).all(axis=2)
    image = SourceImage(pixels, pixel_format, metadata)

    decoded = decode_png(encode(image, color_type="palette"))
    assert b"tRNS" in decoded.chunk_types
    rgba = to_rgba16(decoded)
    np.testing.assert_array_equal(rgba[:, :, 3] == 0, keyed)
    np.testing.assert_array_equal(rgba[:, :, :3], image.rgba16()[:, :, :3])
