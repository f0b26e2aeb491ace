"""
D1 bitmap protocol.

D1-family printers take a vendor init sequence, need a block of zero
padding to wake the controller, then accept a GS v 0 raster image followed
by a feed and a vendor stop command.

Bitmap bits are 1 = white, 0 = black (inverted relative to plain ESC/POS
raster), MSB is the leftmost pixel.
"""

from PIL import Image, ImageDraw

INIT = bytes([0x10, 0xFF, 0xF1, 0x03, 0x10, 0xFF, 0x10, 0x00, 0x01])
STOP = bytes([0x10, 0xFF, 0xF1, 0x45])
RASTER_PREFIX = bytes([0x1D, 0x76, 0x30, 0x00])  # GS v 0, normal mode
FEED = bytes([0x1B, 0x4A, 0x64])  # ESC J 100

WAKE_PADDING_SIZE = 1024

WIDTH_PX = 384
TEST_HEIGHT = 32


def border_pattern(width: int = WIDTH_PX, height: int = TEST_HEIGHT) -> Image.Image:
    """
    Generate the D1 probe pattern: a black frame around a white field.

    Top and bottom bands are two rows tall; left and right bands are one
    byte (8 pixels) wide so they land on whole bitmap bytes.

    Returns:
        PIL Image with 1-bit pattern (mode "1")
    """
    img = Image.new("1", (width, height), color=1)  # White background
    draw = ImageDraw.Draw(img)

    # Top and bottom bands
    draw.rectangle([0, 0, width - 1, 1], fill=0)
    draw.rectangle([0, height - 2, width - 1, height - 1], fill=0)

    # Left and right bands
    draw.rectangle([0, 0, 7, height - 1], fill=0)
    draw.rectangle([width - 8, 0, width - 1, height - 1], fill=0)

    return img


def pack_bitmap(image: Image.Image) -> bytes:
    """Pack a 1-bit image into rows of bytes, 1 = white, MSB first."""
    if image.mode != "1":
        image = image.convert("1")
    # PIL's "1" raw packing sets a bit for every white pixel
    return image.tobytes()


def raster_header(width_bytes: int, height: int) -> bytes:
    """GS v 0 header with little-endian width (bytes) and height (rows)."""
    return RASTER_PREFIX + bytes([
        width_bytes & 0xFF, (width_bytes >> 8) & 0xFF,
        height & 0xFF, (height >> 8) & 0xFF,
    ])


def raster_image(image: Image.Image) -> bytes:
    """Header plus packed bitmap for a 1-bit image."""
    width_bytes = (image.width + 7) // 8
    return raster_header(width_bytes, image.height) + pack_bitmap(image)


def wake_padding() -> bytes:
    return bytes(WAKE_PADDING_SIZE)


def feed_and_stop() -> bytes:
    return FEED + STOP
