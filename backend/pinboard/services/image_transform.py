"""
Pinboard Backend — Image Transform Planning
=============================================

What:  Turns the client's canvas/text choices into an ImageKit
       pre-transformation string for an uploaded image.
Why:   The client composes a pin on a 375px-wide canvas, optionally with a
       different aspect ratio than the photo and with overlay text. The server
       has to replay that composition on the full-resolution image; ImageKit
       does the rendering, we only compute its parameters.
How:   Pure functions, no I/O besides reading the image header with Pillow.

Example:
    A 1200x800 landscape photo posted as "original" with a portrait
    orientation and the text "Hi" at (100, 50) on a 500px tall canvas:

        target           1200 x 1800 (aspect 1/1.5)
        crop mode        pad_resize (source is wider than the target)
        text position    lx = round(100 * 1200 / 375) = 320
                         ly = round(50 * 1800 / 500)  = 180
        directive        w-1200,h-1800,cm-pad_resize,bg-ffffff,
                         l-text,ie-SGk%3D,fs-100.8,lx-320,ly-180,co-000000,l-end
"""

import base64
import io
import math
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import quote

from PIL import Image, UnidentifiedImageError

from pinboard.exceptions import ValidationError
from pinboard.schemas.pin import ASPECT_RATIO, CanvasOptions, TextOptions

# Width of the client-side editing canvas, in client pixels
CLIENT_CANVAS_WIDTH = 375

# Client font sizes are specified for the small canvas; ImageKit renders on
# the full image
FONT_SIZE_SCALE = 2.1

PAD_RESIZE = "pad_resize"


@dataclass(frozen=True)
class ImageDimensions:
    width: int
    height: int

    @property
    def orientation(self) -> str:
        return "portrait" if self.width < self.height else "landscape"

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


@dataclass(frozen=True)
class TransformPlan:
    width: int
    height: int
    cropping_strategy: Optional[str]
    text_left: Optional[int]
    text_top: Optional[int]
    transformation: str


def read_image_dimensions(content: bytes) -> ImageDimensions:
    """
    Read the intrinsic size from the image header.

    Pillow opens lazily, so only the header is parsed here; the pixels are
    never decoded.
    """
    try:
        with Image.open(io.BytesIO(content)) as img:
            width, height = img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise ValidationError(
            message="The uploaded file is not a readable image.",
            field="media",
            context={"error_type": type(e).__name__},
        )
    if width <= 0 or height <= 0:
        raise ValidationError(message="The uploaded image has no pixels.", field="media")
    return ImageDimensions(width=width, height=height)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _format_number(value: float) -> str:
    """Render 42.0 as "42" and 50.400000000000006 as "50.4"."""
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _strip_hash(color: str) -> str:
    return color[1:] if color.startswith("#") else color


def parse_aspect_ratio(size: str) -> Optional[float]:
    """Return W/H for a "W:H" size, or None for "original"."""
    if size == "original":
        return None
    match = ASPECT_RATIO.match(size)
    if not match:
        raise ValidationError(message=f"Invalid canvas size '{size}'", field="canvasOptions")
    return float(match.group(1)) / float(match.group(2))


def resolve_client_aspect_ratio(dims: ImageDimensions, canvas: CanvasOptions) -> float:
    """
    Aspect ratio (width / height) the final image should have.

    "original" keeps the photo's ratio when the requested orientation matches
    it, and flips it (1 / ratio) when the client rotated the canvas.
    """
    explicit = parse_aspect_ratio(canvas.size)
    if explicit is not None:
        return explicit
    if canvas.orientation == dims.orientation:
        return dims.aspect_ratio
    return 1 / dims.aspect_ratio


def choose_cropping_strategy(
    dims: ImageDimensions,
    canvas: CanvasOptions,
    client_aspect_ratio: float,
) -> Optional[str]:
    """
    Pad-resize so the whole photo stays visible with background bars, when:

    - an explicit "W:H" ratio is narrower than the source, or
    - the size is "original" and a landscape (or square) source goes onto a
      portrait canvas.

    Anything else is a plain resize.
    """
    if canvas.size == "original":
        if dims.orientation == "landscape" and canvas.orientation == "portrait":
            return PAD_RESIZE
        return None
    if dims.aspect_ratio > client_aspect_ratio and not math.isclose(
        dims.aspect_ratio, client_aspect_ratio
    ):
        return PAD_RESIZE
    return None


def encode_overlay_text(text: str) -> str:
    # ImageKit's "ie" parameter takes base64 text; URL-encoded so that "+",
    # "/" and "=" survive inside the transformation string
    return quote(base64.b64encode(text.encode("utf-8")).decode("ascii"), safe="")


def build_transform_plan(
    dims: ImageDimensions,
    canvas: CanvasOptions,
    text: TextOptions,
) -> TransformPlan:
    client_ratio = resolve_client_aspect_ratio(dims, canvas)

    width = dims.width
    height = max(1, _round_half_up(dims.width / client_ratio))
    cropping_strategy = choose_cropping_strategy(dims, canvas, client_ratio)

    parts = [f"w-{width}", f"h-{height}"]
    if cropping_strategy:
        parts.append(f"cm-{cropping_strategy}")
    parts.append(f"bg-{_strip_hash(canvas.background_color)}")

    text_left: Optional[int] = None
    text_top: Optional[int] = None
    if text.text:
        text_left = _round_half_up(text.left * width / CLIENT_CANVAS_WIDTH)
        text_top = _round_half_up(text.top * height / canvas.height)
        parts.extend([
            "l-text",
            f"ie-{encode_overlay_text(text.text)}",
            f"fs-{_format_number(text.font_size * FONT_SIZE_SCALE)}",
            f"lx-{text_left}",
            f"ly-{text_top}",
            f"co-{_strip_hash(text.color)}",
            "l-end",
        ])

    return TransformPlan(
        width=width,
        height=height,
        cropping_strategy=cropping_strategy,
        text_left=text_left,
        text_top=text_top,
        transformation=",".join(parts),
    )


def plan_for_upload(
    content: bytes,
    canvas: CanvasOptions,
    text: TextOptions,
) -> Tuple[ImageDimensions, TransformPlan]:
    dims = read_image_dimensions(content)
    return dims, build_transform_plan(dims, canvas, text)
