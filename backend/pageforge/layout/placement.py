"""
PageForge — Image placement calculator.

Positions one image inside a page's content area according to a fit mode.
Pure function of its inputs; the result is in millimetres relative to the
page's top-left corner.

  fit       scale uniformly to lie fully inside the content area
  fill      scale uniformly to cover the content area (edges may crop)
  original  96-DPI physical size, scaled down only if it does not fit
"""

from __future__ import annotations

from dataclasses import dataclass

from pageforge.layout.geometry import available_area, pixels_to_mm
from pageforge.models.image import FitMode


@dataclass(frozen=True)
class Placement:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height


def place_image(
    img_width_px: float,
    img_height_px: float,
    page_width_mm: float,
    page_height_mm: float,
    margin_mm: float,
    fit_mode: FitMode | str,
) -> Placement:
    avail_w, avail_h = available_area(page_width_mm, page_height_mm, margin_mm)

    img_aspect = img_width_px / img_height_px
    area_aspect = avail_w / avail_h

    try:
        mode = FitMode(fit_mode)
    except ValueError:
        mode = None

    if mode is FitMode.FIT:
        # Equal aspect ratios are height-bound.
        if img_aspect > area_aspect:
            width = avail_w
            height = width / img_aspect
        else:
            height = avail_h
            width = height * img_aspect

    elif mode is FitMode.FILL:
        if img_aspect > area_aspect:
            height = avail_h
            width = height * img_aspect
        else:
            width = avail_w
            height = width / img_aspect

    elif mode is FitMode.ORIGINAL:
        width = pixels_to_mm(img_width_px)
        height = pixels_to_mm(img_height_px)
        if width > avail_w or height > avail_h:
            scale = min(avail_w / width, avail_h / height)
            width *= scale
            height *= scale

    else:
        return Placement(x=margin_mm, y=margin_mm, width=avail_w, height=avail_h)

    return Placement(
        x=margin_mm + (avail_w - width) / 2,
        y=margin_mm + (avail_h - height) / 2,
        width=width,
        height=height,
    )
