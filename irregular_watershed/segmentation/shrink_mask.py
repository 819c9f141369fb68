"""Robust-core ("shrink") masks used to tell genuine necks from indentation cuts.

Material that survives shrinking is bulk; thin necks between objects vanish
early. Two strategies are available:

* :class:`~irregular_watershed.segmentation.config.FixedIterations` erodes the
  whole mask a fixed number of times.
* :class:`~irregular_watershed.segmentation.config.ConvexityDriven` erodes each
  component only until it is convex enough, then freezes the outline it had at
  that moment. Objects of different size but similar shape are therefore
  shrunk by a similar proportion rather than a fixed pixel count.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable, Tuple

import numpy as np
import scipy.ndimage as ndi

from irregular_watershed.segmentation.collaborators import (
    Component,
    connected_components,
    connectivity_structure,
    convexity,
)
from irregular_watershed.segmentation.config import ConvexityDriven, FixedIterations, ShrinkStrategy

LOGGER = logging.getLogger(__name__)

ConvexityFn = Callable[[Component], float]


@dataclass(frozen=True, slots=True)
class FrozenComponent:
    """Outline of a component captured at the iteration it became convex enough."""

    index: int
    iteration: int
    convexity: float
    area: int
    bbox: Tuple[int, int, int, int]
    image: np.ndarray  # filled outline, cropped to ``bbox``


def erode_mask(mask: np.ndarray, cycles: int = 1, connectivity: int = 8) -> np.ndarray:
    """Remove ``cycles`` layers of foreground pixels adjacent to background.

    Pixels outside the image count as background.
    """
    mask = np.asarray(mask, dtype=bool)
    if cycles < 1 or not mask.any():
        return mask.copy()
    return ndi.binary_erosion(
        mask,
        structure=connectivity_structure(connectivity),
        iterations=int(cycles),
        border_value=0,
    )


def trace_convexity_shrink(
    original: np.ndarray,
    threshold: float,
    connectivity: int = 8,
    convexity_fn: ConvexityFn | None = None,
) -> list[FrozenComponent]:
    """Run the freeze-or-shrink loop and return the frozen outlines in freeze order.

    Each iteration labels the working mask, freezes every component (of at
    least two pixels) whose convexity exceeds ``threshold`` and removes it, then
    erodes what is left by one layer. The loop ends when nothing is left.
    """
    if convexity_fn is None:
        convexity_fn = convexity

    working = np.array(original, dtype=bool, copy=True)
    frozen: list[FrozenComponent] = []

    # erosion empties any mask well within this many iterations
    max_iter = max(working.shape, default=0) + 1
    for iteration in range(max_iter):
        if not working.any():
            break
        for comp in connected_components(working, connectivity=connectivity):
            if comp.area < 2:
                continue
            value = float(convexity_fn(comp))
            if value > threshold:
                frozen.append(
                    FrozenComponent(
                        index=len(frozen),
                        iteration=iteration,
                        convexity=value,
                        area=comp.area,
                        bbox=comp.bbox,
                        image=comp.filled_image,
                    )
                )
                comp.paint(working, value=False)
        working = erode_mask(working, 1, connectivity=connectivity)

    LOGGER.debug(
        "[trace_convexity_shrink] froze %d components, threshold %.3f", len(frozen), threshold
    )
    return frozen


def render_frozen(frozen: list[FrozenComponent], shape: Tuple[int, int]) -> np.ndarray:
    """Union of the frozen outlines as a full-size mask."""
    canvas = np.zeros(shape, dtype=bool)
    for comp in frozen:
        r0, c0, r1, c1 = comp.bbox
        canvas[r0:r1, c0:c1] |= comp.image
    return canvas


def build_shrink_mask(
    original: np.ndarray,
    strategy: ShrinkStrategy,
    *,
    connectivity: int = 8,
    convexity_fn: ConvexityFn | None = None,
    convexity_measure: str = "solidity",
) -> np.ndarray:
    """Build the read-only robust-core mask of ``original`` for ``strategy``."""
    original = np.asarray(original, dtype=bool)

    if isinstance(strategy, FixedIterations):
        shrink = erode_mask(original, strategy.cycles, connectivity=connectivity)
    elif isinstance(strategy, ConvexityDriven):
        if convexity_fn is None:
            convexity_fn = partial(convexity, measure=convexity_measure)
        frozen = trace_convexity_shrink(
            original, strategy.threshold, connectivity=connectivity, convexity_fn=convexity_fn
        )
        shrink = render_frozen(frozen, original.shape)
    else:
        raise TypeError(f"Unsupported shrink strategy {strategy!r}")

    shrink.setflags(write=False)
    return shrink


__all__ = [
    "FrozenComponent",
    "erode_mask",
    "trace_convexity_shrink",
    "render_frozen",
    "build_shrink_mask",
]
