"""Seam classification and healing.

A watershed separator that cuts through the robust core of an object follows a
boundary indentation rather than a genuine neck. Such seams are recovered in
full from the separator mask and painted back as foreground.
"""
from __future__ import annotations

import logging
from typing import Callable, Sequence

import numpy as np

from irregular_watershed.segmentation.collaborators import (
    Component,
    Point,
    connected_components,
    flood_fill,
)

LOGGER = logging.getLogger(__name__)

ComponentsFn = Callable[..., Sequence[Component]]
FloodFillFn = Callable[..., np.ndarray]


def extract_separators(original: np.ndarray, watershed_split: np.ndarray) -> np.ndarray:
    """Pixels where exactly one of the two masks is foreground."""
    return np.logical_xor(np.asarray(original, dtype=bool), np.asarray(watershed_split, dtype=bool))


def classify_seams(
    original: np.ndarray,
    watershed_split: np.ndarray,
    shrink_mask: np.ndarray,
    *,
    connectivity: int = 8,
    components_fn: ComponentsFn | None = None,
) -> tuple[np.ndarray, list[Point]]:
    """Return the separator mask and one seed per artifact seam fragment.

    Seeds are the start pixels of the components of ``separators & shrink_mask``
    and therefore always lie on a separator.
    """
    if components_fn is None:
        components_fn = connected_components

    separators = extract_separators(original, watershed_split)
    artifacts = separators & np.asarray(shrink_mask, dtype=bool)
    seeds = [tuple(int(v) for v in comp.start) for comp in components_fn(artifacts, connectivity=connectivity)]

    LOGGER.debug(
        "[classify_seams] %d separator pixels, %d overlapping the core, %d seeds",
        int(separators.sum()),
        int(artifacts.sum()),
        len(seeds),
    )
    return separators, seeds


def _seed_on_mask(mask: np.ndarray, seed: Point) -> bool:
    row, col = seed
    return 0 <= row < mask.shape[0] and 0 <= col < mask.shape[1] and bool(mask[row, col])


def reconstruct_seams(
    separator_mask: np.ndarray,
    seeds: Sequence[Point],
    *,
    connectivity: int = 8,
    flood_fill_fn: FloodFillFn | None = None,
) -> list[np.ndarray]:
    """Flood-fill each seed within ``separator_mask``; one full-size region per seed.

    Seeds off the separator yield an empty region.
    """
    if flood_fill_fn is None:
        flood_fill_fn = flood_fill

    separator_mask = np.asarray(separator_mask, dtype=bool)
    regions = []
    for seed in seeds:
        if not _seed_on_mask(separator_mask, seed):
            LOGGER.debug("[reconstruct_seams] seed %s is not on a separator, skipping", seed)
            regions.append(np.zeros(separator_mask.shape, dtype=bool))
            continue
        region = np.asarray(flood_fill_fn(separator_mask, seed, connectivity=connectivity), dtype=bool)
        # the fill must never leave the separator set
        regions.append(region & separator_mask)
    return regions


def heal(
    watershed_split: np.ndarray,
    separator_mask: np.ndarray,
    seeds: Sequence[Point],
    *,
    connectivity: int = 8,
    flood_fill_fn: FloodFillFn | None = None,
) -> np.ndarray:
    """Paint every seeded seam back into a copy of ``watershed_split`` as foreground.

    Regions of fewer than two pixels are left alone. Seams without a seed are
    genuine separations and stay in the output.
    """
    healed = np.array(watershed_split, dtype=bool, copy=True)
    regions = reconstruct_seams(
        separator_mask, seeds, connectivity=connectivity, flood_fill_fn=flood_fill_fn
    )
    for seed, region in zip(seeds, regions):
        n_pixels = int(region.sum())
        if n_pixels < 2:
            LOGGER.debug("[heal] seam at %s has %d pixel(s), nothing to heal", seed, n_pixels)
            continue
        healed[region] = True
    return healed


__all__ = ["extract_separators", "classify_seams", "reconstruct_seams", "heal"]
