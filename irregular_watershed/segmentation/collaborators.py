"""Image primitives consumed by the seam-correction core.

The correction logic in :mod:`shrink_mask` and :mod:`seams` only talks to these
functions through their call signatures, so each one can be swapped for an
alternative implementation (or a stub in tests) without touching the core.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import scipy.ndimage as ndi
from skimage.measure import label, perimeter, regionprops
from skimage.morphology import convex_hull_image, reconstruction
from skimage.segmentation import flood, relabel_sequential, watershed

LOGGER = logging.getLogger(__name__)

Point = Tuple[int, int]


def skimage_connectivity(connectivity: int) -> int:
    """Translate pixel-neighbourhood connectivity (4/8) to scikit-image's rank form."""
    if connectivity == 4:
        return 1
    if connectivity == 8:
        return 2
    raise ValueError(f"connectivity must be 4 or 8, got {connectivity}")


def connectivity_structure(connectivity: int) -> np.ndarray:
    """Structuring element matching ``connectivity`` for :mod:`scipy.ndimage` calls."""
    return ndi.generate_binary_structure(2, skimage_connectivity(connectivity))


@dataclass(frozen=True, slots=True)
class Component:
    """A connected foreground region cropped to its bounding box."""

    label: int
    start: Point  # first pixel in raster order
    area: int
    bbox: Tuple[int, int, int, int]  # (min_row, min_col, max_row, max_col)
    image: np.ndarray

    @property
    def filled_image(self) -> np.ndarray:
        """Region enclosed by the outer contour, interior holes included."""
        return ndi.binary_fill_holes(self.image)

    def paint(self, canvas: np.ndarray, value: bool = True) -> None:
        """Write this component into ``canvas`` in place."""
        r0, c0, r1, c1 = self.bbox
        canvas[r0:r1, c0:c1][self.image] = value


def connected_components(mask: np.ndarray, connectivity: int = 8) -> list[Component]:
    """Enumerate the connected components of ``mask`` in raster order of their start pixel."""
    labels = label(np.asarray(mask, dtype=bool), connectivity=skimage_connectivity(connectivity))
    components = []
    for prop in regionprops(labels):
        # regionprops coords are row-major, so the first entry is the raster start
        start = tuple(int(v) for v in prop.coords[0])
        components.append(
            Component(
                label=int(prop.label),
                start=start,
                area=int(prop.area),
                bbox=tuple(int(v) for v in prop.bbox),
                image=np.asarray(prop.image, dtype=bool),
            )
        )
    components.sort(key=lambda comp: comp.start)
    return components


def convexity(component: Component, measure: str = "solidity") -> float:
    """Return how closely ``component`` matches its convex hull, in ``(0, 1]``.

    ``"solidity"`` is the area ratio against the hull; ``"perimeter"`` is the
    hull perimeter divided by the contour perimeter.
    """
    image = np.pad(component.image, 1)
    hull = convex_hull_image(image)

    if measure == "solidity":
        hull_area = np.count_nonzero(hull)
        if hull_area == 0:
            return 1.0
        ratio = np.count_nonzero(image) / hull_area
    elif measure == "perimeter":
        contour_length = perimeter(image)
        if contour_length <= 0:
            return 1.0
        ratio = perimeter(hull) / contour_length
    else:
        raise ValueError(f"Unknown convexity measure {measure!r}")

    return float(np.clip(ratio, np.finfo(float).eps, 1.0))


def maxima_markers(distance: np.ndarray, mask: np.ndarray, tolerance: float = 0.5) -> np.ndarray:
    """Label one marker per maximum of ``distance`` that stands at least ``tolerance`` above its surroundings.

    Maxima that are connected above ``peak - tolerance`` share a marker, so
    equal-height plateau pixels and shallow secondary peaks do not start extra
    basins.
    """
    eps = 1e-6
    floor = reconstruction(distance - tolerance, distance, method="dilation")
    residue = distance - floor
    caps = label((residue > eps) & mask, connectivity=2)
    n_caps = int(caps.max())
    if n_caps == 0:
        return caps

    heights = np.asarray(ndi.maximum(residue, labels=caps, index=np.arange(1, n_caps + 1)))
    keep = np.flatnonzero(heights >= tolerance - eps) + 1
    markers, _, _ = relabel_sequential(np.where(np.isin(caps, keep), caps, 0))
    return markers


def compute_watershed(mask: np.ndarray, connectivity: int = 8, tolerance: float = 0.5) -> np.ndarray:
    """Split touching objects with a Euclidean-distance watershed.

    Basins grow from :func:`maxima_markers` of the distance map; the returned
    mask has one-pixel background lines between the basins.
    """
    mask = np.asarray(mask, dtype=bool)
    if not mask.any():
        return mask.copy()

    distance = ndi.distance_transform_edt(mask)
    markers = maxima_markers(distance, mask, tolerance=tolerance)

    basins = watershed(
        -distance,
        markers=markers,
        mask=mask,
        connectivity=skimage_connectivity(connectivity),
        watershed_line=True,
    )
    LOGGER.debug("[compute_watershed] %d basins", int(basins.max()))
    return basins > 0


def flood_fill(mask: np.ndarray, seed: Point, connectivity: int = 8) -> np.ndarray:
    """Return the foreground region of ``mask`` reachable from ``seed``."""
    mask = np.asarray(mask, dtype=bool)
    region = np.zeros(mask.shape, dtype=bool)
    row, col = seed
    if not (0 <= row < mask.shape[0] and 0 <= col < mask.shape[1]) or not mask[row, col]:
        return region
    region[:] = flood(mask.astype(np.uint8), (row, col), connectivity=skimage_connectivity(connectivity))
    return region


__all__ = [
    "Point",
    "Component",
    "skimage_connectivity",
    "connectivity_structure",
    "connected_components",
    "convexity",
    "maxima_markers",
    "compute_watershed",
    "flood_fill",
]
