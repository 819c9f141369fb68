"""Per-slice and per-stack watershed correction for irregular features."""
from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from functools import partial
from typing import Callable, Literal

import numpy as np
import pandas as pd
from skimage.measure import label
from tqdm import tqdm
from tqdm.contrib.concurrent import process_map

from irregular_watershed.segmentation.collaborators import (
    Point,
    compute_watershed,
    skimage_connectivity,
)
from irregular_watershed.segmentation.config import InvalidParameterError, IrregularWatershedConfig
from irregular_watershed.segmentation.masks import (
    InvalidMaskError,
    count_changed,
    from_binary,
    to_binary,
    validate_binary,
)
from irregular_watershed.segmentation.seams import classify_seams, heal
from irregular_watershed.segmentation.shrink_mask import build_shrink_mask

LOGGER = logging.getLogger(__name__)

WatershedFn = Callable[[np.ndarray], np.ndarray]
ON_ERROR_MODES = ("raise", "skip")
REPORT_COLUMNS = (
    "slice",
    "status",
    "n_separator_pixels",
    "n_seams",
    "n_artifact_seams",
    "n_healed_pixels",
    "elapsed_s",
)


class SliceCorrectionError(RuntimeError):
    """A collaborator failed while correcting one slice; no partial result exists."""


@dataclass(slots=True)
class SliceReport:
    """Counts describing what a correction pass did to one slice."""

    n_separator_pixels: int = 0
    n_seams: int = 0
    n_artifact_seams: int = 0
    n_healed_pixels: int = 0


@dataclass(slots=True)
class CorrectionResult:
    """Corrected image (caller's encoding) plus the intermediate boolean masks."""

    image: np.ndarray
    original: np.ndarray
    watershed_split: np.ndarray
    shrink_mask: np.ndarray
    separator_mask: np.ndarray
    seeds: list[Point]
    healed: np.ndarray
    report: SliceReport = field(default_factory=SliceReport)


def correct_watershed(
    image: np.ndarray,
    config: IrregularWatershedConfig | None = None,
    *,
    watershed_fn: WatershedFn | None = None,
    components_fn=None,
    convexity_fn=None,
    flood_fill_fn=None,
) -> CorrectionResult:
    """Watershed-split ``image`` and heal the cuts caused by boundary indentations.

    Parameters
    ----------
    image:
        2-D two-valued mask encoded with ``config.polarity`` (boolean arrays are
        accepted as-is).
    config:
        Correction parameters; validated before anything else runs.
    watershed_fn, components_fn, convexity_fn, flood_fill_fn:
        Optional replacements for the primitives in
        :mod:`irregular_watershed.segmentation.collaborators`.

    Returns
    -------
    CorrectionResult
        ``result.image`` has the input's shape, dtype and value encoding.

    Raises
    ------
    InvalidParameterError, InvalidMaskError
        Rejected input; raised before the core runs.
    SliceCorrectionError
        A collaborator failed; the original exception is chained.
    """
    config = (config or IrregularWatershedConfig()).validate()
    image = np.asarray(image)
    validate_binary(image, config.polarity)

    original = to_binary(image, config.polarity)
    connectivity = config.connectivity
    if watershed_fn is None:
        watershed_fn = partial(
            compute_watershed, connectivity=connectivity, tolerance=config.watershed_tolerance
        )

    try:
        shrink = build_shrink_mask(
            original,
            config.strategy,
            connectivity=connectivity,
            convexity_fn=convexity_fn,
            convexity_measure=config.convexity_measure,
        )
        split = np.asarray(watershed_fn(original), dtype=bool)
        if split.shape != original.shape:
            raise ValueError(f"watershed returned shape {split.shape}, expected {original.shape}")

        separators, seeds = classify_seams(
            original, split, shrink, connectivity=connectivity, components_fn=components_fn
        )
        healed = heal(split, separators, seeds, connectivity=connectivity, flood_fill_fn=flood_fill_fn)
    except (InvalidParameterError, InvalidMaskError):
        raise
    except Exception as exc:
        raise SliceCorrectionError(f"Watershed correction failed: {exc}") from exc

    report = SliceReport(
        n_separator_pixels=int(separators.sum()),
        n_seams=int(label(separators, connectivity=skimage_connectivity(connectivity)).max()),
        n_artifact_seams=len(seeds),
        n_healed_pixels=count_changed(split, healed),
    )
    return CorrectionResult(
        image=from_binary(healed, config.polarity, dtype=image.dtype),
        original=original,
        watershed_split=split,
        shrink_mask=shrink,
        separator_mask=separators,
        seeds=seeds,
        healed=healed,
        report=report,
    )


@dataclass(slots=True)
class StackCorrection:
    """Corrected stack and a per-slice report table."""

    mask: np.ndarray
    report: pd.DataFrame
    cancelled: bool = False


def _correct_slice(
    index: int,
    plane: np.ndarray,
    config: IrregularWatershedConfig,
    on_error: str = "raise",
    watershed_fn: WatershedFn | None = None,
) -> tuple[int, np.ndarray, dict]:
    """Correct one plane; returns ``(index, image, report_row)``."""
    start = time.perf_counter()
    try:
        result = correct_watershed(plane, config, watershed_fn=watershed_fn)
    except SliceCorrectionError as exc:
        if on_error == "raise":
            raise
        LOGGER.warning("[correct_stack] slice %d failed, leaving it uncorrected: %s", index, exc)
        row = {"slice": index, "status": "failed", **asdict(SliceReport())}
        row["elapsed_s"] = time.perf_counter() - start
        return index, plane, row

    status = "corrected" if result.report.n_healed_pixels > 0 else "unchanged"
    row = {"slice": index, "status": status, **asdict(result.report)}
    row["elapsed_s"] = time.perf_counter() - start
    return index, result.image, row


def correct_stack(
    stack: np.ndarray,
    config: IrregularWatershedConfig | None = None,
    *,
    par_flag: bool = False,
    n_workers: int | None = None,
    should_cancel: Callable[[], bool] | None = None,
    on_error: Literal["raise", "skip"] = "raise",
    watershed_fn: WatershedFn | None = None,
) -> StackCorrection:
    """Correct every slice of a ``(Z, Y, X)`` stack independently.

    A 2-D array is treated as a single slice and returned 2-D. In serial mode
    ``should_cancel`` is polled between slices; once it returns ``True`` the
    remaining slices keep their input data and are reported as ``cancelled``.
    In parallel mode it is polled once before dispatch.
    """
    config = (config or IrregularWatershedConfig()).validate()
    if on_error not in ON_ERROR_MODES:
        raise InvalidParameterError(f"on_error must be one of {ON_ERROR_MODES}, got {on_error!r}")

    stack = np.asarray(stack)
    squeeze = stack.ndim == 2
    if squeeze:
        stack = stack[np.newaxis]
    if stack.ndim != 3:
        raise InvalidMaskError(f"Expected a 2-D mask or a (Z, Y, X) stack, got shape {stack.shape}")
    for plane in stack:
        validate_binary(plane, config.polarity)

    n_slices = stack.shape[0]
    out = stack.copy()
    rows: list[dict] = []
    cancelled = False

    LOGGER.info(
        "[correct_stack] START | slices: %d | strategy: %s | connectivity: %d",
        n_slices,
        config.strategy,
        config.connectivity,
    )

    slice_call = partial(_correct_slice, config=config, on_error=on_error, watershed_fn=watershed_fn)
    if par_flag and n_slices > 1 and not (should_cancel is not None and should_cancel()):
        results = process_map(
            slice_call,
            range(n_slices),
            list(stack),
            max_workers=n_workers,
            chunksize=1,
            desc="Correcting watershed slices",
        )
        for index, plane, row in results:
            out[index] = plane
            rows.append(row)
    else:
        for index in tqdm(range(n_slices), "Correcting watershed slices..."):
            if should_cancel is not None and should_cancel():
                cancelled = True
                break
            _, plane, row = slice_call(index, stack[index])
            out[index] = plane
            rows.append(row)

    done = {row["slice"] for row in rows}
    for index in range(n_slices):
        if index not in done:
            cancelled = True
            rows.append({"slice": index, "status": "cancelled", **asdict(SliceReport()), "elapsed_s": 0.0})

    report = pd.DataFrame(rows, columns=list(REPORT_COLUMNS)).sort_values("slice").reset_index(drop=True)
    LOGGER.info(
        "[correct_stack] END | healed pixels: %d | failed: %d | cancelled: %s",
        int(report["n_healed_pixels"].sum()),
        int((report["status"] == "failed").sum()),
        cancelled,
    )
    return StackCorrection(mask=out[0] if squeeze else out, report=report, cancelled=cancelled)


__all__ = [
    "SliceCorrectionError",
    "SliceReport",
    "CorrectionResult",
    "StackCorrection",
    "correct_watershed",
    "correct_stack",
]
