"""High-level correction orchestration for mask files on disk."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

import pandas as pd

from irregular_watershed.data_io.mask_io import load_mask_stack, save_mask_stack
from irregular_watershed.segmentation.config import IrregularWatershedConfig
from irregular_watershed.segmentation.pipeline import correct_stack

LOGGER = logging.getLogger(__name__)


def report_path_for(output_path: Path | str) -> Path:
    """CSV report written alongside ``output_path``."""
    output_path = Path(output_path)
    return output_path.parent / f"{output_path.stem}_report.csv"


def correct_mask_file(
    input_path: Path | str,
    output_path: Path | str,
    config: IrregularWatershedConfig | None = None,
    *,
    par_flag: bool = False,
    n_workers: int | None = None,
    on_error: Literal["raise", "skip"] = "raise",
    overwrite: bool = False,
) -> pd.DataFrame:
    """Correct a stored mask (or stack) and write the result plus a per-slice report."""
    config = (config or IrregularWatershedConfig()).validate()
    input_path = Path(input_path)
    output_path = Path(output_path)

    if output_path.exists() and not overwrite:
        raise FileExistsError(f"{output_path} already exists; pass overwrite=True to replace it")

    stack, attrs = load_mask_stack(input_path)
    LOGGER.info("[correct_mask_file] Loaded %s with shape %s from %s", stack.dtype, stack.shape, input_path)

    result = correct_stack(stack, config, par_flag=par_flag, n_workers=n_workers, on_error=on_error)

    attrs = dict(attrs)
    attrs["irregular_watershed"] = config.as_attrs()
    attrs["source"] = input_path.as_posix()
    save_mask_stack(output_path, result.mask, attrs=attrs, overwrite=overwrite)

    report = result.report
    report.to_csv(report_path_for(output_path), index=False)
    return report


__all__ = ["report_path_for", "correct_mask_file"]
