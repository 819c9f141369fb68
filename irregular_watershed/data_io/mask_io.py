"""Read and write binary mask stacks as Zarr stores or TIFF files."""
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any, Dict, Tuple

import numpy as np
import skimage.io as io
import zarr

LOGGER = logging.getLogger(__name__)

ZARR_SUFFIXES: tuple[str, ...] = (".zarr",)
IMAGE_SUFFIXES: tuple[str, ...] = (".tif", ".tiff", ".png")


def _suffix(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix not in ZARR_SUFFIXES + IMAGE_SUFFIXES:
        raise ValueError(
            f"Unsupported mask format '{path.suffix}' for {path}; "
            f"expected one of {ZARR_SUFFIXES + IMAGE_SUFFIXES}"
        )
    return suffix


def load_mask_stack(path: Path | str) -> Tuple[np.ndarray, Dict[str, Any]]:
    """Load a 2-D mask or ``(Z, Y, X)`` stack together with any stored attributes.

    Zarr groups are resolved to their first array.
    """
    path = Path(path)
    suffix = _suffix(path)
    if not path.exists():
        raise FileNotFoundError(f"No mask found at {path}")

    if suffix in ZARR_SUFFIXES:
        store = zarr.open(path.as_posix(), mode="r")
        if isinstance(store, zarr.Group):
            keys = sorted(store.array_keys())
            if not keys:
                raise ValueError(f"Zarr group at {path} contains no arrays")
            LOGGER.info("[load_mask_stack] Using array '%s' from group %s", keys[0], path)
            store = store[keys[0]]
        return np.asarray(store[:]), dict(store.attrs)

    return np.asarray(io.imread(path.as_posix())), {}


def save_mask_stack(
    path: Path | str,
    array: np.ndarray,
    attrs: Dict[str, Any] | None = None,
    overwrite: bool = False,
) -> Path:
    """Write ``array`` to ``path``; attributes are only kept for Zarr output.

    Boolean arrays are written as ``uint8`` 0/255 to image files. PNG output
    takes a single plane; a one-plane stack is written as that plane.
    """
    path = Path(path)
    suffix = _suffix(path)
    array = np.asarray(array)
    if suffix == ".png" and array.ndim == 3:
        if array.shape[0] != 1:
            raise ValueError(
                f"PNG holds a single plane; cannot write a stack of shape {array.shape} to {path}"
            )
        array = array[0]

    if path.exists():
        if not overwrite:
            raise FileExistsError(f"{path} already exists; pass overwrite=True to replace it")
        if path.is_dir():
            shutil.rmtree(path)
        else:
            path.unlink()
    path.parent.mkdir(parents=True, exist_ok=True)

    if suffix in ZARR_SUFFIXES:
        chunks = (1,) + array.shape[1:] if array.ndim == 3 else array.shape
        store = zarr.open(
            path.as_posix(),
            mode="w",
            shape=array.shape,
            dtype=array.dtype,
            chunks=chunks,
        )
        store[:] = array
        if attrs:
            store.attrs.update(attrs)
    else:
        if array.dtype == bool:
            array = array.astype(np.uint8) * 255
        io.imsave(path.as_posix(), array, check_contrast=False)

    LOGGER.info("[save_mask_stack] Wrote %s array %s to %s", array.dtype, array.shape, path)
    return path


__all__ = ["ZARR_SUFFIXES", "IMAGE_SUFFIXES", "load_mask_stack", "save_mask_stack"]
