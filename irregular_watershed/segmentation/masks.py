"""Binary-mask normalisation helpers.

External images may encode foreground as either the high or the low value
(ImageJ-style inverted lookup tables are common). Everything inside the
correction pipeline works on boolean arrays with ``True`` as foreground;
these helpers convert once at entry and restore the caller's encoding on exit.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np


class InvalidMaskError(ValueError):
    """Raised when an input image is not a 2-D two-valued mask."""


@dataclass(frozen=True, slots=True)
class MaskPolarity:
    """Pixel values used for foreground and background in an external image."""

    foreground_value: int | float = 255
    background_value: int | float = 0

    def inverted(self) -> "MaskPolarity":
        return MaskPolarity(foreground_value=self.background_value, background_value=self.foreground_value)


def _boolean_polarity(polarity: MaskPolarity) -> bool:
    return {polarity.foreground_value, polarity.background_value} == {0, 1}


def validate_binary(image: np.ndarray, polarity: MaskPolarity) -> None:
    """Raise :class:`InvalidMaskError` unless ``image`` is a 2-D two-valued mask."""
    image = np.asarray(image)
    if image.ndim != 2:
        raise InvalidMaskError(f"Expected a 2-D mask, got shape {image.shape}")
    if image.dtype == bool:
        return
    values = np.unique(image)
    unexpected = values[~np.isin(values, [polarity.foreground_value, polarity.background_value])]
    if unexpected.size:
        raise InvalidMaskError(
            f"Mask contains values {unexpected[:5].tolist()} outside "
            f"foreground={polarity.foreground_value!r} / background={polarity.background_value!r}"
        )


def to_binary(image: np.ndarray, polarity: MaskPolarity) -> np.ndarray:
    """Return a boolean copy of ``image`` with ``True`` marking foreground.

    Boolean inputs follow ``polarity`` when it is itself boolean (``True``/``False``
    or ``1``/``0``); under any other polarity ``True`` marks foreground.
    """
    image = np.asarray(image)
    if image.dtype == bool and not _boolean_polarity(polarity):
        return image.copy()
    return image == polarity.foreground_value


def from_binary(mask: np.ndarray, polarity: MaskPolarity, dtype=np.uint8) -> np.ndarray:
    """Encode a boolean mask back into ``polarity``'s pixel values."""
    if np.dtype(dtype) == bool:
        if _boolean_polarity(polarity) and not polarity.foreground_value:
            return ~np.asarray(mask, dtype=bool)
        return mask.astype(bool, copy=True)
    out = np.full(mask.shape, polarity.background_value, dtype=dtype)
    out[mask] = polarity.foreground_value
    return out


def count_changed(before: np.ndarray, after: np.ndarray) -> int:
    """Number of pixels that differ between two masks of the same shape."""
    return int(np.count_nonzero(np.asarray(before) != np.asarray(after)))


__all__ = [
    "InvalidMaskError",
    "MaskPolarity",
    "validate_binary",
    "to_binary",
    "from_binary",
    "count_changed",
]
