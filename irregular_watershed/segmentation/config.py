"""Configuration dataclasses for the irregular-feature watershed correction."""
from __future__ import annotations

import numbers
from dataclasses import dataclass, field
from typing import Union

import numpy as np

from irregular_watershed.segmentation.masks import MaskPolarity

CONNECTIVITIES: tuple[int, ...] = (4, 8)
CONVEXITY_MEASURES: tuple[str, ...] = ("solidity", "perimeter")


class InvalidParameterError(ValueError):
    """Raised when correction parameters are rejected before the core runs."""


@dataclass(frozen=True, slots=True)
class FixedIterations:
    """Shrink the whole mask by ``cycles`` erosion steps."""

    cycles: int = 1


@dataclass(frozen=True, slots=True)
class ConvexityDriven:
    """Shrink each component until its convexity exceeds ``threshold``."""

    threshold: float = 0.9


ShrinkStrategy = Union[FixedIterations, ConvexityDriven]


def strategy_from_parameters(erosion_cycles: int, convexity_threshold: float) -> ShrinkStrategy:
    """Resolve the shrink strategy from the two overloaded user parameters.

    A convexity threshold of exactly ``0`` selects the fixed-iteration
    strategy; any other value selects the convexity-driven one.
    """
    if convexity_threshold == 0:
        return FixedIterations(cycles=int(erosion_cycles))
    return ConvexityDriven(threshold=float(convexity_threshold))


@dataclass(frozen=True, slots=True)
class IrregularWatershedConfig:
    """Parameters controlling one correction pass."""

    erosion_cycles: int = 1
    convexity_threshold: float = 0.0  # 0 selects the fixed-iteration strategy
    connectivity: int = 8
    convexity_measure: str = "solidity"  # "solidity" | "perimeter"
    watershed_tolerance: float = 0.5
    polarity: MaskPolarity = field(default_factory=MaskPolarity)

    @property
    def strategy(self) -> ShrinkStrategy:
        return strategy_from_parameters(self.erosion_cycles, self.convexity_threshold)

    def validate(self) -> "IrregularWatershedConfig":
        """Reject invalid parameters; return ``self`` so calls can be chained."""
        cycles = self.erosion_cycles
        if isinstance(cycles, bool) or not isinstance(cycles, numbers.Integral):
            raise InvalidParameterError(f"erosion_cycles must be an integer, got {cycles!r}")
        if cycles < 1:
            raise InvalidParameterError(f"erosion_cycles must be at least 1, got {cycles}")

        thresh = self.convexity_threshold
        if isinstance(thresh, bool) or not isinstance(thresh, numbers.Real):
            raise InvalidParameterError(f"convexity_threshold must be a number, got {thresh!r}")
        if not 0.0 <= float(thresh) <= 1.0:
            raise InvalidParameterError(f"convexity_threshold must lie in [0, 1], got {thresh}")

        if self.connectivity not in CONNECTIVITIES:
            raise InvalidParameterError(f"connectivity must be one of {CONNECTIVITIES}, got {self.connectivity}")
        if self.convexity_measure not in CONVEXITY_MEASURES:
            raise InvalidParameterError(
                f"convexity_measure must be one of {CONVEXITY_MEASURES}, got {self.convexity_measure!r}"
            )
        if not float(self.watershed_tolerance) > 0:
            raise InvalidParameterError(f"watershed_tolerance must be positive, got {self.watershed_tolerance}")
        if self.polarity.foreground_value == self.polarity.background_value:
            raise InvalidParameterError("foreground and background values must differ")
        return self

    def as_attrs(self) -> dict:
        """Flatten the configuration for storage in Zarr attributes."""
        return {
            "erosion_cycles": int(self.erosion_cycles),
            "convexity_threshold": float(self.convexity_threshold),
            "connectivity": int(self.connectivity),
            "convexity_measure": self.convexity_measure,
            "watershed_tolerance": float(self.watershed_tolerance),
            "foreground_value": np.asarray(self.polarity.foreground_value).item(),
            "background_value": np.asarray(self.polarity.background_value).item(),
        }


__all__ = [
    "CONNECTIVITIES",
    "CONVEXITY_MEASURES",
    "InvalidParameterError",
    "FixedIterations",
    "ConvexityDriven",
    "ShrinkStrategy",
    "strategy_from_parameters",
    "IrregularWatershedConfig",
]
