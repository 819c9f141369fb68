"""Mask storage utilities."""

from irregular_watershed.data_io.mask_io import load_mask_stack, save_mask_stack

__all__ = ["load_mask_stack", "save_mask_stack"]
