"""Watershed seam correction organised by responsibility.

Modules intentionally avoid package-level re-exports; import concrete
implementations from ``config``, ``shrink_mask``, ``seams``, ``pipeline`` or
``postprocess`` as needed.
"""

__all__: list[str] = []
