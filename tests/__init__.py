# tests/__init__.py
"""
Expose common test utilities so tests can import directly:
    from tests import make_policy, png_bytes
"""

from .utils import make_policy, png_bytes

__all__ = ["make_policy", "png_bytes"]
