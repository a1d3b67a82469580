"""Mathematical utilities for the TWAMM engine.

This package provides the fixed-point primitives used by every numerical
computation:
- Fixed: signed 18-decimal fixed-point arithmetic
"""

from twamm.math.fixed_point import Fixed

__all__ = ["Fixed"]
