"""
Points Kernel - Display Formatting

format_points(1500) -> "1.5K", format_points(2_000_000) -> "2M".
"""

from __future__ import annotations

import math


def _strip_fraction_zeros(text: str) -> str:
    if "." not in text:
        return text
    return text.rstrip("0").rstrip(".")


def format_points(
    points: float,
    *,
    use_k_suffix: bool = True,
    decimals: int = 1,
    show_sign: bool = False,
) -> str:
    """
    Format a point value for display.

    Values >= 1,000 / 1,000,000 get K / M suffixes (when use_k_suffix),
    trailing fractional zeros are dropped and thousands are separated
    with commas. Non-finite input renders as "---".
    """
    if isinstance(points, bool) or not isinstance(points, (int, float)):
        return "---"
    if not math.isfinite(points):
        return "---"

    magnitude = abs(points)
    suffix = ""
    if use_k_suffix and magnitude >= 1_000_000:
        magnitude, suffix = magnitude / 1_000_000, "M"
    elif use_k_suffix and magnitude >= 1_000:
        magnitude, suffix = magnitude / 1_000, "K"

    body = _strip_fraction_zeros(f"{magnitude:,.{max(0, decimals)}f}")

    if points < 0 and body != "0":
        sign = "-"
    elif show_sign and points > 0:
        sign = "+"
    else:
        sign = ""
    return f"{sign}{body}{suffix}"
