"""Flat SVG badges showing the deployed tag of a release."""

import pybadges

COLOR_BLUE = "#007ec6"
COLOR_GREY = "#555"


def render_badge(label: str, message: str, color: str = COLOR_BLUE) -> str:
    return pybadges.badge(
        left_text=label,
        right_text=message,
        left_color=COLOR_GREY,
        right_color=color,
    )
