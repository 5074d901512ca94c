"""Configuration for procwatch.

procwatch has no configuration file and reads no environment variables.
Settings are built-in defaults, optionally overridden by whoever constructs
the dashboard (tests, embedding code). Sampling cadence is fixed.
"""

from __future__ import annotations

import curses
from typing import Any

POLL_TIMEOUT_MS = 200  # key poll per cycle; the only suspension point
INFO_WIDTH = 22  # columns reserved for the name/pid/start/lifetime block
START_TOLERANCE = 2.0  # seconds; larger creation-time drift means a reused pid

ORDERINGS = ("pid", "discovery")

DEFAULT_CONFIG: dict[str, Any] = {
    "history_limit": None,
    "ordering": "pid",
    "colors": {
        "info": curses.COLOR_WHITE,
        "name": curses.COLOR_MAGENTA,
        "match": curses.COLOR_RED,
        "mem": curses.COLOR_MAGENTA,
        "cpu": curses.COLOR_GREEN,
        "read": curses.COLOR_BLUE,
        "write": curses.COLOR_YELLOW,
    },
}


def make_config(overrides: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return the defaults with *overrides* merged on top.

    Raises:
        ValueError: If an override names an unknown key or has a bad value.
    """
    overrides = dict(overrides or {})
    unknown = set(overrides) - set(DEFAULT_CONFIG)
    if unknown:
        raise ValueError(f"unknown config key(s): {', '.join(sorted(unknown))}")

    colors = overrides.pop("colors", {})
    if not isinstance(colors, dict):
        raise ValueError(f"colors must map role names to color numbers, got {colors!r}")
    unknown_roles = set(colors) - set(DEFAULT_CONFIG["colors"])
    if unknown_roles:
        raise ValueError(f"unknown color role(s): {', '.join(sorted(unknown_roles))}")
    for role, color in colors.items():
        if isinstance(color, bool) or not isinstance(color, int):
            raise ValueError(f"color for {role!r} must be an int, got {color!r}")

    # colors override per role; every other key is replaced whole
    config = {**DEFAULT_CONFIG, **overrides}
    config["colors"] = {**DEFAULT_CONFIG["colors"], **colors}

    limit = config["history_limit"]
    if limit is not None and (
        isinstance(limit, bool) or not isinstance(limit, int) or limit < 1
    ):
        raise ValueError(f"history_limit must be a positive int or None, got {limit!r}")

    if config["ordering"] not in ORDERINGS:
        raise ValueError(
            f"ordering must be one of {', '.join(ORDERINGS)}, got {config['ordering']!r}"
        )

    return config
