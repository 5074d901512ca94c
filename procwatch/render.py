"""Drawing one record into its screen region with curses.

Each record gets an info block on the left (name, pid, start time, lifetime)
and three equal columns for memory, CPU and disk I/O. Every column has a
one-row header and a braille line chart below it. Dead records are dimmed.
"""

from __future__ import annotations

import curses
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Any

from procwatch.config import INFO_WIDTH
from procwatch.entry import Detail, Record
from procwatch.layout import Region

# Curses colour-pair IDs
C_INFO = 1
C_NAME = 2
C_MATCH = 3
C_MEM = 4
C_CPU = 5
C_READ = 6
C_WRITE = 7

_PAIRS: dict[str, int] = {
    "info": C_INFO,
    "name": C_NAME,
    "match": C_MATCH,
    "mem": C_MEM,
    "cpu": C_CPU,
    "read": C_READ,
    "write": C_WRITE,
}

# Braille dot bits indexed [row][column] within one 2x4 cell
_BRAILLE = ((0x01, 0x08), (0x02, 0x10), (0x04, 0x20), (0x40, 0x80))
_BRAILLE_BASE = 0x2800

Span = tuple[str, int]


# ── Colour helpers ─────────────────────────────────────────────────────────


def init_colors(colors: dict[str, int]) -> None:
    curses.start_color()
    curses.use_default_colors()
    for role, pair in _PAIRS.items():
        curses.init_pair(pair, colors[role], -1)


def _pair(pair: int) -> int:
    return curses.color_pair(pair)


# ── Formatting helpers ─────────────────────────────────────────────────────


_UNITS = ("KiB", "MiB", "GiB", "TiB", "PiB")


def fmt_bytes(n: int | float) -> str:
    """Whole bytes under 1 KiB, then one decimal with binary prefixes up to PiB."""
    value = float(n)
    exp = 0
    while value >= 1024 and exp < len(_UNITS):
        value /= 1024
        exp += 1
    if exp == 0:
        return f"{int(value)} B"
    return f"{value:.1f} {_UNITS[exp - 1]}"


def fmt_lifetime(lifetime: timedelta) -> str:
    """Compact duration: ``12s``, ``3m04s``, ``2h03m04s``, ``1d02h03m04s``."""
    total = max(0, int(lifetime.total_seconds()))
    days, rem = divmod(total, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, seconds = divmod(rem, 60)
    if days:
        return f"{days}d{hours:02d}h{minutes:02d}m{seconds:02d}s"
    if hours:
        return f"{hours}h{minutes:02d}m{seconds:02d}s"
    if minutes:
        return f"{minutes}m{seconds:02d}s"
    return f"{seconds}s"


def fmt_start(start: datetime, lifetime: timedelta) -> str:
    """Clock time for short-lived processes, with the date once a day has passed."""
    if lifetime.days >= 1:
        return start.strftime("%a %b %d %H:%M")
    return start.strftime("%H:%M")


# ── Braille chart ──────────────────────────────────────────────────────────


class BrailleCanvas:
    """A ``width`` x ``height`` cell grid addressed in 2x4 braille dots.

    Dot (0, 0) is the top-left corner. Each cell remembers the colour of the
    last series that touched it.
    """

    def __init__(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self._bits = [[0] * width for _ in range(height)]
        self._colors = [[0] * width for _ in range(height)]

    @property
    def dot_width(self) -> int:
        return self.width * 2

    @property
    def dot_height(self) -> int:
        return self.height * 4

    def set(self, x: int, y: int, color: int) -> None:
        if not (0 <= x < self.dot_width and 0 <= y < self.dot_height):
            return
        row, col = y // 4, x // 2
        self._bits[row][col] |= _BRAILLE[y % 4][x % 2]
        self._colors[row][col] = color

    def line(self, x0: int, y0: int, x1: int, y1: int, color: int) -> None:
        """Bresenham line between two dots, inclusive."""
        dx, dy = abs(x1 - x0), -abs(y1 - y0)
        sx = 1 if x0 < x1 else -1
        sy = 1 if y0 < y1 else -1
        err = dx + dy
        while True:
            self.set(x0, y0, color)
            if x0 == x1 and y0 == y1:
                return
            e2 = 2 * err
            if e2 >= dy:
                err += dy
                x0 += sx
            if e2 <= dx:
                err += dx
                y0 += sy

    def plot(self, values: Sequence[float], y_max: float, color: int) -> None:
        """Draw *values* as a line with x in ``[0, len - 1]`` and y in ``[0, y_max]``."""
        if not values or self.width < 1 or self.height < 1:
            return
        x_max = len(values) - 1
        points = [
            (self._scale_x(i, x_max), self._scale_y(v, y_max))
            for i, v in enumerate(values)
        ]
        if len(points) == 1:
            self.set(*points[0], color)
            return
        for (x0, y0), (x1, y1) in zip(points, points[1:]):
            self.line(x0, y0, x1, y1, color)

    def rows(self) -> list[list[tuple[str, int]]]:
        """Cells as ``(glyph, color)``; empty cells are a blank with color 0."""
        out: list[list[tuple[str, int]]] = []
        for bits_row, color_row in zip(self._bits, self._colors):
            out.append(
                [
                    (chr(_BRAILLE_BASE + bits) if bits else " ", color if bits else 0)
                    for bits, color in zip(bits_row, color_row)
                ]
            )
        return out

    def _scale_x(self, i: int, x_max: int) -> int:
        if x_max <= 0:
            return 0
        return round(i / x_max * (self.dot_width - 1))

    def _scale_y(self, v: float, y_max: float) -> int:
        bottom = self.dot_height - 1
        if y_max <= 0:
            return bottom
        frac = min(max(v / y_max, 0.0), 1.0)
        return bottom - round(frac * bottom)


# ── Curses drawing primitives ──────────────────────────────────────────────


def _put(win: Any, y: int, x: int, text: str, attr: int) -> None:
    """Write one styled string; curses errors on the bottom-right cell even when it succeeds."""
    try:
        win.addstr(y, x, text, attr)
    except curses.error:
        pass


def _put_spans(win: Any, y: int, x: int, width: int, spans: Sequence[Span]) -> None:
    """Write styled spans left to right, clipped to *width* cells."""
    cx = x
    room = width
    for text, attr in spans:
        if room <= 0:
            return
        piece = text[:room]
        if piece:
            _put(win, y, cx, piece, attr)
        cx += len(piece)
        room -= len(piece)


def _put_right(win: Any, y: int, x: int, width: int, spans: Sequence[Span]) -> None:
    length = sum(len(text) for text, _ in spans)
    offset = max(0, width - length)
    _put_spans(win, y, x + offset, width - offset, spans)


def _draw_chart(
    win: Any,
    y: int,
    x: int,
    w: int,
    h: int,
    datasets: Sequence[tuple[Sequence[float], int]],
    y_max: float,
    extra: int,
) -> None:
    if w < 1 or h < 1:
        return
    canvas = BrailleCanvas(w, h)
    for values, pair in datasets:
        canvas.plot(values, y_max, pair)
    for row, cells in enumerate(canvas.rows()):
        for col, (glyph, pair) in enumerate(cells):
            if pair:
                _put(win, y + row, x + col, glyph, _pair(pair) | extra)


# ── Record renderer ────────────────────────────────────────────────────────


def _columns(region: Region) -> tuple[int, list[tuple[int, int]]]:
    """Info width and ``(x, width)`` of the memory, CPU and disk columns."""
    info_w = min(INFO_WIDTH, region.width)
    rest = region.width - info_w - 3  # one space before each metric column
    if rest < 3:
        return info_w, []
    base, extra = divmod(rest, 3)
    cols: list[tuple[int, int]] = []
    x = region.left + info_w + 1
    for i in range(3):
        w = base + (1 if i < extra else 0)
        cols.append((x, w))
        x += w + 1
    return info_w, cols


def _draw_info(win: Any, region: Region, record: Record, now: datetime, wilted: int) -> None:
    lifetime = record.lifetime(now)
    before, matched, after = record.name_match()
    name_attr = _pair(C_NAME) | wilted
    name: list[Span] = [
        (before, name_attr | curses.A_DIM),
        (matched, _pair(C_MATCH) | curses.A_BOLD | wilted),
        (after, name_attr | curses.A_DIM),
    ]
    info = _pair(C_INFO) | wilted
    pid: Span = (str(record.pid), info | curses.A_ITALIC | curses.A_DIM)
    start: Span = (fmt_start(record.start, lifetime), info | curses.A_DIM)
    duration: Span = (fmt_lifetime(lifetime), info)

    x, w, top = region.left, min(INFO_WIDTH, region.width), region.top
    if record.detail is Detail.EXPANDED:
        _put_spans(win, top, x, w, name)
        _put_right(win, top + 1, x, w, [pid])
        _put_right(win, top + 2, x, w, [start])
        _put_right(win, top + 3, x, w, [duration])
    else:
        _put_spans(win, top, x, w, [*name, (" ", info), pid])
        _put_right(win, top + 1, x, w, [duration, (" ", info), start])


def draw_record(win: Any, region: Region, record: Record, now: datetime) -> None:
    """Draw *record* into *region*. The record is only read."""
    wilted = curses.A_DIM if record.is_dead else 0
    _draw_info(win, region, record, now, wilted)

    _, cols = _columns(region)
    if not cols:
        return
    (mem_x, mem_w), (cpu_x, cpu_w), (disk_x, disk_w) = cols
    top = region.top
    chart_top = top + 1
    chart_h = record.detail.chart_height
    plain = wilted
    dim = curses.A_DIM

    # Memory
    mem = list(record.mem)
    mem_peak = max(mem, default=0)
    _put_spans(
        win,
        top,
        mem_x,
        mem_w,
        [
            ("mem ", _pair(C_MEM) | plain),
            (fmt_bytes(mem[-1] if mem else 0), plain),
            ("  peak ", dim),
            (fmt_bytes(mem_peak), plain),
        ],
    )
    _draw_chart(win, chart_top, mem_x, mem_w, chart_h, [(mem, C_MEM)], mem_peak, plain)

    # CPU
    cpu = list(record.cpu)
    cpu_peak = max(cpu, default=0.0)
    _put_spans(
        win,
        top,
        cpu_x,
        cpu_w,
        [
            ("cpu ", _pair(C_CPU) | plain),
            (f"{cpu[-1] if cpu else 0.0:>5.2f}", plain),
            ("  peak ", dim),
            (f"{cpu_peak:>5.2f}", plain),
        ],
    )
    _draw_chart(win, chart_top, cpu_x, cpu_w, chart_h, [(cpu, C_CPU)], cpu_peak, plain)

    # Disk I/O
    read, write = list(record.read), list(record.write)
    read_peak, write_peak = max(read, default=0), max(write, default=0)
    _put_spans(
        win,
        top,
        disk_x,
        disk_w,
        [
            ("read ", _pair(C_READ) | plain),
            (fmt_bytes(read[-1] if read else 0), plain),
            ("  wrote ", _pair(C_WRITE) | plain),
            (fmt_bytes(write[-1] if write else 0), plain),
        ],
    )
    if record.detail is Detail.EXPANDED:
        _draw_chart(
            win,
            chart_top,
            disk_x,
            disk_w,
            chart_h,
            [(read, C_READ), (write, C_WRITE)],
            max(read_peak, write_peak),
            plain,
        )
    else:
        half = disk_w // 2
        _draw_chart(win, chart_top, disk_x, half, chart_h, [(read, C_READ)], read_peak, plain)
        _draw_chart(
            win,
            chart_top,
            disk_x + half,
            disk_w - half,
            chart_h,
            [(write, C_WRITE)],
            write_peak,
            plain,
        )
