# ANSI escape handling for search and preview output.
#
# Both external programs are asked for colorized output, so every line that
# reaches the UI carries escape sequences. This module strips them where
# plain text is needed (paths, line numbers), finds field separators without
# being fooled by bytes inside an escape, and turns SGR sequences into
# (text, Style) segments that the curses front end can draw.
#
# Example:
#     strip_ansi("\x1b[35ma.txt\x1b[0m")          # -> "a.txt"
#     find_separators(b"a.txt:3:1:foo", count=2)  # -> [5, 7]

import re
from dataclasses import dataclass, replace
from typing import List, Sequence, Tuple

# CSI sequences, OSC sequences (terminated by BEL or ST) and two byte escapes.
_ESCAPE_PATTERN = r"\x1b(?:\[[0-?]*[ -/]*[@-~]|\][^\x07\x1b]*(?:\x07|\x1b\\)|[@-Z\\-_])"
ANSI_ESCAPE_RE = re.compile(_ESCAPE_PATTERN)
ANSI_ESCAPE_BYTES_RE = re.compile(_ESCAPE_PATTERN.encode("ascii"))
_SGR_RE = re.compile(r"\x1b\[([0-9;:]*)m")

# Approximate RGB values of the eight basic terminal colors.
_BASIC_RGB: Tuple[Tuple[int, int, int], ...] = (
    (0, 0, 0), (205, 0, 0), (0, 205, 0), (205, 205, 0),
    (0, 0, 238), (205, 0, 205), (0, 205, 205), (229, 229, 229),
)
_CUBE_STEPS = (0, 95, 135, 175, 215, 255)


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE_RE.sub("", text)


def strip_ansi_bytes(data: bytes) -> bytes:
    return ANSI_ESCAPE_BYTES_RE.sub(b"", data)


# Description:
#   Locate the first *count* occurrences of *separator* in *raw*, skipping
#   any byte that belongs to an escape sequence.
#
# Parameters:
#   raw (bytes): Unmodified line as emitted by the producer.
#   separator (bytes): Single byte separator.
#   count (int): Number of separators wanted.
#
# Returns:
#   List[int]: Byte offsets into *raw*, possibly fewer than *count*.
#
def find_separators(raw: bytes, separator: bytes = b":", count: int = 2) -> List[int]:
    found: List[int] = []
    sep = separator[0]
    i = 0
    while (i < len(raw)) and (len(found) < count):
        byte = raw[i]
        if byte == 0x1b:
            match = ANSI_ESCAPE_BYTES_RE.match(raw, i)
            if match is not None:
                i = match.end()
                continue
        elif byte == sep:
            found.append(i)
        i += 1
    return found


# Display attributes accumulated from SGR sequences. Colors are xterm 256
# palette indices, -1 means the terminal default.
@dataclass(frozen=True)
class Style:
    fg: int = -1
    bg: int = -1
    bold: bool = False
    dim: bool = False
    underline: bool = False
    reverse: bool = False


DEFAULT_STYLE = Style()


def rgb_to_256(r: int, g: int, b: int) -> int:
    if (r == g == b):
        if r < 8:
            return 16
        if r > 248:
            return 231
        return 232 + round((r - 8) / 247 * 24)
    def _step(v: int) -> int:
        return min(range(6), key=lambda i: abs(_CUBE_STEPS[i] - v))
    return 16 + 36 * _step(r) + 6 * _step(g) + _step(b)


def _index_to_rgb(index: int) -> Tuple[int, int, int]:
    if index < 8:
        return _BASIC_RGB[index]
    if index < 16:
        r, g, b = _BASIC_RGB[index - 8]
        return (min(255, r + 50), min(255, g + 50), min(255, b + 50))
    if index < 232:
        index -= 16
        return (_CUBE_STEPS[index // 36], _CUBE_STEPS[(index // 6) % 6], _CUBE_STEPS[index % 6])
    level = 8 + (index - 232) * 10
    return (level, level, level)


# Description:
#   Fold a 256 palette index into a terminal that only has *available* colors.
#
# Parameters:
#   index (int): Palette index, or -1 for the default color.
#   available (int): Value of curses.COLORS.
#
# Returns:
#   int: An index below *available*, or -1.
#
def reduce_color(index: int, available: int) -> int:
    if (index < 0) or (index < available):
        return index
    if index < 16:
        return index - 8
    r, g, b = _index_to_rgb(index)
    return min(range(8), key=lambda i: sum((a - c) ** 2 for a, c in zip((r, g, b), _BASIC_RGB[i])))


# Description:
#   Apply one SGR parameter list to *style*.
#
# Parameters:
#   style (Style): Style in effect before the sequence.
#   params (Sequence[int]): Numeric parameters, empty means reset.
#
# Returns:
#   Style: Style in effect after the sequence.
#
def apply_sgr(style: Style, params: Sequence[int]) -> Style:
    if not params:
        return DEFAULT_STYLE
    i = 0
    while i < len(params):
        p = params[i]
        if p == 0:
            style = DEFAULT_STYLE
        elif p == 1:
            style = replace(style, bold=True)
        elif p == 2:
            style = replace(style, dim=True)
        elif p == 4:
            style = replace(style, underline=True)
        elif p == 7:
            style = replace(style, reverse=True)
        elif p == 22:
            style = replace(style, bold=False, dim=False)
        elif p == 24:
            style = replace(style, underline=False)
        elif p == 27:
            style = replace(style, reverse=False)
        elif 30 <= p <= 37:
            style = replace(style, fg=p - 30)
        elif p == 39:
            style = replace(style, fg=-1)
        elif 40 <= p <= 47:
            style = replace(style, bg=p - 40)
        elif p == 49:
            style = replace(style, bg=-1)
        elif 90 <= p <= 97:
            style = replace(style, fg=p - 90 + 8)
        elif 100 <= p <= 107:
            style = replace(style, bg=p - 100 + 8)
        elif p in (38, 48) and (i + 1 < len(params)):
            color = None
            if (params[i + 1] == 5) and (i + 2 < len(params)):
                color = params[i + 2]
                i += 2
            elif (params[i + 1] == 2) and (i + 4 < len(params)):
                color = rgb_to_256(*params[i + 2:i + 5])
                i += 4
            if color is not None:
                style = replace(style, fg=color) if p == 38 else replace(style, bg=color)
        i += 1
    return style


# Description:
#   Split *text* into runs of plain text with the style that applies to each.
#   Non-SGR escape sequences are dropped.
#
# Parameters:
#   text (str): Line containing ANSI escapes.
#   style (Style): Style carried over from a previous line.
#
# Returns:
#   List[Tuple[str, Style]]: Segments in display order, empty runs omitted.
#
def styled_segments(text: str, style: Style = DEFAULT_STYLE) -> List[Tuple[str, Style]]:
    segments: List[Tuple[str, Style]] = []
    position = 0
    for match in ANSI_ESCAPE_RE.finditer(text):
        if match.start() > position:
            segments.append((text[position:match.start()], style))
        sgr = _SGR_RE.fullmatch(match.group(0))
        if sgr is not None:
            params = [int(p) if p else 0 for p in re.split("[;:]", sgr.group(1))]
            style = apply_sgr(style, params)
        position = match.end()
    if position < len(text):
        segments.append((text[position:], style))
    return segments
