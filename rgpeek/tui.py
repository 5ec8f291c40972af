"""
rgpeek curses front end.

One-screen terminal UI: a query field and a glob field on top, the
streaming result list on the left, and the preview of the selected match
on the right. The UI never touches subprocesses directly; every keystroke
becomes a ResultManager call and every loop iteration calls
``ResultManager.tick()``, redrawing only when something changed.

Example:
    python -m rgpeek ~/src/project
"""

from __future__ import annotations

import curses
import time
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

from .ansi import DEFAULT_STYLE, Style, reduce_color, styled_segments
from .manager import ResultManager

# Robust key codes (macOS curses lacks KEY_TAB)
KEY_TAB = getattr(curses, "KEY_TAB", 9)
KEY_BTAB = getattr(curses, "KEY_BTAB", 353)
CTRL_C = "\x03"
CTRL_P = "\x10"
CTRL_T = "\x14"
ESC = "\x1b"

# Values returned by SearchTuiApp.run().
QUIT = "quit"
OPEN = "open"

HEADER_ROWS = 4
SELECTION_MARK = "» "
TAB_WIDTH = 4
THEME_PAIRS = 8  # pairs below this number are reserved for the UI chrome


# --------------------------------------------------------------------------- #
#  Small data holders                                                         #
# --------------------------------------------------------------------------- #

# Description:
#   Track a single editable text field.
#
# Parameters:
#   name (str): Field key.
#   label (str): Human label.
#   value (str): Current text.
#   placeholder (str): Hint shown while empty.
#   cursor (int): Cursor position inside value.
#
@dataclass
class FormField:
    name: str
    label: str
    value: str
    placeholder: str = ""
    cursor: int = 0

    def __post_init__(self) -> None:
        self.cursor = len(self.value)

    # Apply one editing key. Returns True if the value changed.
    def edit(self, key: Union[str, int]) -> bool:
        if key in (curses.KEY_LEFT,):
            self.cursor = max(0, self.cursor - 1)
        elif key in (curses.KEY_RIGHT,):
            self.cursor = min(len(self.value), self.cursor + 1)
        elif key in (curses.KEY_HOME, "\x01"):
            self.cursor = 0
        elif key in (curses.KEY_END, "\x05"):
            self.cursor = len(self.value)
        elif key in (curses.KEY_BACKSPACE, "\x7f", "\x08"):
            if self.cursor > 0:
                self.value = self.value[: self.cursor - 1] + self.value[self.cursor:]
                self.cursor -= 1
                return True
        elif key in (curses.KEY_DC,):
            if self.cursor < len(self.value):
                self.value = self.value[: self.cursor] + self.value[self.cursor + 1:]
                return True
        elif key == "\x15":
            changed = bool(self.value)
            self.value, self.cursor = "", 0
            return changed
        elif isinstance(key, str) and key.isprintable():
            self.value = self.value[: self.cursor] + key + self.value[self.cursor:]
            self.cursor += len(key)
            return True
        return False


# --------------------------------------------------------------------------- #
#  Utility helpers                                                            #
# --------------------------------------------------------------------------- #

def _expand_tabs(text: str) -> str:
    return text.replace("\t", " " * TAB_WIDTH)


# Description:
#   Interactive curses UI driving a ResultManager.
#
# Parameters:
#   stdscr (curses.window): Root window provided by curses.wrapper.
#   manager (ResultManager): Orchestrator that outlives this window.
#
class SearchTuiApp:
    def __init__(self, stdscr: curses.window, manager: ResultManager) -> None:
        self.stdscr = stdscr
        self.manager = manager
        self.fields = [
            FormField("query", "Search", manager.options.query, "Start typing to search..."),
            FormField("globs", "Globs", manager.globs_text, "e.g. *.py; !tests/*"),
        ]
        self.active_field: int = 0
        self.list_offset: int = 0
        self.needs_redraw: bool = True
        self._pairs: Dict[Tuple[int, int], int] = {}
        self._next_pair: int = THEME_PAIRS
        self.stdscr.nodelay(True)
        self.stdscr.keypad(True)
        try:
            curses.curs_set(1)
        except curses.error:
            pass
        self._init_colors()

    # Description:
    #   Set up color pairs for the UI chrome.
    #
    def _init_colors(self) -> None:
        self.has_colors = curses.has_colors()
        if not self.has_colors:
            return
        curses.start_color()
        try:
            curses.use_default_colors()
            default = -1
        except curses.error:
            default = curses.COLOR_BLACK
        curses.init_pair(1, curses.COLOR_CYAN, default)
        curses.init_pair(2, curses.COLOR_YELLOW, default)
        curses.init_pair(3, curses.COLOR_GREEN, default)
        curses.init_pair(4, curses.COLOR_RED, default)
        curses.init_pair(5, curses.COLOR_MAGENTA, default)

    # Return the curses attribute for an ANSI style, allocating pairs on demand.
    def _attr_for(self, style: Style) -> int:
        attr = 0
        if style.bold:
            attr |= curses.A_BOLD
        if style.dim:
            attr |= curses.A_DIM
        if style.underline:
            attr |= curses.A_UNDERLINE
        if style.reverse:
            attr |= curses.A_REVERSE
        if not self.has_colors or (style.fg, style.bg) == (-1, -1):
            return attr
        key = (reduce_color(style.fg, curses.COLORS), reduce_color(style.bg, curses.COLORS))
        pair = self._pairs.get(key)
        if pair is None:
            pair = 0
            if self._next_pair < curses.COLOR_PAIRS:
                try:
                    curses.init_pair(self._next_pair, *key)
                    pair = self._next_pair
                    self._next_pair += 1
                except curses.error:
                    pair = 0
            self._pairs[key] = pair
        return attr | curses.color_pair(pair)

    # Write text clipped to *width*, ignoring the bottom-right corner error.
    def _put(self, y: int, x: int, text: str, width: int, attr: int = 0) -> None:
        if width <= 0:
            return
        try:
            self.stdscr.addnstr(y, x, text, width, attr)
        except curses.error:
            pass

    # Write text padded to clear the full line.
    def _write_line(self, y: int, text: str, *, color: int | None = None, attr: int = 0) -> None:
        _, w = self.stdscr.getmaxyx()
        if color and self.has_colors:
            attr |= curses.color_pair(color)
        self._put(y, 0, text[: w - 1].ljust(w - 1), w - 1, attr)

    # Description:
    #   Draw an ANSI-styled line, clipped to *width* columns.
    #
    # Parameters:
    #   y, x (int): Start position.
    #   text (str): Line with escape sequences.
    #   width (int): Columns available.
    #   extra (int): Attribute OR-ed onto every segment.
    #
    def _draw_styled(self, y: int, x: int, text: str, width: int, extra: int = 0) -> None:
        col = 0
        for chunk, style in styled_segments(_expand_tabs(text), DEFAULT_STYLE):
            if col >= width:
                break
            self._put(y, x + col, chunk, width - col, self._attr_for(style) | extra)
            col += len(chunk)

    # --------------------------------------------------------------------- #
    #  Event loop                                                           #
    # --------------------------------------------------------------------- #

    # Description:
    #   Primary event loop driving the UI.
    #
    # Returns:
    #   str: QUIT when the user leaves, OPEN when the selection should be
    #     opened in the editor (the caller restarts the UI afterwards).
    #
    def run(self) -> str:
        interval = self.manager.settings.tick_interval
        while True:
            if self.manager.tick():
                self.needs_redraw = True
            if self.needs_redraw:
                self._draw()
                self.needs_redraw = False
            try:
                key = self.stdscr.get_wch()
            except curses.error:
                time.sleep(interval)
                continue
            except KeyboardInterrupt:
                return QUIT
            action = self._handle_key(key)
            if action is not None:
                return action
            self.needs_redraw = True

    # Description:
    #   Translate one key into manager calls.
    #
    # Parameters:
    #   key (str | int): Value returned by get_wch.
    #
    # Returns:
    #   str | None: QUIT or OPEN to leave the loop, else None.
    #
    def _handle_key(self, key: Union[str, int]) -> Optional[str]:
        if key in (CTRL_C, ESC):
            return QUIT
        if key == CTRL_P:
            self.manager.toggle_preview()
        elif key == CTRL_T:
            self.manager.toggle_hidden()
        elif key == curses.KEY_DOWN:
            self.manager.select_next()
        elif key == curses.KEY_UP:
            self.manager.select_prev()
        elif key in (curses.KEY_ENTER, "\n", "\r"):
            if self.manager.can_open:
                return OPEN
        elif key in (KEY_TAB, "\t", KEY_BTAB):
            self.active_field = (self.active_field + 1) % len(self.fields)
        elif key == curses.KEY_RESIZE:
            self.stdscr.clear()
        else:
            field = self.fields[self.active_field]
            if field.edit(key):
                if field.name == "query":
                    self.manager.set_query(field.value)
                else:
                    self.manager.set_globs(field.value)
        return None

    # --------------------------------------------------------------------- #
    #  Drawing                                                              #
    # --------------------------------------------------------------------- #

    # Description:
    #   Draw the whole screen from the manager snapshot.
    #
    def _draw(self) -> None:
        self.stdscr.erase()
        h, w = self.stdscr.getmaxyx()
        if h < HEADER_ROWS + 2 or w < 20:
            self._put(0, 0, "Terminal too small.", w - 1)
            self.stdscr.refresh()
            return
        hidden = "[x] Show hidden" if self.manager.is_showing_hidden else "[ ] Show hidden"
        self._write_line(0, f"rgpeek  {self.manager.root}", color=1)
        self._put(0, max(0, w - len(hidden) - 1), hidden, len(hidden), curses.color_pair(3) if self.has_colors else 0)
        for i, field in enumerate(self.fields):
            self._draw_field(1 + i, w, field, active=(i == self.active_field))
        self._put(HEADER_ROWS - 1, 0, "-" * (w - 1), w - 1, curses.A_DIM)

        body_height = h - HEADER_ROWS - 1
        if self.manager.show_preview:
            list_width = w // 2
            self._draw_preview(HEADER_ROWS, list_width + 1, body_height, w - list_width - 2)
            for y in range(HEADER_ROWS, HEADER_ROWS + body_height):
                self._put(y, list_width, "|", 1, curses.A_DIM)
        else:
            list_width = w - 1
        self._draw_results(HEADER_ROWS, 0, body_height, list_width)
        self._draw_footer(h - 1, w)

        field = self.fields[self.active_field]
        label_width = len(field.label) + 2
        try:
            self.stdscr.move(1 + self.active_field, min(w - 1, label_width + field.cursor))
        except curses.error:
            pass
        self.stdscr.refresh()

    def _draw_field(self, y: int, width: int, field: FormField, active: bool) -> None:
        label = f"{field.label}: "
        attr = curses.color_pair(3) if (active and self.has_colors) else 0
        self._put(y, 0, label, width - 1, attr | curses.A_BOLD)
        if field.value:
            self._put(y, len(label), field.value, width - len(label) - 1)
        else:
            self._put(y, len(label), field.placeholder, width - len(label) - 1, curses.A_DIM)

    # Keep the selection inside the visible window of *height* rows.
    def _scroll_to_selection(self, height: int) -> None:
        selection = self.manager.selection
        if selection is None:
            self.list_offset = 0
            return
        if selection < self.list_offset:
            self.list_offset = selection
        elif selection >= self.list_offset + height:
            self.list_offset = selection - height + 1

    def _draw_results(self, y0: int, x0: int, height: int, width: int) -> None:
        results = self.manager.results
        self._scroll_to_selection(height)
        selection = self.manager.selection
        for row in range(height):
            index = self.list_offset + row
            if index >= len(results):
                break
            record = results[index]
            selected = (index == selection)
            mark = SELECTION_MARK if selected else " " * len(SELECTION_MARK)
            extra = curses.A_REVERSE if selected else 0
            self._put(y0 + row, x0, mark, width, extra)
            self._draw_styled(y0 + row, x0 + len(mark), record.display_text, width - len(mark), extra)
        if not results:
            if self.manager.last_error:
                self._put(y0, x0 + 2, self.manager.last_error, width - 2,
                          curses.color_pair(4) if self.has_colors else 0)
            elif self.manager.options.query and not self.manager.searching:
                self._put(y0, x0 + 2, "No results.", width - 2, curses.A_DIM)

    def _draw_preview(self, y0: int, x0: int, height: int, width: int) -> None:
        artifact = self.manager.preview
        if artifact is None:
            if self.manager.preview_loading:
                self._put(y0, x0, "Loading...", width, curses.A_DIM)
            return
        lines = artifact.text.splitlines()
        offset = artifact.scroll_offset(height)
        if artifact.failed:
            attr = curses.color_pair(4) if self.has_colors else 0
            for row, line in enumerate(lines[:height]):
                self._put(y0 + row, x0, _expand_tabs(line), width, attr)
            return
        for row, line in enumerate(lines[offset: offset + height]):
            self._draw_styled(y0 + row, x0, line, width)

    def _draw_footer(self, y: int, width: int) -> None:
        count = self.manager.count
        if self.manager.searching:
            status = f"{count} results (searching...)"
        elif self.manager.job is not None:
            status = f"{count} results"
        else:
            status = ""
        footer = "UP/DOWN: navigate | ENTER: open | TAB: field | ^P: preview | ^T: hidden | ^C: quit"
        self._write_line(y, f"{footer}  {status}", color=2)


# --------------------------------------------------------------------------- #
#  Entrypoint                                                                 #
# --------------------------------------------------------------------------- #

# Description:
#   Run the UI once inside curses.wrapper.
#
# Parameters:
#   manager (ResultManager): Orchestrator shared across restarts.
#
# Returns:
#   str: QUIT or OPEN.
#
def run_once(manager: ResultManager) -> str:
    return curses.wrapper(lambda stdscr: SearchTuiApp(stdscr, manager).run())
