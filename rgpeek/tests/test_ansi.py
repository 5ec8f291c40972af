from rgpeek.ansi import (DEFAULT_STYLE, Style, apply_sgr, find_separators,
                         reduce_color, rgb_to_256, strip_ansi, strip_ansi_bytes,
                         styled_segments)


def test_strip_ansi_removes_sgr_and_osc():
    text = "\x1b[0m\x1b[35ma.txt\x1b[0m:\x1b]8;;file:///a.txt\x1b\\link\x1b]8;;\x1b\\"
    assert strip_ansi(text) == "a.txt:link"
    assert strip_ansi_bytes(b"\x1b[1;31mred\x1b[0m") == b"red"


def test_find_separators_skips_escape_bytes():
    # The colon inside the CSI parameters must not count as a separator.
    raw = b"\x1b[38:5:1mdir/a.txt\x1b[0m:7:2:x"
    first, second = find_separators(raw, b":", count=2)
    assert raw[first:first + 1] == b":"
    assert strip_ansi_bytes(raw[:first]) == b"dir/a.txt"
    assert raw[first + 1:second] == b"7"


def test_find_separators_returns_fewer_when_missing():
    assert find_separators(b"no separators here") == []
    assert find_separators(b"one:only") == [3]


def test_apply_sgr_basic_attributes():
    style = apply_sgr(DEFAULT_STYLE, [1, 31, 44])
    assert style == Style(fg=1, bg=4, bold=True)
    assert apply_sgr(style, [0]) == DEFAULT_STYLE
    assert apply_sgr(style, []) == DEFAULT_STYLE
    assert apply_sgr(style, [22, 39]) == Style(bg=4)


# An empty parameter counts as 0, so it resets before the next one applies.
def test_empty_sgr_parameters_reset():
    segments = styled_segments("\x1b[1;44mbold\x1b[;31mred\x1b[mplain")
    assert segments[0][1] == Style(bg=4, bold=True)
    assert segments[1][1] == Style(fg=1)
    assert segments[2][1] == DEFAULT_STYLE


def test_apply_sgr_extended_colors():
    assert apply_sgr(DEFAULT_STYLE, [38, 5, 208]).fg == 208
    assert apply_sgr(DEFAULT_STYLE, [48, 2, 255, 0, 0]).bg == rgb_to_256(255, 0, 0)
    assert apply_sgr(DEFAULT_STYLE, [92]).fg == 10


def test_styled_segments_split_on_color_changes():
    segments = styled_segments("plain \x1b[31mred\x1b[0m tail\x1b[K")
    assert [text for text, _ in segments] == ["plain ", "red", " tail"]
    assert segments[0][1] == DEFAULT_STYLE
    assert segments[1][1].fg == 1
    assert segments[2][1] == DEFAULT_STYLE


def test_reduce_color_for_small_palettes():
    assert reduce_color(-1, 8) == -1
    assert reduce_color(3, 8) == 3
    assert reduce_color(9, 8) == 1
    assert reduce_color(196, 256) == 196
    assert reduce_color(196, 8) == 1
    assert 0 <= reduce_color(250, 16) < 8
