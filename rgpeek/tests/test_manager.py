import pytest

import rgpeek.manager as manager_module
from rgpeek.manager import ResultManager, build_editor_command
from rgpeek.process import is_alive


@pytest.fixture
def root(tmp_path):
    (tmp_path / "a.txt").write_text("".join(f"line {i}\n" for i in range(1, 31)))
    (tmp_path / "b.txt").write_text("alpha\nbeta\n")
    return tmp_path


@pytest.fixture
def manager(settings, root):
    m = ResultManager(settings, root=str(root))
    yield m
    m.close()


def _finished(manager):
    return (manager.job is not None) and manager.job.finished


# --------------------------------------------------------------------------- #
#  Searching                                                                  #
# --------------------------------------------------------------------------- #

def test_empty_query_stays_idle(manager, argv_log, invocations):
    assert not manager.tick()
    manager.set_query("x")
    manager.set_query("")
    assert manager.dirty
    assert manager.tick()
    assert manager.job is None
    assert manager.results == []
    assert manager.selection is None
    assert invocations(argv_log, "rg") == []


def test_search_selects_and_previews_first_result(manager, rg_output, argv_log, invocations, tick_until):
    rg_output([b"a.txt:3:1:foo bar"])
    manager.set_query("foo")
    assert tick_until(manager, lambda: manager.preview is not None)
    assert manager.count == 1
    assert manager.selection == 0
    assert manager.selected_record.file_path == "a.txt"
    assert manager.preview.line_number == 3
    assert manager.preview.text.startswith("preview a.txt line 3")
    assert not manager.preview_loading
    assert [r["argv"] for r in invocations(argv_log, "rg")] == [["--column", "--color=always", "--no-hidden", "foo"]]
    bats = invocations(argv_log, "bat")
    assert len(bats) == 1
    assert bats[0]["argv"][-3:] == ["-H", "3", "a.txt"]


def test_rapid_edits_spawn_one_search(manager, rg_output, monkeypatch):
    rg_output([b"a.txt:1:1:x"])
    created = []
    real = manager_module.SearchJob

    def counting(*args, **kwargs):
        job = real(*args, **kwargs)
        created.append(job)
        return job

    monkeypatch.setattr(manager_module, "SearchJob", counting)
    for text in ("f", "fo", "foo"):
        manager.set_query(text)
    manager.tick()
    manager.tick()
    assert len(created) == 1
    assert created[0].options.query == "foo"
    manager.set_query("foo")
    assert not manager.dirty


def test_new_search_retires_previous_process(manager, rg_output, tick_until):
    rg_output([b"a.txt:1:1:x"], hang=True)
    manager.set_query("a")
    assert tick_until(manager, lambda: manager.count == 1)
    first = manager.job
    assert is_alive(first.pid)
    manager.set_query("ab")
    manager.tick()
    assert manager.job is not first
    assert first.finished
    assert not is_alive(first.pid)
    assert manager.selection is None


def test_option_changes_reach_the_search_command(manager, rg_output, argv_log, invocations, tick_until):
    rg_output([])
    manager.set_query("foo")
    manager.set_globs(" *.py ; !x/* ;")
    manager.toggle_hidden()
    assert manager.is_showing_hidden
    assert manager.globs_text == " *.py ; !x/* ;"
    assert tick_until(manager, lambda: _finished(manager))
    argv = invocations(argv_log, "rg")[-1]["argv"]
    assert argv == ["--column", "--color=always", "--hidden", "--glob", "*.py", "--glob", "!x/*", "foo"]
    assert manager.count == 0
    assert manager.selection is None


def test_malformed_lines_do_not_abort_the_search(manager, rg_output, tick_until):
    rg_output([b"binary garbage", b"a.txt:3:1:foo"])
    manager.set_query("foo")
    assert tick_until(manager, lambda: _finished(manager))
    assert manager.count == 2
    assert not manager.results[0].actionable
    assert manager.selection == 0
    assert manager.preview_job is None
    manager.select_next()
    assert manager.preview_job is not None


@pytest.mark.parametrize("batch_size", [1, 3, 10])
def test_results_keep_producer_order(settings, root, rg_output, tick_until, batch_size):
    settings.batch_size = batch_size
    settings.show_preview = False
    rg_output([f"a.txt:{i}:1:x" for i in range(1, 26)])
    manager = ResultManager(settings, root=str(root))
    try:
        manager.set_query("x")
        counts = [0]

        def done():
            counts.append(manager.count)
            return _finished(manager)

        assert tick_until(manager, done)
        assert [r.line_number for r in manager.results] == list(range(1, 26))
        assert max(b - a for a, b in zip(counts, counts[1:])) <= batch_size
    finally:
        manager.close()


def test_spawn_failure_is_reported(settings, root):
    settings.search_command = ["/nonexistent/bin/rg"]
    manager = ResultManager(settings, root=str(root))
    manager.set_query("foo")
    assert manager.tick()
    assert manager.job is None
    assert not manager.searching
    assert "rg" in manager.last_error
    manager.close()


# --------------------------------------------------------------------------- #
#  Selection and preview                                                      #
# --------------------------------------------------------------------------- #

def test_selection_is_clamped(manager, rg_output, tick_until):
    manager.select_next()
    assert manager.selection is None
    rg_output([b"a.txt:1:1:x", b"a.txt:2:1:x", b"b.txt:1:1:x"])
    manager.set_query("x")
    assert tick_until(manager, lambda: _finished(manager))
    assert manager.selection == 0
    manager.select_prev()
    assert manager.selection == 0
    manager.select_next()
    manager.select_next()
    manager.select_next()
    assert manager.selection == 2
    assert manager.selected_record.file_path == "b.txt"
    manager.set_query("y")
    manager.tick()
    assert manager.selection is None
    assert manager.preview is None


def test_newer_preview_supersedes_older(manager, rg_output, monkeypatch, tick_until, wait_for):
    rg_output([b"a.txt:1:1:x", b"a.txt:20:1:x"])
    monkeypatch.setenv("FAKE_BAT_DELAY", "2.0")
    manager.set_query("x")
    assert tick_until(manager, lambda: _finished(manager) and manager.count == 2)
    first = manager.preview_job
    assert first is not None
    monkeypatch.setenv("FAKE_BAT_DELAY", "0")
    manager.select_next()
    assert first.cancelled
    assert tick_until(manager, lambda: manager.preview is not None)
    assert manager.preview.line_number == 20
    assert wait_for(lambda: not first.thread_alive)
    assert not is_alive(first.pid)
    for _ in range(5):
        manager.tick()
    assert manager.preview.text.startswith("preview a.txt line 20")


def test_toggle_preview(manager, rg_output, tick_until):
    rg_output([b"a.txt:3:1:x"])
    manager.set_query("x")
    assert tick_until(manager, lambda: manager.preview is not None)
    manager.toggle_preview()
    assert not manager.show_preview
    assert manager.preview is None
    assert manager.preview_job is None
    manager.toggle_preview()
    assert manager.preview_loading
    assert tick_until(manager, lambda: manager.preview is not None)


def test_missing_file_gets_no_preview(manager, rg_output, argv_log, invocations, tick_until):
    rg_output([b"gone.txt:1:1:x"])
    manager.set_query("x")
    assert tick_until(manager, lambda: _finished(manager))
    assert manager.selection == 0
    assert manager.preview_job is None
    assert manager.preview is None
    assert invocations(argv_log, "bat") == []
    assert not manager.can_open
    assert not manager.open_selection()


def test_preview_spawn_failure_becomes_placeholder(settings, root, rg_output, tick_until):
    settings.preview_command = ["/nonexistent/bin/bat"]
    rg_output([b"a.txt:3:1:x"])
    manager = ResultManager(settings, root=str(root))
    try:
        manager.set_query("x")
        assert tick_until(manager, lambda: manager.preview is not None)
        assert manager.preview.failed
        assert manager.preview_job is None
    finally:
        manager.close()


# --------------------------------------------------------------------------- #
#  Editor and teardown                                                        #
# --------------------------------------------------------------------------- #

def test_editor_command():
    assert build_editor_command("vim", "a b.txt", 3) == "vim +3 'a b.txt'"
    assert build_editor_command("code -w", "a.txt", None) == "code -w a.txt"


def test_open_selection_runs_editor(manager, rg_output, argv_log, invocations, tick_until):
    assert not manager.open_selection()
    rg_output([b"a.txt:3:1:foo"])
    manager.set_query("foo")
    assert tick_until(manager, lambda: manager.selection == 0)
    assert manager.can_open
    assert manager.open_selection()
    editors = invocations(argv_log, "editor")
    assert [e["argv"] for e in editors] == [["+3", "a.txt"]]


def test_close_stops_everything(manager, rg_output, monkeypatch, tick_until):
    rg_output([b"a.txt:3:1:x"], hang=True)
    monkeypatch.setenv("FAKE_BAT_DELAY", "2.0")
    manager.set_query("x")
    assert tick_until(manager, lambda: manager.preview_job is not None)
    job, preview = manager.job, manager.preview_job
    manager.close()
    assert job.finished
    assert not is_alive(job.pid)
    assert preview.cancelled
    assert manager.preview_job is None
