# Result and selection manager.
#
# The single owner of the two job slots: at most one SearchJob and at most
# one PreviewJob are alive at any time. Option changes only mark the
# manager dirty; the next `tick()` retires the old search and starts the
# new one, so a burst of keystrokes within one tick spawns one process.
# Ticks otherwise drain a bounded batch of search lines and poll the
# preview once, which keeps per-tick work independent of producer speed.
#
# All methods are called from the UI thread only.
#
# Example:
#   manager = ResultManager(Settings(), root=".")
#   manager.set_query("foo")
#   while running:
#       if manager.tick(): redraw(manager)
#   manager.close()


import logging
import os
import shlex
import subprocess
from dataclasses import replace
from typing import Optional, Sequence

from .config import Settings
from .preview_job import PreviewJob
from .schema import (PENDING, PreviewArtifact, ResultRecord, SearchOptions,
                     SpawnError)
from .search_job import SearchJob


# Description:
#   Build the shell command that opens *file_path* in *editor*.
#
# Parameters:
#   editor (str): Editor command, may contain its own arguments.
#   file_path (str): File to open.
#   line_number (int | None): Line to jump to.
#
# Returns:
#   str: Command for `sh -c`.
#
def build_editor_command(editor: str, file_path: str, line_number: Optional[int]) -> str:
    if line_number is None:
        return f"{editor} {shlex.quote(file_path)}"
    return f"{editor} +{line_number} {shlex.quote(file_path)}"


class ResultManager:
    # Description:
    #   Create an idle manager.
    #
    # Parameters:
    #   settings (Settings | None): Programs, batch size and initial toggles.
    #   root (str | None): Directory searched and against which result
    #     paths are resolved; defaults to the current directory.
    #
    def __init__(self, settings: Optional[Settings] = None, root: Optional[str] = None) -> None:
        self.settings: Settings = settings if settings is not None else Settings()
        self.root: str = os.path.abspath(root or os.getcwd())
        self.show_preview: bool = self.settings.show_preview
        self.last_error: str = ""
        self._options = SearchOptions(
            show_hidden=self.settings.show_hidden,
            globs=SearchOptions.parse_globs(self.settings.globs),
        )
        self._globs_text: str = self.settings.globs
        self._dirty: bool = False
        self._job: Optional[SearchJob] = None
        self._preview_job: Optional[PreviewJob] = None
        self._preview: Optional[PreviewArtifact] = None
        self._selection: Optional[int] = None

    def __repr__(self) -> str:
        return f"ResultManager(options={self._options}, job={self._job}, selection={self._selection})"

    # ------------------------------------------------------------------ #
    #  Read-only snapshot                                                 #
    # ------------------------------------------------------------------ #

    @property
    def options(self) -> SearchOptions:
        return self._options

    @property
    def globs_text(self) -> str:
        return self._globs_text

    @property
    def is_showing_hidden(self) -> bool:
        return self._options.show_hidden

    @property
    def job(self) -> Optional[SearchJob]:
        return self._job

    @property
    def preview_job(self) -> Optional[PreviewJob]:
        return self._preview_job

    @property
    def results(self) -> Sequence[ResultRecord]:
        return self._job.results if self._job is not None else []

    @property
    def count(self) -> int:
        return self._job.count if self._job is not None else 0

    @property
    def selection(self) -> Optional[int]:
        return self._selection

    @property
    def selected_record(self) -> Optional[ResultRecord]:
        if (self._selection is None) or (self._job is None):
            return None
        return self._job.get_result(self._selection)

    # True when the selection names an existing file that can be opened.
    @property
    def can_open(self) -> bool:
        return self._resolve(self.selected_record) is not None

    @property
    def preview(self) -> Optional[PreviewArtifact]:
        return self._preview

    @property
    def preview_loading(self) -> bool:
        return self._preview_job is not None

    @property
    def searching(self) -> bool:
        return (self._job is not None) and (not self._job.finished)

    @property
    def dirty(self) -> bool:
        return self._dirty

    # ------------------------------------------------------------------ #
    #  Option changes                                                     #
    # ------------------------------------------------------------------ #

    # Replace the options, marking the manager dirty only on a real change.
    def _set_options(self, options: SearchOptions) -> None:
        if options != self._options:
            self._options = options
            self._dirty = True

    def set_query(self, text: str) -> None:
        self._set_options(replace(self._options, query=text))

    def set_globs(self, text: str) -> None:
        self._globs_text = text
        self._set_options(replace(self._options, globs=SearchOptions.parse_globs(text)))

    def toggle_hidden(self) -> None:
        self._set_options(replace(self._options, show_hidden=not self._options.show_hidden))

    # Description:
    #   Retire the current search and start the one described by the
    #   current options (only when the query is non-empty).
    #
    def _restart_search(self) -> None:
        self._dirty = False
        if self._job is not None:
            self._job.finalize()
            self._job = None
        self._select(None)
        self.last_error = ""
        if not self._options.query:
            return
        try:
            self._job = SearchJob(self._options, self.settings.search_command, cwd=self.root)
        except SpawnError as e:
            logging.error(f"Search could not start: {e}")
            self.last_error = str(e)

    # ------------------------------------------------------------------ #
    #  Selection and preview                                              #
    # ------------------------------------------------------------------ #

    # Description:
    #   Move the selection to *index* and restart the preview for it.
    #
    # Parameters:
    #   index (int | None): New selection, assumed valid.
    #
    def _select(self, index: Optional[int]) -> None:
        self._selection = index
        self._start_preview()

    def select_next(self) -> None:
        count = self.count
        if count == 0:
            return
        if self._selection is None:
            self._select(0)
        elif self._selection + 1 < count:
            self._select(self._selection + 1)

    def select_prev(self) -> None:
        if self.count == 0:
            return
        if self._selection is None:
            self._select(0)
        elif self._selection > 0:
            self._select(self._selection - 1)

    def toggle_preview(self) -> None:
        self.show_preview = not self.show_preview
        self._start_preview()

    # Drop the preview slot, killing a pending render.
    def _discard_preview(self) -> None:
        if self._preview_job is not None:
            self._preview_job.cancel()
            self._preview_job = None
        self._preview = None

    # Return the absolute path of *record*'s file if it exists under root.
    def _resolve(self, record: Optional[ResultRecord]) -> Optional[str]:
        if (record is None) or (not record.actionable):
            return None
        path = os.path.join(self.root, record.file_path)
        return path if os.path.isfile(path) else None

    # Description:
    #   Replace the preview slot with a job for the current selection,
    #   provided the pane is enabled and the selection resolves to a file.
    #
    def _start_preview(self) -> None:
        self._discard_preview()
        if not self.show_preview:
            return
        record = self.selected_record
        if self._resolve(record) is None:
            return
        try:
            self._preview_job = PreviewJob(record.file_path, record.line_number,
                                           self.settings.preview_command, cwd=self.root)
        except SpawnError as e:
            logging.error(f"Preview could not start: {e}")
            self._preview = PreviewArtifact(str(e), None, failed=True)

    # ------------------------------------------------------------------ #
    #  Orchestration                                                      #
    # ------------------------------------------------------------------ #

    # Description:
    #   One orchestration step, never blocking on subprocess output.
    #
    # Returns:
    #   bool: True if the snapshot changed and a redraw is warranted.
    #
    def tick(self) -> bool:
        if self._dirty:
            self._restart_search()
            return True
        changed = False
        job = self._job
        if (job is not None) and (not job.finished):
            for _ in range(self.settings.batch_size):
                if not job.try_read_next():
                    break
                changed = True
            if job.finished:
                changed = True
            if (self._selection is None) and (job.count > 0):
                self._select(0)
                changed = True
        if self._preview_job is not None:
            outcome = self._preview_job.try_recv()
            if outcome.status != PENDING:
                self._preview = outcome.artifact
                self._preview_job = None
                changed = True
        return changed

    # Description:
    #   Open the selected file in the editor, blocking until it exits. The
    #   caller must have released the terminal beforehand.
    #
    # Returns:
    #   bool: True if an editor was launched and the terminal must be restarted.
    #
    def open_selection(self) -> bool:
        record = self.selected_record
        path = self._resolve(record)
        if path is None:
            return False
        command = build_editor_command(self.settings.editor, record.file_path, record.line_number)
        logging.info(f"Opening editor: {command}")
        try:
            subprocess.run(["sh", "-c", command], cwd=self.root)
        except OSError as e:
            logging.error(f"Editor could not start: {e}")
            self.last_error = f"Editor could not start: {e}"
        return True

    # Tear down both job slots.
    def close(self) -> None:
        if self._job is not None:
            self._job.finalize()
        self._discard_preview()
