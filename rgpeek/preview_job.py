# Asynchronous preview of one file location rendered by `bat`.
#
# The preview is only useful once complete, so the background thread reads
# the whole output in one go, reaps the process itself and posts a single
# outcome. Cancelling kills the process and never waits: the thread does
# the reaping and drops its outcome once it sees the job was cancelled.
#
# Example:
#   job = PreviewJob("src/main.py", 42)
#   outcome = job.try_recv()     # PENDING until the render is done
#   job.cancel()                 # superseded, output is never surfaced


import logging
import queue
import subprocess
import threading
from typing import List, Optional, Sequence

from .process import kill_tree, spawn
from .schema import (FAILED, PENDING, PREVIEW_PROGRAM, READY, PreviewArtifact,
                     PreviewOutcome)


# Description:
#   Build the argument list for rendering *file_path* around *line_number*.
#
# Parameters:
#   file_path (str): File to render.
#   line_number (int | None): Line to highlight, if known.
#   program (Sequence[str]): Preview executable.
#
# Returns:
#   List[str]: Full command, the path always last.
#
def build_preview_command(file_path: str, line_number: Optional[int],
                          program: Sequence[str] = PREVIEW_PROGRAM) -> List[str]:
    command = list(program) + ["--color=always", "-n"]
    if line_number is not None:
        command += ["-H", str(line_number)]
    command.append(file_path)
    return command


class PreviewJob:
    # Description:
    #   Spawn the preview process for one target and start collecting output.
    #
    # Parameters:
    #   file_path (str): File to render.
    #   line_number (int | None): Target line.
    #   program (Sequence[str]): Preview executable.
    #   cwd (str | None): Directory *file_path* is relative to.
    #
    # Raises:
    #   SpawnError: If the process cannot be started.
    #
    def __init__(self, file_path: str, line_number: Optional[int],
                 program: Sequence[str] = PREVIEW_PROGRAM, cwd: Optional[str] = None) -> None:
        self.file_path: str = file_path
        self.line_number: Optional[int] = line_number
        self.command: List[str] = build_preview_command(file_path, line_number, program)
        self.process: subprocess.Popen = spawn(self.command, cwd=cwd, merge_stderr=True)
        self.cancelled: bool = False
        self.delivered: bool = False
        self._outcomes: "queue.Queue[PreviewOutcome]" = queue.Queue(maxsize=1)
        self._cancel = threading.Event()
        self._thread = threading.Thread(
            target=self._collect,
            name=f"preview-{self.process.pid}",
            daemon=True,
        )
        self._thread.start()
        logging.debug(f"Preview job started (pid {self.pid}) for {file_path}:{line_number}.")

    def __repr__(self) -> str:
        return f"PreviewJob(pid={self.pid}, target={self.file_path}:{self.line_number}, cancelled={self.cancelled})"

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def thread_alive(self) -> bool:
        return self._thread.is_alive()

    # Body of the background thread: read everything, reap, report once.
    def _collect(self) -> None:
        stream = self.process.stdout
        try:
            with stream:
                content = stream.read()
        except (OSError, ValueError) as e:
            content = f"Preview read failed: {e}".encode()
        exit_code = self.process.wait()
        if self._cancel.is_set():
            logging.debug(f"Dropping output of cancelled preview {self.pid}.")
            return
        text = content.decode("utf-8", errors="replace")
        if exit_code == 0:
            outcome = PreviewOutcome(READY, PreviewArtifact(text, self.line_number))
        else:
            reason = text.strip() or f"{self.command[0]} exited with status {exit_code}"
            outcome = PreviewOutcome(FAILED, PreviewArtifact(reason, None, failed=True), reason)
        self._outcomes.put(outcome)

    # Description:
    #   Non-blocking poll for the finished preview. Each outcome other than
    #   PENDING is returned exactly once; a cancelled job stays PENDING.
    #
    # Returns:
    #   PreviewOutcome: Current state of the job.
    #
    def try_recv(self) -> PreviewOutcome:
        if self.cancelled or self.delivered:
            return PreviewOutcome(PENDING)
        try:
            outcome = self._outcomes.get_nowait()
        except queue.Empty:
            return PreviewOutcome(PENDING)
        self.delivered = True
        if outcome.status == FAILED:
            logging.warning(f"Preview of {self.file_path} failed: {outcome.reason[:200]}")
        return outcome

    # Kill the process without waiting for it; the collector thread reaps it.
    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        self._cancel.set()
        kill_tree(self.process)
        logging.debug(f"Preview job {self.pid} cancelled.")
