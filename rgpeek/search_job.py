# Incremental search job backed by one `rg` process.
#
# The job owns the process, a LineReader over its stdout and the growing
# list of parsed records. The UI thread calls `try_read_next()` each tick
# to move at most one line from the reader into the record list, so the
# amount of work per call is constant no matter how fast `rg` produces.
#
# Example:
#   job = SearchJob(SearchOptions(query="foo"))
#   while job.try_read_next(): pass
#   print(job.count, job.get_result(0))
#   job.finalize()


import logging
import subprocess
from typing import List, Optional, Sequence

from .ansi import find_separators, strip_ansi_bytes
from .process import kill_tree, reap, spawn
from .reader import LineReader
from .schema import SEARCH_PROGRAM, ResultRecord, SearchOptions


# Description:
#   Build the argument list for one search.
#
# Parameters:
#   options (SearchOptions): Query, hidden flag and globs.
#   program (Sequence[str]): Search executable (plus any leading arguments).
#
# Returns:
#   List[str]: Full command, the query always last.
#
def build_search_command(options: SearchOptions,
                         program: Sequence[str] = SEARCH_PROGRAM) -> List[str]:
    command = list(program)
    command += ["--column", "--color=always"]
    command.append("--hidden" if options.show_hidden else "--no-hidden")
    for glob in options.globs:
        command += ["--glob", glob]
    command.append(options.query)
    return command


# Description:
#   Parse one raw output line of the form `path:line:column:content`.
#   Separators are located in the raw bytes (escapes skipped) and each
#   field is stripped of styling on its own. Any failure yields a record
#   without a location rather than an exception.
#
# Parameters:
#   raw (bytes): Line without its terminator.
#
# Returns:
#   ResultRecord: Parsed record, display text always set.
#
def parse_line(raw: bytes) -> ResultRecord:
    display_text = raw.decode("utf-8", errors="replace")
    separators = find_separators(raw, b":", count=2)
    if len(separators) < 2:
        return ResultRecord(display_text, raw=raw)
    first, second = separators
    try:
        file_path = strip_ansi_bytes(raw[:first]).decode("utf-8")
        line_number = int(strip_ansi_bytes(raw[first + 1:second]).decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return ResultRecord(display_text, raw=raw)
    if (not file_path) or (line_number < 0):
        return ResultRecord(display_text, raw=raw)
    return ResultRecord(display_text, file_path, line_number, raw=raw)


class SearchJob:
    # Description:
    #   Spawn the search process for *options* and attach a reader.
    #
    # Parameters:
    #   options (SearchOptions): What to search for.
    #   program (Sequence[str]): Search executable.
    #   cwd (str | None): Directory searched by the process.
    #
    # Raises:
    #   SpawnError: If the process cannot be started.
    #
    def __init__(self, options: SearchOptions, program: Sequence[str] = SEARCH_PROGRAM,
                 cwd: Optional[str] = None) -> None:
        self.options: SearchOptions = options
        self.command: List[str] = build_search_command(options, program)
        self.process: subprocess.Popen = spawn(self.command, cwd=cwd)
        self.reader: LineReader = LineReader(self.process)
        self.finished: bool = False
        self.exit_code: Optional[int] = None
        self._results: List[ResultRecord] = []
        logging.info(f"Search job started (pid {self.pid}) for {options.query!r}.")

    def __repr__(self) -> str:
        return f"SearchJob(pid={self.pid}, query={self.options.query!r}, count={self.count}, finished={self.finished})"

    def __len__(self) -> int:
        return len(self._results)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def count(self) -> int:
        return len(self._results)

    # Live view of the records; callers must not mutate it.
    @property
    def results(self) -> Sequence[ResultRecord]:
        return self._results

    # Return the record at *index*, or None when out of range.
    def get_result(self, index: int) -> Optional[ResultRecord]:
        if 0 <= index < len(self._results):
            return self._results[index]
        return None

    # Description:
    #   Move at most one line from the reader into the results, without
    #   blocking. When the reader reports the end of the stream, the
    #   process is killed if it is still running, reaped, and the job is
    #   marked finished.
    #
    # Returns:
    #   bool: True if a record was appended.
    #
    def try_read_next(self) -> bool:
        if self.finished:
            return False
        line = self.reader.poll()
        if line is not None:
            self._results.append(parse_line(line))
            return True
        if self.reader.done:
            kill_tree(self.process)
            self.exit_code = reap(self.process)
            self.finished = True
            logging.info(f"Search job {self.pid} drained with {self.count} results (exit {self.exit_code}).")
        return False

    # Description:
    #   Stop the job for good. Kills the process if it is still running,
    #   waits for it (bounded) and detaches from the reader. Safe to call
    #   more than once.
    #
    def finalize(self) -> None:
        if self.finished:
            return
        self.finished = True
        self.reader.close()
        kill_tree(self.process)
        self.exit_code = reap(self.process)
        logging.info(f"Search job {self.pid} finalized after {self.count} results.")
