# Line-oriented reader over a subprocess's stdout.
#
# One daemon thread per reader performs the only blocking reads, pushing
# complete lines into a queue that the UI thread drains without blocking.
# The end of the stream is signalled by a `None` marker in the queue. A
# consumer that loses interest calls `close()`; the thread notices on its
# next line and exits without queueing anything else.
#
# Example:
#   reader = LineReader(proc)
#   line = reader.poll()        # bytes, or None if nothing is ready yet
#   if reader.done: ...         # producer finished and queue drained
#   for line in LineReader(other_proc): ...   # blocking iteration


import logging
import queue
import subprocess
import threading
from typing import IO, Iterator, Optional


# Remove the line terminator from *line*.
def _strip_terminator(line: bytes) -> bytes:
    line = line[:-1]
    if line.endswith(b"\r"):
        line = line[:-1]
    return line


class LineReader:
    # Description:
    #   Start the background thread reading *proc.stdout*.
    #
    # Parameters:
    #   proc (subprocess.Popen): Child with a piped binary stdout.
    #
    # Raises:
    #   ValueError: If the process has no stdout pipe.
    #
    def __init__(self, proc: subprocess.Popen) -> None:
        if proc.stdout is None:
            raise ValueError("LineReader requires a process with a piped stdout.")
        self.pid: int = proc.pid
        self.done: bool = False
        self._lines: "queue.Queue[Optional[bytes]]" = queue.Queue()
        self._closed = threading.Event()
        self._thread = threading.Thread(
            target=self._pump,
            args=(proc.stdout,),
            name=f"line-reader-{proc.pid}",
            daemon=True,
        )
        self._thread.start()

    def __repr__(self) -> str:
        return f"LineReader(pid={self.pid}, done={self.done}, closed={self.closed})"

    # Body of the reader thread. Only complete lines are forwarded.
    def _pump(self, stream: IO[bytes]) -> None:
        try:
            with stream:
                for line in stream:
                    if self._closed.is_set():
                        return
                    if not line.endswith(b"\n"):
                        break
                    self._lines.put(_strip_terminator(line))
        except (OSError, ValueError) as e:
            logging.debug(f"Reader for pid {self.pid} stopped: {e}")
        finally:
            self._lines.put(None)

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def thread_alive(self) -> bool:
        return self._thread.is_alive()

    # Return one queued line without blocking, or None if there is none.
    def poll(self) -> Optional[bytes]:
        if self.done or self.closed:
            return None
        try:
            line = self._lines.get_nowait()
        except queue.Empty:
            return None
        if line is None:
            self.done = True
        return line

    # Blocking iteration over the remaining lines.
    def __iter__(self) -> Iterator[bytes]:
        while not (self.done or self.closed):
            line = self._lines.get()
            if line is None:
                self.done = True
                return
            yield line

    # Stop consuming. The thread exits on its own once its read returns.
    def close(self) -> None:
        self._closed.set()
