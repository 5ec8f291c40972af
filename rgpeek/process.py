# Subprocess spawn and teardown shared by the search and preview jobs.
#
# Both jobs launch one external program with a piped stdout, hand that
# pipe to a background reader, and must be able to get rid of the process
# at any moment. Killing goes through psutil so helper processes started
# by a wrapper command (e.g. a shell script standing in for `rg`) die too.
#
# Example:
#   proc = spawn(["rg", "--column", "foo"], cwd="/src")
#   kill_tree(proc)
#   reap(proc)


import logging
import subprocess
from typing import Optional, Sequence

import psutil

from .schema import REAP_TIMEOUT, SpawnError


# Description:
#   Start *command* with stdout piped and stdin detached from the terminal.
#
# Parameters:
#   command (Sequence[str]): Program and arguments.
#   cwd (str | None): Working directory for the child.
#   merge_stderr (bool): Send stderr into stdout instead of discarding it.
#
# Returns:
#   subprocess.Popen: Handle with a readable binary stdout.
#
# Raises:
#   SpawnError: If the program cannot be started or stdout is unavailable.
#
def spawn(command: Sequence[str], cwd: Optional[str] = None,
          merge_stderr: bool = False) -> subprocess.Popen:
    try:
        proc = subprocess.Popen(
            list(command),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if merge_stderr else subprocess.DEVNULL,
            cwd=cwd,
            close_fds=True,
        )
    except (OSError, ValueError) as e:
        raise SpawnError(f"Failed to start {command[0]!r}: {e}") from e
    if proc.stdout is None:
        kill_tree(proc)
        reap(proc)
        raise SpawnError(f"No stdout captured for {command[0]!r}.")
    logging.debug(f"Spawned pid {proc.pid}: {' '.join(command)}")
    return proc


# Description:
#   Send SIGKILL to *proc* and every descendant still alive. Never waits.
#   The last signal goes through psutil, which refuses a pid that now
#   names another process, and only while `proc.returncode` is unset
#   (a thread blocked in `proc.wait()` hides the exit from `poll()`).
#
# Parameters:
#   proc (subprocess.Popen): Process to kill.
#
def kill_tree(proc: subprocess.Popen) -> None:
    if proc.poll() is not None:
        return
    try:
        parent = psutil.Process(proc.pid)
        children = parent.children(recursive=True)
    except psutil.Error:
        logging.debug(f"Process {proc.pid} exited before it could be killed.")
        return
    for child in children:
        try:
            child.kill()
        except psutil.Error:
            pass
    if proc.returncode is not None:
        return
    try:
        parent.kill()
    except psutil.Error:
        logging.debug(f"Process {proc.pid} exited before it could be killed.")


# Description:
#   Wait for *proc* to exit, bounded by *timeout*.
#
# Parameters:
#   proc (subprocess.Popen): Process that was killed or is finishing.
#   timeout (float): Seconds to wait before giving up.
#
# Returns:
#   int | None: Exit status, or None if the process is still running.
#
def reap(proc: subprocess.Popen, timeout: float = REAP_TIMEOUT) -> Optional[int]:
    try:
        return proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        logging.warning(f"Process {proc.pid} still running after {timeout}s.")
        return None


# Return True if *pid* names a process that has not exited (zombies count as gone).
def is_alive(pid: int) -> bool:
    try:
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
