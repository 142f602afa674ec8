"""
Backend abstraction for file and command operations inside one project root.
Every path goes through the workspace guard before any I/O happens.
"""

import logging
import os
import signal
import subprocess
import threading
from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional, Tuple, Callable

from errors import AccessDenied

logger = logging.getLogger(__name__)

# on_output(chunk, is_stderr)
OutputCallback = Callable[[str, bool], None]


def is_within(path: str, root: str) -> bool:
    """True if the resolved path equals root or lies beneath it.

    Symlinks are followed on both sides, so a link inside the project that
    points elsewhere is outside. Compares path segments, so a sibling sharing
    a name prefix (root '/ws/proj', path '/ws/proj-evil') is outside.
    """
    real = os.path.realpath(path)
    base = os.path.realpath(root)
    try:
        return os.path.commonpath([real, base]) == base
    except ValueError:
        # Different drives on Windows
        return False


class Backend(ABC):
    """Abstract backend for file system and command operations."""

    @property
    @abstractmethod
    def working_directory(self) -> str:
        """Return the project root."""

    @abstractmethod
    def list_dir(self, path: str) -> List[Dict[str, Any]]:
        """List entries in a directory. Returns list of {name, isDir}."""

    @abstractmethod
    def read_file(self, path: str) -> str:
        """Read file content as text."""

    @abstractmethod
    def write_file(self, path: str, content: str) -> None:
        """Write content to a file (create dirs as needed)."""

    @abstractmethod
    def file_exists(self, path: str) -> bool:
        """Check if a path exists."""

    @abstractmethod
    def is_dir(self, path: str) -> bool:
        """Check if a path is a directory."""

    @abstractmethod
    def is_file(self, path: str) -> bool:
        """Check if a path is a file."""

    @abstractmethod
    def remove_file(self, path: str) -> None:
        """Delete a file."""

    @abstractmethod
    def run_command_stream(
        self,
        command: str,
        timeout: Optional[float] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> Tuple[str, str, int]:
        """Run a shell command in the root. Returns (stdout, stderr, returncode)."""

    def cancel_running_command(self) -> bool:
        """Kill the currently running command, if any. Returns True if killed."""
        return False

    def resolve_path(self, path: str) -> str:
        """Resolve a path relative to the root and enforce the workspace guard."""
        raw = path if os.path.isabs(path) else os.path.join(self.working_directory, path)
        resolved = os.path.normpath(raw)
        self._ensure_under_working(resolved, original=path)
        return resolved

    def relative_path(self, path: str) -> str:
        """Path relative to the root, for ledger records and messages."""
        return os.path.relpath(self.resolve_path(path), self.working_directory)

    def _ensure_under_working(self, resolved: str, original: Optional[str] = None) -> None:
        if not is_within(resolved, self.working_directory):
            shown = original if original is not None else resolved
            raise AccessDenied(f'Access denied: "{shown}" is outside the project boundaries.')


# ============================================================
# Local Backend
# ============================================================

class LocalBackend(Backend):
    """Backend that operates on the local filesystem."""

    def __init__(self, working_directory: str = "."):
        self._working_directory = os.path.abspath(working_directory)
        self._active_process: Optional[subprocess.Popen] = None

    @property
    def working_directory(self) -> str:
        return self._working_directory

    def list_dir(self, path: str) -> List[Dict[str, Any]]:
        full = self.resolve_path(path or ".")
        entries = []
        for name in sorted(os.listdir(full)):
            entries.append({"name": name, "isDir": os.path.isdir(os.path.join(full, name))})
        return entries

    def read_file(self, path: str) -> str:
        full = self.resolve_path(path)
        with open(full, "r", encoding="utf-8", errors="replace") as f:
            return f.read()

    def write_file(self, path: str, content: str) -> None:
        full = self.resolve_path(path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, "w", encoding="utf-8") as f:
            f.write(content)

    def file_exists(self, path: str) -> bool:
        return os.path.exists(self.resolve_path(path))

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(self.resolve_path(path))

    def is_file(self, path: str) -> bool:
        return os.path.isfile(self.resolve_path(path))

    def remove_file(self, path: str) -> None:
        os.remove(self.resolve_path(path))

    def run_command_stream(
        self,
        command: str,
        timeout: Optional[float] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> Tuple[str, str, int]:
        proc = subprocess.Popen(
            command,
            shell=True,
            cwd=self._working_directory,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            bufsize=1,
            start_new_session=True,  # own process group for clean kill
        )
        self._active_process = proc

        stdout_lines: List[str] = []
        stderr_lines: List[str] = []
        start = threading.Event()

        def _reader(pipe, is_stderr: bool):
            start.wait()
            try:
                for line in iter(pipe.readline, ""):
                    if is_stderr:
                        stderr_lines.append(line)
                    else:
                        stdout_lines.append(line)
                    if on_output:
                        try:
                            on_output(line, is_stderr)
                        except Exception:
                            logger.exception("Command output callback failed")
            except (ValueError, OSError):
                # pipe closed underneath us after a kill
                pass

        t_out = threading.Thread(target=_reader, args=(proc.stdout, False), daemon=True)
        t_err = threading.Thread(target=_reader, args=(proc.stderr, True), daemon=True)
        t_out.start()
        t_err.start()
        start.set()

        try:
            rc = proc.wait(timeout=timeout or None)
        except subprocess.TimeoutExpired:
            self._kill_process(proc)
            rc = -1
            timeout_msg = f"Command timed out after {timeout}s\n"
            stderr_lines.append(timeout_msg)
            if on_output:
                on_output(timeout_msg, True)
        finally:
            self._active_process = None
            t_out.join(timeout=1.0)
            t_err.join(timeout=1.0)
            for pipe in (proc.stdout, proc.stderr):
                if pipe:
                    pipe.close()

        return "".join(stdout_lines), "".join(stderr_lines), rc

    def cancel_running_command(self) -> bool:
        """Kill the currently running subprocess, if any. Returns True if killed."""
        proc = self._active_process
        if proc and proc.poll() is None:
            self._kill_process(proc)
            return True
        return False

    @staticmethod
    def _kill_process(proc: subprocess.Popen) -> None:
        """Kill a process and its entire process group."""
        try:
            os.killpg(os.getpgid(proc.pid), signal.SIGTERM)
        except (ProcessLookupError, OSError):
            pass
        try:
            proc.kill()
        except (ProcessLookupError, OSError):
            pass
