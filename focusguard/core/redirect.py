"""
Redirect Executor Module

Opens and closes the redirect browser window on behalf of the focus state
machine. The controller owns a single tracked process; duplicate opens and
closes of an untracked slot are no-ops. The dispatcher runs controller calls
off the tick loop and queues their outcomes for the session to apply.
"""

import ntpath
import os
import queue
import subprocess
import sys
import threading
import webbrowser
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from .types import RedirectAction, OPEN_REDIRECT, CLOSE_REDIRECT
from ..utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_REDIRECT_URL = "https://careers.mcdonalds.com/"
PROFILE_DIR_NAME = "focusguard-browser-profile"
TERMINATE_TIMEOUT_SEC = 3.0
# Stand-in pid reported by the dry-run controller while its redirect is open
DRY_RUN_PID = -1


def _chrome_candidates(env: Mapping[str, str]) -> List[str]:
    local_app_data = str(env.get("LOCALAPPDATA") or "")
    program_files = str(env.get("ProgramFiles") or "C:\\Program Files")
    program_files_x86 = str(env.get("ProgramFiles(x86)") or "C:\\Program Files (x86)")
    return [
        ntpath.join(local_app_data, "Google", "Chrome", "Application", "chrome.exe"),
        ntpath.join(program_files, "Google", "Chrome", "Application", "chrome.exe"),
        ntpath.join(program_files_x86, "Google", "Chrome", "Application", "chrome.exe"),
    ]


def _edge_candidate(env: Mapping[str, str]) -> str:
    program_files_x86 = str(env.get("ProgramFiles(x86)") or "C:\\Program Files (x86)")
    return ntpath.join(program_files_x86, "Microsoft", "Edge", "Application", "msedge.exe")


def resolve_browser_executable(
    env: Optional[Mapping[str, str]] = None,
    path_exists: Callable[[str], bool] = os.path.exists,
) -> Optional[Dict[str, str]]:
    """
    Find an installed Chromium-family browser.

    Chrome is preferred (per-user install first), then Edge.

    Returns:
        {'browser': ..., 'executable_path': ...} or None when nothing is installed
    """
    env = os.environ if env is None else env
    for candidate in _chrome_candidates(env):
        if path_exists(candidate):
            return {'browser': "chrome", 'executable_path': candidate}

    edge_path = _edge_candidate(env)
    if path_exists(edge_path):
        return {'browser': "edge", 'executable_path': edge_path}

    return None


def launch_args(url: str, user_data_dir: str) -> List[str]:
    """Command-line arguments for an app-style browser window."""
    return [
        "--new-window",
        f"--app={url}",
        f"--user-data-dir={user_data_dir}",
        "--disable-session-crashed-bubble",
        "--no-first-run",
    ]


def run_taskkill(pid: int) -> bool:
    """Kill a process tree on Windows; True when taskkill succeeded."""
    try:
        completed = subprocess.run(
            ["taskkill", "/PID", str(pid), "/T", "/F"],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except OSError as e:
        logger.log_error_with_context(e, "taskkill")
        return False
    return completed.returncode == 0


class RedirectController:
    """Single-slot browser process controller."""

    def __init__(
        self,
        redirect_url: str = DEFAULT_REDIRECT_URL,
        app_data_dir: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        path_exists: Callable[[str], bool] = os.path.exists,
        spawn_process: Callable[..., Any] = subprocess.Popen,
        kill_runner: Optional[Callable[[int], bool]] = None,
        open_external: Callable[[str], Any] = webbrowser.open,
        platform: str = sys.platform,
        profile_dir_name: str = PROFILE_DIR_NAME,
    ):
        """
        Initialize the controller.

        Args:
            redirect_url: Page to open
            app_data_dir: Directory holding the dedicated browser profile
            env: Environment used for browser discovery
            path_exists: Path existence check used for browser discovery
            spawn_process: Popen-compatible process launcher
            kill_runner: Callable killing a pid; defaults to taskkill on
                Windows and terminate/kill of the tracked process elsewhere
            open_external: Opener used when no browser executable is found
            platform: sys.platform value deciding the default kill strategy
            profile_dir_name: Name of the browser profile directory
        """
        self.redirect_url = redirect_url
        self.env = env
        self.path_exists = path_exists
        self.spawn_process = spawn_process
        self.open_external = open_external
        self.user_data_dir = os.path.join(app_data_dir or os.getcwd(), profile_dir_name)

        if kill_runner is not None:
            self.kill_runner = kill_runner
        elif platform.startswith("win"):
            self.kill_runner = run_taskkill
        else:
            self.kill_runner = self._terminate_tracked

        self._lock = threading.Lock()
        self._process = None
        self._pid: Optional[int] = None
        self._browser = "external"

    def _clear(self) -> None:
        self._process = None
        self._pid = None
        self._browser = "external"

    def _forget_exited(self) -> None:
        """Drop the tracked process if it has already exited."""
        if self._process is None:
            return
        poll = getattr(self._process, "poll", None)
        if poll is not None and poll() is not None:
            logger.debug(f"Tracked browser process {self._pid} exited")
            self._clear()

    def _terminate_tracked(self, pid: int) -> bool:
        process = self._process
        if process is None or process.pid != pid:
            return False
        try:
            process.terminate()
            try:
                process.wait(timeout=TERMINATE_TIMEOUT_SEC)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait(timeout=TERMINATE_TIMEOUT_SEC)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.log_error_with_context(e, "terminate_browser")
            return False
        return True

    def open_redirect(self) -> Dict[str, Any]:
        """
        Open the redirect window unless one is already tracked.

        Returns:
            {'opened': bool, 'pid': int or None, 'browser': str}
        """
        with self._lock:
            self._forget_exited()
            if self._pid:
                return {'opened': False, 'pid': self._pid, 'browser': self._browser}

            resolved = resolve_browser_executable(self.env, self.path_exists)
            if not resolved:
                self.open_external(self.redirect_url)
                return {'opened': True, 'pid': None, 'browser': "external"}

            args = launch_args(self.redirect_url, self.user_data_dir)
            process = self.spawn_process(
                [resolved['executable_path']] + args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )

            pid = getattr(process, "pid", None)
            self._process = process
            self._pid = pid if isinstance(pid, int) and pid > 0 else None
            self._browser = resolved['browser']

            return {'opened': True, 'pid': self._pid, 'browser': self._browser}

    def close_redirect(self) -> Dict[str, Any]:
        """
        Close the tracked redirect window.

        Returns:
            {'closed': bool}; False when nothing was tracked
        """
        with self._lock:
            self._forget_exited()
            if not self._pid:
                return {'closed': False}

            pid = self._pid
            try:
                closed = bool(self.kill_runner(pid))
            finally:
                self._clear()
            return {'closed': closed}

    def get_redirect_state(self) -> Dict[str, Any]:
        """Whether a redirect process is currently tracked."""
        with self._lock:
            self._forget_exited()
            return {'is_open': bool(self._pid), 'pid': self._pid}


class DryRunRedirectController:
    """Controller with the same contract that only logs what it would do."""

    def __init__(self, redirect_url: str = DEFAULT_REDIRECT_URL):
        self.redirect_url = redirect_url
        self._open = False

    def open_redirect(self) -> Dict[str, Any]:
        if self._open:
            return {'opened': False, 'pid': DRY_RUN_PID, 'browser': "dry_run"}
        self._open = True
        logger.info(f"Dry run - would open {self.redirect_url}")
        return {'opened': True, 'pid': DRY_RUN_PID, 'browser': "dry_run"}

    def close_redirect(self) -> Dict[str, Any]:
        if not self._open:
            return {'closed': False}
        self._open = False
        logger.info("Dry run - would close redirect")
        return {'closed': True}

    def get_redirect_state(self) -> Dict[str, Any]:
        return {'is_open': self._open, 'pid': DRY_RUN_PID if self._open else None}


@dataclass(frozen=True)
class ExecutorOutcome:
    """Result of one dispatched action, reported back to the session."""
    action: RedirectAction
    issued_at: Optional[float] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[BaseException] = None


class RedirectDispatcher:
    """
    Runs controller calls on a worker thread, one at a time.

    Submitting while a call is in flight drops the action; the state machine
    will emit again when its dwell timers call for it.
    """

    def __init__(self, controller: Any):
        self.controller = controller
        self._lock = threading.Lock()
        self._busy = False
        self._worker: Optional[threading.Thread] = None
        self._outcomes: "queue.Queue[ExecutorOutcome]" = queue.Queue()

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._busy

    def submit(self, action: Optional[RedirectAction], issued_at: Optional[float] = None) -> bool:
        """
        Hand an action to the worker without waiting for it.

        Returns:
            True when the action was accepted
        """
        if action is None:
            return False

        with self._lock:
            if self._busy:
                logger.debug(f"Executor busy, dropping {action.type}")
                return False
            self._busy = True
            self._worker = threading.Thread(
                target=self._run, args=(action, issued_at), name="focusguard-redirect", daemon=True
            )
            worker = self._worker

        worker.start()
        return True

    def _run(self, action: RedirectAction, issued_at: Optional[float]) -> None:
        try:
            if action.type == OPEN_REDIRECT:
                result = self.controller.open_redirect()
            elif action.type == CLOSE_REDIRECT:
                result = self.controller.close_redirect()
            else:
                raise ValueError(f"Unknown redirect action: {action.type}")
            logger.log_redirect_action(action.type, result, action.reason)
            self._outcomes.put(ExecutorOutcome(action, issued_at, result=result))
        except Exception as e:
            logger.log_error_with_context(e, f"redirect {action.type}")
            self._outcomes.put(ExecutorOutcome(action, issued_at, error=e))
        finally:
            with self._lock:
                self._busy = False

    def drain(self) -> List[ExecutorOutcome]:
        """Outcomes reported since the last call, oldest first."""
        outcomes = []
        while True:
            try:
                outcomes.append(self._outcomes.get_nowait())
            except queue.Empty:
                return outcomes

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until the in-flight call finishes; for shutdown and tests."""
        with self._lock:
            worker = self._worker
        if worker is not None:
            worker.join(timeout)
        return not self.busy
