"""Chrome process management utilities."""

from __future__ import annotations
from typing import NamedTuple, Iterable
from pathlib import Path
import os
import subprocess
import re
import sys
import time

from .constants import CHROME_EXECUTABLE, CHROME_PROFILE_DIR_ENV

_DEBUG_PORT_RE = re.compile(r"--remote-debugging-port(?:=(\d+))?")


class ChromeStatus(NamedTuple):
    """Status of Chrome processes on the system."""

    running: bool
    remote_debug: bool
    pids: tuple[int, ...]
    debug_port: int | None = None


def scan_chrome_processes(names: Iterable[str]) -> ChromeStatus:
    """
    Check if Chrome is running and whether it has remote debugging enabled.

    Parameters
    ----------
    names : Iterable[str]
        Process name patterns to search for (e.g., "Google Chrome")

    Returns
    -------
    ChromeStatus
        Whether Chrome runs, whether any process carries the remote debugging
        flag (and on which port), and the matching PIDs.
    """
    names = tuple(names)
    try:
        result = subprocess.run(
            ["ps", "-axo", "pid,command"], capture_output=True, text=True, check=True
        )
    except (subprocess.SubprocessError, OSError):
        # If we can't scan processes, assume nothing is running
        return ChromeStatus(False, False, ())

    pids = []
    has_remote_debug = False
    debug_port: int | None = None

    for line in result.stdout.splitlines():
        if not any(name in line for name in names):
            continue
        parts = line.strip().split(None, 1)
        if len(parts) < 2:
            continue
        try:
            pids.append(int(parts[0]))
        except ValueError:
            continue

        flag = _DEBUG_PORT_RE.search(line)
        if flag:
            has_remote_debug = True
            if flag.group(1) and debug_port is None:
                debug_port = int(flag.group(1))

    return ChromeStatus(
        running=bool(pids),
        remote_debug=has_remote_debug,
        pids=tuple(pids),
        debug_port=debug_port,
    )


def quit_chrome(pids: Iterable[int]) -> bool:
    """
    Terminate Chrome with SIGTERM, escalating to SIGKILL for survivors.

    Returns True if Chrome was successfully quit.
    """
    pids = tuple(pids)
    if not pids:
        return True

    try:
        for pid in pids:
            try:
                os.kill(pid, 15)  # SIGTERM
            except ProcessLookupError:
                pass
        time.sleep(2)

        for pid in pids:
            try:
                os.kill(pid, 0)
                os.kill(pid, 9)  # SIGKILL
            except ProcessLookupError:
                pass

        time.sleep(1)
        return True
    except OSError:
        return False


def get_chrome_profile_dir() -> str:
    """
    Return the user-data directory for a Chrome launched with remote debugging.

    Resolution order
    ----------------
    1. $GOOGLE_CHROME_PROFILE_DIR - explicit override.
    2. A dedicated "Chrome-BetterGemini" profile next to the platform's
       default Chrome profile, so Gemini logins persist between launches.
    """
    env_dir = os.environ.get(CHROME_PROFILE_DIR_ENV)
    if env_dir:
        return os.path.expanduser(env_dir)

    if sys.platform == "darwin":
        base = Path("~/Library/Application Support/Google")
    else:
        base = Path("~/.config")
    return os.path.expanduser(str(base / "Chrome-BetterGemini"))


def build_launch_args(
    port: int, profile_dir: str, extra: Iterable[str] | None = None
) -> list[str]:
    """
    Construct the argv list for launching Chrome head-fully with the required
    debugging and user-profile flags.
    """
    args = [
        f"--remote-debugging-port={port}",
        f"--user-data-dir={profile_dir}",
        "--disable-background-timer-throttling",
        "--no-first-run",
        "--no-default-browser-check",
    ]
    if extra:
        args.extend(extra)
    return args


def launch_chrome_headful(port: int, profile_dir: Path | str) -> subprocess.Popen[str]:
    """
    Start a *head-ful* Google Chrome instance listening on *port* and using
    *profile_dir* as the user-data directory.
    """
    flags = [CHROME_EXECUTABLE, *build_launch_args(port, str(profile_dir))]

    # Spawn Chrome in the background; suppress noisy output
    return subprocess.Popen(
        flags,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        text=True,
        env=os.environ.copy(),
    )
