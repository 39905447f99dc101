# synth/bundler.py
from __future__ import annotations

import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional

from .. import settings
from ..errors import BundleFailure

# ---------------------------------------------------------------------
# External single-file bundler
# ---------------------------------------------------------------------
# The default bundler is stickytape (pip install stickytape): given a
# script, it emits one file that carries every first-party module the
# script imports from the given search paths. Any command with the same
# interface works:
#
#   <command> <entry.py> [--add-python-path DIR ...]  -> bundled script on stdout
# ---------------------------------------------------------------------


def find_bundler(command: str | None = None) -> Optional[str]:
    """Resolve the bundler executable, or None if it is not installed."""
    return shutil.which(command or settings.BUNDLER)


def bundle(
    entry_code: str,
    *,
    search_paths: Iterable[Path] = (),
    command: str | None = None,
    timeout: int | None = None,
) -> str:
    """
    Bundle `entry_code` into a single self-contained script.

    Raises:
        BundleFailure: if the bundler is missing, times out, or exits non-zero
    """
    command = command or settings.BUNDLER
    exe = find_bundler(command)
    if exe is None:
        raise BundleFailure(command=command, message="not found on PATH")

    with tempfile.TemporaryDirectory(prefix="pyactions-") as tmp:
        entry = Path(tmp) / "entry.py"
        entry.write_text(entry_code, encoding="utf-8")

        cmd: List[str] = [exe, str(entry)]
        for p in search_paths:
            cmd.extend(["--add-python-path", str(p)])

        try:
            proc = subprocess.run(
                cmd,
                cwd=tmp,
                text=True,
                capture_output=True,
                timeout=timeout or settings.BUNDLE_TIMEOUT,
            )
        except subprocess.TimeoutExpired as e:
            raise BundleFailure(command=command, message=f"timed out after {e.timeout}s") from e
        except OSError as e:
            raise BundleFailure(command=command, message=str(e)) from e

    if proc.returncode != 0:
        raise BundleFailure(
            command=command,
            message=(proc.stderr or proc.stdout).strip()[-2000:] or "no output",
            exit_code=proc.returncode,
        )
    if not proc.stdout.strip():
        raise BundleFailure(command=command, message="bundler produced no output")
    return proc.stdout
