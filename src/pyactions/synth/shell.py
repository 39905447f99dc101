# synth/shell.py
from __future__ import annotations

import shlex
from typing import Sequence

HEREDOC_DELIMITER = "PYACTIONS_EOF"


def pip_install(requirements: Sequence[str]) -> str:
    return "python -m pip install " + " ".join(shlex.quote(r) for r in requirements)


def embed_script(code: str, interpreter: str, pre_commands: Sequence[str] = ()) -> str:
    """
    Wrap `code` in a shell command that feeds it to `interpreter` on stdin.

    The heredoc delimiter is quoted, so the shell does no expansion inside
    the script body.

    Raises:
        ValueError: if a line of `code` equals the delimiter
    """
    lines = code.splitlines()
    if HEREDOC_DELIMITER in (line.strip() for line in lines):
        raise ValueError(f"Script contains the heredoc delimiter line {HEREDOC_DELIMITER!r}")

    out = list(pre_commands)
    out.append(f"{interpreter} << '{HEREDOC_DELIMITER}'")
    out.extend(lines)
    out.append(HEREDOC_DELIMITER)
    return "\n".join(out) + "\n"
