# synth/runtimes.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict

from .. import settings


@dataclass(frozen=True)
class RuntimeFamily:
    """An interpreter a synthesized script can run under, and how to set it up."""
    name: str
    setup_name: str
    setup_action: str
    version_input: str
    default_version: str
    command: str  # {version} is substituted

    @property
    def setup_pattern(self) -> re.Pattern[str]:
        # "actions/setup-python@v5" matches "actions/setup-python@<anything>"
        repo = self.setup_action.split("@", 1)[0]
        return re.compile(rf"^{re.escape(repo)}(@|$)")

    def is_setup(self, uses: str | None) -> bool:
        return bool(uses) and self.setup_pattern.match(uses) is not None

    def interpreter(self, version: str) -> str:
        return self.command.format(version=version)


RUNTIMES: Dict[str, RuntimeFamily] = {
    "python": RuntimeFamily(
        name="python",
        setup_name="Setup Python",
        setup_action="actions/setup-python@v5",
        version_input="python-version",
        default_version=settings.PYTHON_VERSION,
        command="python -",
    ),
    "uv": RuntimeFamily(
        name="uv",
        setup_name="Setup uv",
        setup_action="astral-sh/setup-uv@v6",
        version_input="python-version",
        default_version=settings.PYTHON_VERSION,
        command="uv run --no-project --python {version} -",
    ),
}


def get_runtime(name: str) -> RuntimeFamily:
    try:
        return RUNTIMES[name]
    except KeyError:
        raise ValueError(
            f"Unknown runtime {name!r}. Known runtimes: {', '.join(sorted(RUNTIMES))}"
        ) from None
