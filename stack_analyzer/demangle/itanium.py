"""Generic demangling through binutils' c++filt.

Covers the Itanium C++ ABI and, on binutils >= 2.36, Rust v0 (``_R``).
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from typing import Iterable

logger = logging.getLogger(__name__)

_DEFAULT_TOOL = os.environ.get("STACK_ANALYZER_CXXFILT", "c++filt")

_GENERIC_PREFIXES = (b"_Z", b"__Z", b"_R")


class CxxFiltDemangler:
    """Callable scheme that pipes names through c++filt, with a cache."""

    def __init__(self, tool: str = _DEFAULT_TOOL, timeout: float = 30.0) -> None:
        self.tool = tool
        self.timeout = timeout
        self._cache: dict[bytes, str | None] = {}
        self._available: bool | None = None

    @property
    def available(self) -> bool:
        if self._available is None:
            self._available = shutil.which(self.tool) is not None
            if not self._available:
                logger.info("%s not found; C++ names will not be demangled", self.tool)
        return self._available

    def __call__(self, raw_name: bytes) -> str | None:
        if not raw_name.startswith(_GENERIC_PREFIXES):
            return None
        if raw_name not in self._cache:
            self.prime([raw_name])
        return self._cache.get(raw_name)

    def prime(self, raw_names: Iterable[bytes]) -> None:
        """Demangle many names with a single c++filt process."""
        pending = [
            n for n in dict.fromkeys(raw_names)
            if n.startswith(_GENERIC_PREFIXES) and n not in self._cache
        ]
        if not pending:
            return
        if not self.available:
            self._cache.update(dict.fromkeys(pending))
            return

        names = [n.decode("utf-8", errors="replace") for n in pending]
        try:
            proc = subprocess.run(
                [self.tool],
                input="\n".join(names) + "\n",
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("%s failed: %s", self.tool, e)
            self._cache.update(dict.fromkeys(pending))
            return

        lines = proc.stdout.splitlines()
        if len(lines) != len(names):
            logger.warning(
                "%s returned %d lines for %d names; ignoring output",
                self.tool,
                len(lines),
                len(names),
            )
            self._cache.update(dict.fromkeys(pending))
            return

        for raw, name, line in zip(pending, names, lines):
            line = line.strip()
            # c++filt echoes names it cannot parse
            self._cache[raw] = line if line and line != name else None
