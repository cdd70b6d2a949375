"""Rust legacy symbol demangling (``_ZN...E``), as rustc-demangle prints it.

    _ZN4core3fmt5write17h0123456789abcdefE -> core::fmt::write::h0123456789abcdef
"""

from __future__ import annotations

import re

_PREFIXES = ("__ZN", "_ZN", "ZN")

_DIGITS_RE = re.compile(r"\d+")
# Suffix appended by LLVM when it clones or renames a symbol (ThinLTO)
_LLVM_SUFFIX_RE = re.compile(r"\.llvm\.[0-9A-F@]+$")

_ESCAPES = {
    "SP": "@",
    "BP": "*",
    "RF": "&",
    "LT": "<",
    "GT": ">",
    "LP": "(",
    "RP": ")",
    "C": ",",
}


def demangle_rust_legacy(raw_name: bytes) -> str | None:
    try:
        name = raw_name.decode("ascii")
    except UnicodeDecodeError:
        return None

    for prefix in _PREFIXES:
        if name.startswith(prefix):
            inner = name[len(prefix) :]
            break
    else:
        return None

    inner = _LLVM_SUFFIX_RE.sub("", inner)
    components = _split_path(inner)
    if not components:
        return None

    try:
        return "::".join(_unescape(c) for c in components)
    except ValueError:
        return None


def _split_path(inner: str) -> list[str] | None:
    """Split ``<len><ident>...E`` into identifiers; None if malformed."""
    components: list[str] = []
    pos = 0
    while True:
        if pos >= len(inner):
            return None
        if inner[pos] == "E":
            pos += 1
            break
        m = _DIGITS_RE.match(inner, pos)
        if not m:
            return None
        length = int(m.group())
        start = m.end()
        if length == 0 or start + length > len(inner):
            return None
        components.append(inner[start : start + length])
        pos = start + length

    # anything left over (e.g. a C++ parameter list "v") means this is not Rust
    if pos != len(inner):
        return None
    return components


def _unescape(component: str) -> str:
    if component.startswith("_$"):
        component = component[1:]

    out: list[str] = []
    i = 0
    while i < len(component):
        if component.startswith("..", i):
            out.append("::")
            i += 2
        elif component[i] == "$":
            end = component.find("$", i + 1)
            if end < 0:
                raise ValueError(f"Unterminated escape in {component!r}")
            out.append(_decode_escape(component[i + 1 : end]))
            i = end + 1
        else:
            out.append(component[i])
            i += 1
    return "".join(out)


def _decode_escape(code: str) -> str:
    if code in _ESCAPES:
        return _ESCAPES[code]
    if code.startswith("u") and len(code) > 1:
        try:
            return chr(int(code[1:], 16))
        except ValueError:
            pass
    raise ValueError(f"Unknown escape ${code}$")
