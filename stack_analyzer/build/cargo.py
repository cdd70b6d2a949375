"""Build a cargo binary or example with stack size metadata enabled.

The build keeps .stack_sizes in the final ELF by passing rustc
``-Z emit-stack-sizes`` plus a linker script that marks the section INFO
(not loaded at runtime, but not discarded either).
"""

from __future__ import annotations

import logging
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from stack_analyzer.exceptions import BuildError
from stack_analyzer.models.build import BuildResult, CargoBuildConfig

logger = logging.getLogger(__name__)

LINKER_SCRIPT_NAME = "stack-sizes.x"

LINKER_SCRIPT = """\
SECTIONS
{
  /* INFO makes the section non-allocatable so it is not loaded into memory */
  .stack_sizes (INFO) :
  {
    KEEP(*(.stack_sizes));
  }
}
"""

_CONFIG_FILES = (".cargo/config.toml", ".cargo/config")


def read_cargo_config(project_dir: str) -> dict[str, Any]:
    """Load the project's .cargo/config.toml; empty dict if there is none."""
    for name in _CONFIG_FILES:
        path = Path(project_dir) / name
        if not path.is_file():
            continue
        try:
            return tomllib.loads(path.read_text())
        except tomllib.TOMLDecodeError as e:
            raise BuildError(f"Invalid TOML in {path}: {e}") from e
    return {}


def configured_target(cargo_config: dict[str, Any]) -> str | None:
    target = cargo_config.get("build", {}).get("target")
    return target if isinstance(target, str) else None


def configured_rustflags(cargo_config: dict[str, Any]) -> list[str]:
    flags = cargo_config.get("build", {}).get("rustflags")
    if isinstance(flags, str):
        return flags.split()
    if isinstance(flags, list):
        return [str(f) for f in flags]
    return []


def parse_host_triple(rustc_version_output: str) -> str:
    """Extract ``host: <triple>`` from ``rustc -vV`` output."""
    for line in rustc_version_output.splitlines():
        if line.startswith("host:"):
            return line.split(":", 1)[1].strip()
    raise BuildError("Could not determine host triple from `rustc -vV`")


def _quote(flag: str) -> str:
    return '"' + flag.replace('"', '\\"') + '"'


class CargoBuilder:
    """Run ``cargo build --release`` with stack size emission enabled."""

    def __init__(self, cargo: str = "cargo", rustc: str = "rustc") -> None:
        self.cargo = cargo
        self.rustc = rustc

    def host_triple(self) -> str:
        try:
            proc = subprocess.run(
                [self.rustc, "-vV"], capture_output=True, text=True, check=True
            )
        except (OSError, subprocess.CalledProcessError) as e:
            raise BuildError(f"Failed to run {self.rustc} -vV: {e}") from e
        return parse_host_triple(proc.stdout)

    def build_args(
        self,
        config: CargoBuildConfig,
        target: str,
        rustflags: list[str],
        script_dir: str,
    ) -> list[str]:
        flags = list(rustflags) + [
            "-Z",
            "emit-stack-sizes",
            "-C",
            f"link-arg=-T{LINKER_SCRIPT_NAME}",
            "-C",
            f"link-arg=-L{Path(script_dir).as_posix()}",
        ]
        args = [
            self.cargo,
            "--config",
            f"target.{target}.rustflags=[{', '.join(_quote(f) for f in flags)}]",
            "build",
            "--release",
        ]
        if config.all_features:
            args.append("--all-features")
        elif config.features:
            args.append(f"--features={config.features}")
        args.append(f"--{config.kind}={config.artifact_name}")
        return args

    def build(self, config: CargoBuildConfig) -> BuildResult:
        config.validate()
        cargo_config = read_cargo_config(config.project_dir)
        host = self.host_triple()
        target = configured_target(cargo_config) or host

        with tempfile.TemporaryDirectory(prefix="stack-analyzer-") as script_dir:
            (Path(script_dir) / LINKER_SCRIPT_NAME).write_text(LINKER_SCRIPT)
            args = self.build_args(config, target, configured_rustflags(cargo_config), script_dir)
            logger.info("Running: %s", " ".join(args))
            try:
                subprocess.run(args, cwd=config.project_dir, check=True)
            except FileNotFoundError as e:
                raise BuildError(f"{self.cargo} not found on PATH") from e
            except subprocess.CalledProcessError as e:
                raise BuildError(f"cargo build failed with exit code {e.returncode}") from e

        return BuildResult(
            kind=config.kind,
            name=config.artifact_name,
            target=target,
            host=host,
            project_dir=config.project_dir,
        )
