"""Tests for CargoBuilder. subprocess is mocked, so no Rust toolchain needed."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from stack_analyzer.build.cargo import (
    LINKER_SCRIPT,
    LINKER_SCRIPT_NAME,
    CargoBuilder,
    configured_rustflags,
    configured_target,
    parse_host_triple,
    read_cargo_config,
)
from stack_analyzer.exceptions import BuildError
from stack_analyzer.models.build import CargoBuildConfig

_RUSTC_VV = """rustc 1.80.0-nightly (abcdef 2024-05-01)
binary: rustc
commit-hash: abcdef
host: x86_64-unknown-linux-gnu
release: 1.80.0-nightly
LLVM version: 18.1.4
"""


class TestCargoConfig:
    def test_no_config(self, tmp_path: Path):
        assert read_cargo_config(str(tmp_path)) == {}

    def test_reads_target_and_rustflags(self, tmp_path: Path):
        (tmp_path / ".cargo").mkdir()
        (tmp_path / ".cargo" / "config.toml").write_text(
            '[build]\ntarget = "thumbv7em-none-eabihf"\n'
            'rustflags = ["-C", "link-arg=-Tlink.x"]\n'
        )
        config = read_cargo_config(str(tmp_path))
        assert configured_target(config) == "thumbv7em-none-eabihf"
        assert configured_rustflags(config) == ["-C", "link-arg=-Tlink.x"]

    def test_string_rustflags(self):
        assert configured_rustflags({"build": {"rustflags": "-C opt-level=z"}}) == ["-C", "opt-level=z"]

    def test_missing_keys(self):
        assert configured_target({}) is None
        assert configured_rustflags({"build": {}}) == []

    def test_invalid_toml(self, tmp_path: Path):
        (tmp_path / ".cargo").mkdir()
        (tmp_path / ".cargo" / "config.toml").write_text("[build\n")
        with pytest.raises(BuildError, match="Invalid TOML"):
            read_cargo_config(str(tmp_path))


class TestHostTriple:
    def test_parse(self):
        assert parse_host_triple(_RUSTC_VV) == "x86_64-unknown-linux-gnu"

    def test_parse_missing(self):
        with pytest.raises(BuildError):
            parse_host_triple("rustc 1.80.0\n")

    def test_rustc_not_found(self):
        with patch("stack_analyzer.build.cargo.subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(BuildError):
                CargoBuilder().host_triple()


class TestBuildArgs:
    def test_bin_with_features(self):
        config = CargoBuildConfig(bin="app", features="defmt rtt")
        args = CargoBuilder().build_args(config, "thumbv7em-none-eabihf", ["-C", "link-arg=-Tlink.x"], "/tmp/s")
        assert args == [
            "cargo",
            "--config",
            'target.thumbv7em-none-eabihf.rustflags=["-C", "link-arg=-Tlink.x", "-Z", '
            '"emit-stack-sizes", "-C", "link-arg=-Tstack-sizes.x", "-C", "link-arg=-L/tmp/s"]',
            "build",
            "--release",
            "--features=defmt rtt",
            "--bin=app",
        ]

    def test_example_all_features_wins(self):
        config = CargoBuildConfig(example="blinky", features="x", all_features=True)
        args = CargoBuilder().build_args(config, "x86_64-unknown-linux-gnu", [], "/tmp/s")
        assert args[-2:] == ["--all-features", "--example=blinky"]
        assert "--features=x" not in args

    def test_quotes_embedded_quotes(self):
        args = CargoBuilder().build_args(CargoBuildConfig(bin="a"), "t", ['--cfg=feature="x"'], "/d")
        assert '"--cfg=feature=\\"x\\""' in args[2]


class TestBuild:
    def test_runs_cargo(self, tmp_path: Path):
        seen: dict = {}

        def fake_run(args, **kwargs):
            if args[0] == "rustc":
                return subprocess.CompletedProcess(args, 0, stdout=_RUSTC_VV, stderr="")
            # linker script exists while cargo runs
            script_dir = args[2].rsplit("link-arg=-L", 1)[1].rstrip('"]')
            seen["script"] = (Path(script_dir) / LINKER_SCRIPT_NAME).read_text()
            seen["args"] = args
            seen["cwd"] = kwargs.get("cwd")
            return subprocess.CompletedProcess(args, 0)

        config = CargoBuildConfig(project_dir=str(tmp_path), example="blinky")
        with patch("stack_analyzer.build.cargo.subprocess.run", side_effect=fake_run):
            result = CargoBuilder().build(config)

        assert result.kind == "example"
        assert result.name == "blinky"
        assert result.target == result.host == "x86_64-unknown-linux-gnu"
        assert seen["script"] == LINKER_SCRIPT
        assert seen["cwd"] == str(tmp_path)
        assert "--example=blinky" in seen["args"]

    def test_cargo_failure(self, tmp_path: Path):
        def fake_run(args, **kwargs):
            if args[0] == "rustc":
                return subprocess.CompletedProcess(args, 0, stdout=_RUSTC_VV, stderr="")
            raise subprocess.CalledProcessError(101, args)

        with patch("stack_analyzer.build.cargo.subprocess.run", side_effect=fake_run):
            with pytest.raises(BuildError, match="101"):
                CargoBuilder().build(CargoBuildConfig(project_dir=str(tmp_path), bin="app"))

    @pytest.mark.parametrize(
        "kwargs", [{}, {"bin": "a", "example": "b"}], ids=["neither", "both"]
    )
    def test_requires_exactly_one_artifact(self, kwargs):
        with pytest.raises(BuildError, match="either"):
            CargoBuilder().build(CargoBuildConfig(**kwargs))
