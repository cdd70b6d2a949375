"""Tests for demangling schemes and the demangler registry."""

from __future__ import annotations

import subprocess
from unittest.mock import patch

import pytest

from stack_analyzer.demangle.base import DemanglerDescriptor, looks_mangled
from stack_analyzer.demangle.itanium import CxxFiltDemangler
from stack_analyzer.demangle.registry import DemanglerRegistry, create_default_registry
from stack_analyzer.demangle.rust import demangle_rust_legacy


class TestRustLegacy:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            (b"_ZN4core3fmt5write17h0123456789abcdefE", "core::fmt::write::h0123456789abcdef"),
            (b"_ZN3fooE", "foo"),
            (b"ZN3foo3barE", "foo::bar"),
            (b"__ZN3foo3barE", "foo::bar"),
            (
                b"_ZN60_$LT$alloc..vec..Vec$LT$T$GT$$u20$as$u20$core..ops..Drop$GT$"
                b"4drop17h1234567890abcdefE",
                "<alloc::vec::Vec<T> as core::ops::Drop>::drop::h1234567890abcdef",
            ),
            (b"_ZN4test8run_test28_$u7b$$u7b$closure$u7d$$u7d$E", "test::run_test::{{closure}}"),
            (b"_ZN3app4main17h0000000000000000E.llvm.1234ABCD", "app::main::h0000000000000000"),
        ],
    )
    def test_demangles(self, raw, expected):
        assert demangle_rust_legacy(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        [
            b"main",
            b"_ZN3foo3barEv",  # C++ function with a parameter list
            b"_ZN3foo",  # no terminating E
            b"_ZN99fooE",  # length runs past the end
            b"_ZN4a$XX$E",  # unknown escape
            b"_ZNE",
            b"_ZN3f\xffoE",
        ],
    )
    def test_declines(self, raw):
        assert demangle_rust_legacy(raw) is None


class TestCxxFilt:
    def _completed(self, stdout):
        return subprocess.CompletedProcess(args=["c++filt"], returncode=0, stdout=stdout, stderr="")

    def test_ignores_unmangled_names(self):
        demangler = CxxFiltDemangler()
        with patch("stack_analyzer.demangle.itanium.subprocess.run") as run:
            assert demangler(b"main") is None
            run.assert_not_called()

    def test_demangles_via_tool(self):
        demangler = CxxFiltDemangler()
        demangler._available = True
        with patch(
            "stack_analyzer.demangle.itanium.subprocess.run",
            return_value=self._completed("foo::bar()\n"),
        ) as run:
            assert demangler(b"_ZN3foo3barEv") == "foo::bar()"
            assert demangler(b"_ZN3foo3barEv") == "foo::bar()"
        assert run.call_count == 1

    def test_unchanged_output_declines(self):
        demangler = CxxFiltDemangler()
        demangler._available = True
        with patch(
            "stack_analyzer.demangle.itanium.subprocess.run",
            return_value=self._completed("_Zgarbage\n"),
        ):
            assert demangler(b"_Zgarbage") is None

    def test_prime_batches_names(self):
        demangler = CxxFiltDemangler()
        demangler._available = True
        with patch(
            "stack_analyzer.demangle.itanium.subprocess.run",
            return_value=self._completed("a()\nb(int)\n"),
        ) as run:
            demangler.prime([b"_Z1av", b"main", b"_Z1bi", b"_Z1av"])
            assert demangler(b"_Z1av") == "a()"
            assert demangler(b"_Z1bi") == "b(int)"
        run.assert_called_once()
        assert run.call_args.kwargs["input"] == "_Z1av\n_Z1bi\n"

    def test_missing_tool(self):
        demangler = CxxFiltDemangler(tool="definitely-not-a-real-c++filt")
        assert demangler(b"_Z1av") is None

    def test_tool_failure(self):
        demangler = CxxFiltDemangler()
        demangler._available = True
        with patch(
            "stack_analyzer.demangle.itanium.subprocess.run",
            side_effect=subprocess.CalledProcessError(1, ["c++filt"]),
        ):
            assert demangler(b"_Z1av") is None


class TestDemanglerRegistry:
    def test_first_success_wins(self):
        registry = DemanglerRegistry()
        registry.register(DemanglerDescriptor("first", lambda raw: None))
        registry.register(DemanglerDescriptor("second", lambda raw: "second-" + raw.decode()))
        registry.register(DemanglerDescriptor("third", lambda raw: "third"))

        result = registry.demangle(b"x")
        assert result.display_name == "second-x"
        assert result.scheme == "second"

    def test_raw_fallback(self):
        registry = DemanglerRegistry()
        registry.register(DemanglerDescriptor("never", lambda raw: None))
        result = registry.demangle(b"plain_c_function")
        assert result.display_name == "plain_c_function"
        assert result.scheme is None

    def test_failing_scheme_is_skipped(self):
        def broken(raw):
            raise RuntimeError("boom")

        registry = DemanglerRegistry()
        registry.register(DemanglerDescriptor("broken", broken))
        assert registry.demangle(b"foo").display_name == "foo"

    def test_invalid_utf8_raw_name(self):
        result = DemanglerRegistry().demangle(b"f\xffo")
        assert result.display_name == "f�o"

    def test_duplicate_registration(self):
        registry = DemanglerRegistry()
        registry.register(DemanglerDescriptor("a", lambda raw: None))
        with pytest.raises(ValueError):
            registry.register(DemanglerDescriptor("a", lambda raw: None))

    def test_default_order(self):
        registry = create_default_registry()
        assert [d.name for d in registry.list_all()] == ["rust-legacy", "c++filt"]
        assert registry.get("c++filt") is not None
        assert registry.get("nonexistent") is None

    def test_default_prefers_rust(self):
        registry = create_default_registry()
        result = registry.demangle(b"_ZN4core3fmt5write17h0123456789abcdefE")
        assert result.scheme == "rust-legacy"

    def test_prime_reaches_batch_schemes(self):
        calls = []

        class Batch:
            def __call__(self, raw):
                return None

            def prime(self, names):
                calls.append(list(names))

        registry = DemanglerRegistry()
        registry.register(DemanglerDescriptor("batch", Batch()))
        registry.register(DemanglerDescriptor("plain", lambda raw: None))
        registry.prime(iter([b"a", b"b"]))
        assert calls == [[b"a", b"b"]]


class TestLooksMangled:
    @pytest.mark.parametrize("raw", [b"_ZN3fooE", b"__ZN3fooE", b"ZN3fooE", b"_RNvC3foo3bar"])
    def test_mangled(self, raw):
        assert looks_mangled(raw)

    @pytest.mark.parametrize("raw", [b"main", b"Reset_Handler", b"_start"])
    def test_plain(self, raw):
        assert not looks_mangled(raw)
