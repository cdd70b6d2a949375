"""CLI entry point: stack-analyze.

Subcommands:
    stack-analyze analyze firmware.elf --min-stack 256   # analyze an existing ELF
    stack-analyze cargo --bin app                         # build with cargo, then analyze
"""

from __future__ import annotations

import sys

import click

from stack_analyzer.analyzer import AnalysisOutput, StackAnalyzer
from stack_analyzer.core.logging import setup_logging
from stack_analyzer.exceptions import AnalyzerError
from stack_analyzer.render import render_json, render_table

_FORMATS = ("table", "json")


def _min_stack_option(f):
    return click.option(
        "--min-stack",
        type=click.IntRange(min=0),
        default=0,
        envvar="STACK_ANALYZER_MIN_STACK",
        show_default=True,
        help="Only show functions whose stack size is greater or equal to this",
    )(f)


def _format_option(f):
    return click.option(
        "--format",
        "output_format",
        type=click.Choice(_FORMATS),
        default="table",
        show_default=True,
        help="Output format",
    )(f)


def _analysis_options(f):
    f = click.option(
        "--tagged", is_flag=True, help="Decode qualifier tag bits in .stack_sizes values"
    )(f)
    return click.option(
        "--require-stack-sizes",
        is_flag=True,
        help="Fail if the binary has no .stack_sizes section",
    )(f)


def _emit(output: AnalysisOutput, output_format: str) -> None:
    for warning in output.warnings:
        click.echo(f"warning: {warning}", err=True)
    if output_format == "json":
        click.echo(render_json(output.reports, output.warnings), nl=False)
    else:
        click.echo(render_table(output.reports), nl=False)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """Report code size and static stack usage per function of an ELF binary."""
    setup_logging(verbose)


@main.command("analyze")
@click.argument("elf_file", type=click.Path(dir_okay=False))
@_min_stack_option
@_format_option
@_analysis_options
def analyze(
    elf_file: str,
    min_stack: int,
    output_format: str,
    require_stack_sizes: bool,
    tagged: bool,
) -> None:
    """Analyze an already built ELF file."""
    analyzer = StackAnalyzer(tagged=tagged, require_stack_sizes=require_stack_sizes)
    try:
        output = analyzer.analyze_file(elf_file, min_stack=min_stack)
    except AnalyzerError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    _emit(output, output_format)


@main.command("cargo")
@click.option("--bin", "bin_name", default=None, metavar="BIN", help="Build only the specified binary")
@click.option("--example", default=None, metavar="NAME", help="Build only the specified example")
@click.option("--features", default=None, help="Space-separated list of features to activate")
@click.option("--all-features", is_flag=True, help="Activate all available features")
@click.option(
    "--out-override",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path of the resulting ELF, if it cannot be found automatically",
)
@click.option(
    "--project-dir",
    type=click.Path(file_okay=False, exists=True),
    default=".",
    show_default=True,
    help="Cargo project directory",
)
@_min_stack_option
@_format_option
@_analysis_options
def cargo(
    bin_name: str | None,
    example: str | None,
    features: str | None,
    all_features: bool,
    out_override: str | None,
    project_dir: str,
    min_stack: int,
    output_format: str,
    require_stack_sizes: bool,
    tagged: bool,
) -> None:
    """Build a cargo binary/example with stack sizes enabled, then analyze it."""
    from stack_analyzer.build.cargo import CargoBuilder
    from stack_analyzer.build.locator import ArtifactLocator
    from stack_analyzer.models.build import CargoBuildConfig

    config = CargoBuildConfig(
        project_dir=project_dir,
        bin=bin_name,
        example=example,
        features=features,
        all_features=all_features,
    )
    try:
        result = CargoBuilder().build(config)
        path = ArtifactLocator().locate(result, project_dir, out_override)
        analyzer = StackAnalyzer(tagged=tagged, require_stack_sizes=require_stack_sizes)
        output = analyzer.analyze_file(path, min_stack=min_stack)
    except AnalyzerError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    _emit(output, output_format)


if __name__ == "__main__":
    main()
