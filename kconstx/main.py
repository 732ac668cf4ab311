"""
kconstx — CLI entrypoint.

Usage:
    kconstx extract --linux ~/linux --arch amd64 sys/linux/fs.txt
    kconstx archs
    kconstx show sys/linux/fs_amd64.const
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from kconstx import __version__
from kconstx.core.models.arch import (
    ARCHITECTURES,
    UnknownArchitecture,
    lookup,
    names as arch_names,
)
from kconstx.core.observability.logging_config import (
    LOG_FILE_ENV,
    LOG_FILE_LEVEL_ENV,
    resolve_level,
    setup_logging,
)


def _fail(message: str) -> None:
    """One-line diagnostic on stderr, exit status 1."""
    click.secho(message, fg="red", err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="kconstx")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Only report errors.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Path to kconstx.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """kconstx — extract kernel constant values per architecture."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_logging(
        level=resolve_level(verbose=verbose, debug=debug, quiet=quiet),
        log_file=os.environ.get(LOG_FILE_ENV),
        log_file_level=os.environ.get(LOG_FILE_LEVEL_ENV),
    )


@cli.command()
@click.argument("input_file", type=click.Path(path_type=Path))
@click.option("--linux", type=click.Path(path_type=Path), default=None,
              help="Path to the linux kernel source checkout.")
@click.option("--linuxbld", type=click.Path(path_type=Path), default=None,
              help="Path to the kernel build directory (default: --linux).")
@click.option("--arch", "arch_name", default=None,
              help=f"Target architecture ({', '.join(arch_names())}).")
@click.option("--toolchain", type=click.Choice(["gcc", "clang"]), default=None,
              help="Compiler family to probe with.")
@click.option("--cc", "compiler", default=None, help="Compiler binary to run.")
@click.option("--timeout", type=float, default=None, help="Seconds per compiler call.")
@click.option("--jobs", "-j", "max_workers", type=int, default=None,
              help="Compiler calls to run in parallel.")
@click.option("--batch-size", type=int, default=None, help="Constants per compiler call.")
@click.option("--strict", is_flag=True,
              help="Fail if any constant is unavailable for the arch.")
@click.option("--dry-run", is_flag=True, help="List required constants; don't compile.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def extract(
    ctx: click.Context,
    input_file: Path,
    linux: Path | None,
    linuxbld: Path | None,
    arch_name: str | None,
    toolchain: str | None,
    compiler: str | None,
    timeout: float | None,
    max_workers: int | None,
    batch_size: int | None,
    strict: bool,
    dry_run: bool,
    as_json: bool,
) -> None:
    """Extract constant values for one description file.

    Writes <input>_<arch>.const next to the input.

    Examples:

        kconstx extract --linux ~/linux --arch amd64 sys/linux/fs.txt

        kconstx extract --linux ~/linux --linuxbld ~/build --arch arm64 \\
            --cc aarch64-linux-gnu-gcc sys/linux/fs.txt
    """
    from kconstx.core.config.loader import ConfigError, load_settings
    from kconstx.core.use_cases.extract import run_extract

    if not arch_name:
        _fail("--arch flag is required")
    try:
        lookup(arch_name)
    except UnknownArchitecture as e:
        _fail(str(e))

    try:
        settings = load_settings(ctx.obj.get("config_path")).merged(
            toolchain=toolchain,
            # --cc beats any per-arch entry from the file
            compilers={arch_name: compiler} if compiler else None,
            timeout=timeout,
            max_workers=max_workers,
            batch_size=batch_size,
            strict=strict or None,
        )
    except ConfigError as e:
        _fail(str(e))

    result = run_extract(
        input_path=input_file,
        arch_name=arch_name,
        linux=linux,
        linux_build=linuxbld,
        settings=settings,
        dry_run=dry_run,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error:
            _fail(result.error)
        return

    if result.error:
        _fail(result.error)

    info = result.info
    assert info is not None

    if dry_run:
        for name in info.names:
            click.echo(name)
        return

    if ctx.obj.get("quiet"):
        return

    click.echo(
        f"{result.output_path}: {len(result.consts)}/{result.requested} constants"
    )
    if ctx.obj.get("verbose"):
        for name in result.unavailable:
            click.secho(f"  unavailable: {name}", fg="yellow")


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def archs(as_json: bool) -> None:
    """List supported architectures."""
    if as_json:
        data = [ARCHITECTURES[name].model_dump(mode="json") for name in arch_names()]
        click.echo(json.dumps(data, indent=2))
        return

    for name in arch_names():
        arch = ARCHITECTURES[name]
        flags = " ".join(arch.cflags)
        click.echo(
            f"{name:<8} arch/{arch.kernel_header_arch:<8} "
            f"{','.join(arch.predefined_macros)}"
            + (f"  [{flags}]" if flags else "")
        )


@cli.command()
@click.argument("const_file", type=click.Path(path_type=Path))
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def show(const_file: Path, as_json: bool) -> None:
    """Decode and print a .const file."""
    from kconstx.core.persistence.const_file import CorruptFormat, read_const_file

    try:
        consts = read_const_file(const_file)
    except OSError as e:
        _fail(f"failed to read {const_file}: {e}")
    except CorruptFormat as e:
        _fail(f"{const_file}: {e}")

    if as_json:
        click.echo(json.dumps(dict(sorted(consts.items())), indent=2))
        return

    for name in sorted(consts):
        click.echo(f"{name} = {consts[name]}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
