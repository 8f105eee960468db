#!/usr/bin/env python3
"""ABI audit of a file or directory tree of ELF binaries.

Writes, per architecture, the libraries and symbols the scanned files
provide and use:

  abi<T>_libs, abi<T>_symbols, abi<T>_libs_used, abi<T>_symbols_used

where <T> is empty for the native architecture and "32" for 32-bit x86.
Imported symbols that neither the scanned files nor the host library
directories provide are printed to stderr.

Exit codes:
  0 — listings written (missing symbols are reported, not fatal)
  1 — scan root unreadable or listings could not be written
  2 — usage error
"""

import os

import click
from tqdm import tqdm

from abi_config import PolicyError, load_policy, parse_search_overrides
from abi_report import Report


def _print_error(path, exc):
    click.echo(f"error: {exc}", err=True)


@click.command()
@click.argument("path", type=click.Path(exists=True))
@click.option("--output-dir", type=click.Path(file_okay=False), default=".",
              help="Directory the listings are written to")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="INI file overriding machine tags, search dirs or skipped suffixes")
@click.option("--search-dir", "search_dirs", multiple=True, metavar="TAG=DIR[:DIR]",
              help="Host library dirs for an architecture tag (repeatable, 'native' for the default arch)")
@click.option("--no-search", is_flag=True,
              help="Do not look for missing libraries in host library dirs")
@click.option("--progress", is_flag=True, help="Show a progress bar while scanning")
@click.option("--verbose", is_flag=True, help="Print a per-architecture summary")
def main(path, output_dir, config_path, search_dirs, no_search, progress, verbose):
    """Audit the ELF files under PATH and write ABI listings."""
    try:
        policy = load_policy(config_path)
        policy.search_dirs.update(parse_search_overrides(search_dirs))
    except PolicyError as e:
        raise click.UsageError(str(e))
    if no_search:
        policy.disable_search()

    if not os.access(path, os.R_OK):
        click.echo(f"error: cannot read {path}", err=True)
        raise SystemExit(1)
    if not os.path.isdir(output_dir) or not os.access(output_dir, os.W_OK):
        click.echo(f"error: output directory not writable: {output_dir}", err=True)
        raise SystemExit(1)

    report = Report(policy, on_error=_print_error)
    report.add_path(path, wrap=lambda files: tqdm(files, desc="Scanning", unit="file",
                                                  disable=not progress))

    for name in report.resolve():
        click.echo(f"Missing library: {name}", err=True)

    try:
        report.save(output_dir)
    except OSError as e:
        click.echo(f"error: failed to write listings: {e}", err=True)
        raise SystemExit(1)

    if verbose:
        for tag in sorted(report):
            arch = report[tag]
            click.echo(f"{tag or 'native'}: {len(arch.provides.libraries)} libraries provided, "
                       f"{len(arch.uses.libraries)} used")


if __name__ == "__main__":
    main()
