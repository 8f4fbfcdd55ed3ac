"""
Command line entry points.

    mstat [-c] [-s RATE] [-o PATH] [-v] PID       sample a process
    mstat-export [-f NAMES] [-o OUT] FILE         dump a log as CSV
    mstat-plot [-f NAMES|all] [-l] [-o IMAGE] FILE  plot memory over time
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from mstat.config import DEFAULT_PLOT_FIELDS, PlotConfig, SamplerConfig, split_fields
from mstat.errors import (
    AllocationError,
    EmptyLogError,
    FormatError,
    InvalidFieldError,
    ProcessLost,
)
from mstat.log import configure_logging
from mstat.plot import (
    NON_METRIC_FIELDS,
    collect_series,
    expand_fields,
    format_field_table,
    render,
    summarize,
    validate_fields,
)
from mstat.sampler import Sampler
from mstat.session import MstatFile
from mstat.spec import DEFAULT_FIELD_NAMES

logger = logging.getLogger(__name__)


def _open_log(filename: str) -> MstatFile | None:
    """Open an existing log for reading, reporting failures on stderr."""
    try:
        return MstatFile.open(filename, readonly=True)
    except FormatError:
        print(f"{filename} is not an mstat database", file=sys.stderr)
    except AllocationError:
        print(f"Unable to obtain field names from {filename}", file=sys.stderr)
    except OSError as e:
        print(f"{filename}: {e.strerror or e}", file=sys.stderr)
    return None


# =============================================================================
# mstat
# =============================================================================

def build_sampler_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="mstat", description="Record a process's memory usage.")
    ap.add_argument("pid", type=int, help="process to sample")
    ap.add_argument("-c", "--clobber", action="store_true", help="clobber output file if it exists")
    ap.add_argument("-s", "--sample-rate", type=float, default=None,
                    help="samples per second (default: 1.00)")
    ap.add_argument("-o", "--output", default=None, help="output file (default: <PID>.mstat)")
    ap.add_argument("-v", "--verbose", action="store_true", help="increased verbosity")
    return ap


def sampler_main(argv: Sequence[str] | None = None) -> int:
    args = build_sampler_parser().parse_args(argv)
    configure_logging(args.verbose)
    try:
        config = SamplerConfig.from_env(args.pid, output=args.output, sample_rate=args.sample_rate,
                                        clobber=args.clobber)
        sampler = Sampler(config)
    except (ValueError, ProcessLost, FileExistsError) as e:
        print(str(e), file=sys.stderr)
        return 1

    sampler.install_signal_handlers()
    print(f"PID: {config.pid}\nSamples per second: {config.sample_rate:.2f}\n"
          f"(interrupt with ctrl-c...)")
    try:
        sampler.run()
    except OSError:
        return 1
    return 0


# =============================================================================
# mstat-export
# =============================================================================

def build_export_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="mstat-export", description="Export an mstat log as CSV.")
    ap.add_argument("file", help="path to *.mstat data file")
    ap.add_argument("-f", "--fields", default=None, help="comma separated fields (default: all stored)")
    ap.add_argument("-o", "--output", default=None, help="CSV output path (default: stdout)")
    return ap


def export_main(argv: Sequence[str] | None = None) -> int:
    from mstat.export import export_csv

    args = build_export_parser().parse_args(argv)
    configure_logging()
    log = _open_log(args.file)
    if log is None:
        return 1

    fields = split_fields(args.fields) if args.fields else None
    with log:
        try:
            if args.output:
                with open(args.output, "w", newline="", encoding="utf-8") as out:
                    export_csv(log, out, fields)
            else:
                export_csv(log, sys.stdout, fields)
        except InvalidFieldError as e:
            print(str(e), file=sys.stderr)
            return 1
    return 0


# =============================================================================
# mstat-plot
# =============================================================================

def build_plot_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="mstat-plot", description="Plot memory usage from an mstat log.")
    ap.add_argument("file", nargs="?", help="path to *.mstat data file")
    ap.add_argument("-f", "--fields", default=None,
                    help=f"mstat field(s) to plot, or 'all' (default: {','.join(DEFAULT_PLOT_FIELDS)})")
    ap.add_argument("-l", "--list", action="store_true", help="list mstat fields")
    ap.add_argument("-o", "--output", default=None, help="write the plot to an image file")
    ap.add_argument("-v", "--verbose", action="store_true", help="verbose mode")
    return ap


def plot_main(argv: Sequence[str] | None = None) -> int:
    parser = build_plot_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.list:
        print(format_field_table([n for n in DEFAULT_FIELD_NAMES if n not in NON_METRIC_FIELDS]))
        return 0
    if not args.file:
        parser.print_usage(sys.stderr)
        return 1

    config = PlotConfig.from_env(args.file, fields=split_fields(args.fields) if args.fields else None,
                                 output=args.output)
    log = _open_log(config.filename)
    if log is None:
        return 1

    with log:
        fields = expand_fields(config.fields, log.fields)
        try:
            validate_fields(log.fields, fields)
        except InvalidFieldError as e:
            print(str(e), file=sys.stderr)
            print("requested field must be one or more of...")
            print(format_field_table([n for n in log.fields if n not in NON_METRIC_FIELDS]))
            return 1

        print(f"Reading: {config.filename}")
        try:
            series = collect_series(log, fields)
        except EmptyLogError:
            print(f"{config.filename} does not have any records", file=sys.stderr)
            return 1

    print(f"Records: {series.records}")
    for name, (lo, hi) in summarize(series).items():
        print(f"{name} min({lo:.2f}) max({hi:.2f})")

    print("Generating plot... ", end="", flush=True)
    render(series, config.output)
    print("done!")
    return 0
