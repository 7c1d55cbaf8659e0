"""Fuse the five delimited input tables and summarise the resulting lookup."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from timespace.fusion.domain_types import ROAD_MODE_NAME, CityTransportLookup
from timespace.fusion.merger import NetworkMerger, NotReadyError
from timespace.fusion.network_fusion import lookup_to_dataframe
from timespace.fusion.table_schema import UnrecognizedSchemaError

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--tables",
        nargs="+",
        required=True,
        help="Delimited text files (cities, populations, transport modes, speeds, network) in any order.",
    )
    parser.add_argument(
        "--current-year",
        type=int,
        default=None,
        help="Year used for open-ended validity ranges (defaults to the calendar year).",
    )
    parser.add_argument(
        "--records-csv",
        default=None,
        help="Optional CSV receiving every fused direction record.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(message)s",
    )


def load_tables(merger: NetworkMerger, paths: Sequence[str], console: Console) -> None:
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        console=console,
        transient=True,
    )
    with progress:
        task_id = progress.add_task("Reading tables", total=len(paths))
        for path in paths:
            text = Path(path).read_text(encoding="utf-8")
            kind = merger.add(text)
            logger.debug("%s recognised as %s", path, kind.value)
            progress.advance(task_id)


def build_summary_table(lookup: CityTransportLookup) -> Table:
    table = Table(title=f"Fused lookup ({lookup.min_year}-{lookup.max_year})")
    table.add_column("City")
    table.add_column("Modes")
    table.add_column("Destinations", justify="right")
    table.add_column("Years", justify="right")
    table.add_column("Records", justify="right")
    for code in sorted(lookup):
        city_transport = lookup[code]
        years = {year for buckets in city_transport.transports.values() for year in buckets}
        records = sum(
            len(records)
            for buckets in city_transport.transports.values()
            for records in buckets.values()
        )
        modes = sorted(city_transport.transports, key=lambda name: (name != ROAD_MODE_NAME, name))
        table.add_row(
            code,
            ", ".join(modes),
            str(len(city_transport.destinations)),
            f"{min(years)}-{max(years)}" if years else "-",
            str(records),
        )
    return table


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level)
    console = Console(stderr=True)

    merger = NetworkMerger(current_year=args.current_year)
    try:
        load_tables(merger, args.tables, console)
        lookup = merger.merge(strict=True)
    except (UnrecognizedSchemaError, NotReadyError) as exc:
        raise SystemExit(str(exc)) from exc

    Console().print(build_summary_table(lookup))
    if args.records_csv:
        output_path = Path(args.records_csv)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        frame = lookup_to_dataframe(lookup)
        frame.to_csv(output_path, index=False)
        logger.info("Wrote %d direction records to %s", len(frame), output_path)


if __name__ == "__main__":
    main()
