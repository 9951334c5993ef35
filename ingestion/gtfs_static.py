"""
Builds the compact GTFS reference table used to resolve line identifiers.

Feed contents used:
  routes.txt  → route_id → {shortName, longName, type, agencyId}
  trips.txt   → trip_id → route_id
  agency.txt  → agency_id → agency_name

The build runs offline (see `python -m ingestion.gtfs_static --help`) and
writes a single JSON file that gtfs.lookup loads read-only at runtime.
Unlike the runtime loader, the build is unforgiving: a missing input or a
feed without one of the three tables aborts with GtfsBuildError.
"""

import argparse
import io
import logging
import math
import sys
import zipfile
from datetime import datetime, timezone
from pathlib import Path

import httpx

from config import (
    GTFS_DOWNLOAD_TIMEOUT_SECONDS,
    GTFS_LOOKUP_PATH,
    GTFS_STATIC_PATH,
    GTFS_STATIC_URL,
)
from domain.models import GtfsLookup, GtfsRouteInfo
from ingestion.csv_rows import iter_csv_rows

logger = logging.getLogger(__name__)

REQUIRED_FILES = ("routes.txt", "trips.txt", "agency.txt")

_BOM = "\ufeff"


class GtfsBuildError(RuntimeError):
    """Fatal problem with the GTFS input; the lookup cannot be built."""


# ---------------------------------------------------------------------------
# Reading the feed
# ---------------------------------------------------------------------------

def _is_url(source: str) -> bool:
    return source.lower().startswith(("http://", "https://"))


def download_gtfs_zip(url: str, timeout: float = GTFS_DOWNLOAD_TIMEOUT_SECONDS) -> bytes:
    """Download a GTFS zip and return its raw bytes."""
    logger.info("Downloading GTFS static feed from %s", url)
    try:
        with httpx.Client(timeout=timeout, follow_redirects=True) as client:
            response = client.get(url)
            response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise GtfsBuildError(
            f"Failed to download GTFS: {exc.response.status_code}"
        ) from exc
    except httpx.HTTPError as exc:
        raise GtfsBuildError(f"Failed to download GTFS: {exc}") from exc
    logger.info("Downloaded %d bytes.", len(response.content))
    return response.content


def unzip_gtfs(zip_bytes: bytes) -> dict[str, str]:
    """Extract the three required tables from a GTFS zip (names matched case-insensitively)."""
    try:
        zf = zipfile.ZipFile(io.BytesIO(zip_bytes))
    except zipfile.BadZipFile as exc:
        raise GtfsBuildError(f"GTFS input is not a valid zip archive: {exc}") from exc

    with zf:
        by_lower = {name.lower(): name for name in zf.namelist()}
        logger.info("GTFS zip contains: %s", zf.namelist())
        missing = [name for name in REQUIRED_FILES if name not in by_lower]
        if missing:
            raise GtfsBuildError("GTFS zip missing routes.txt, trips.txt, or agency.txt")
        try:
            return {
                name: zf.read(by_lower[name]).decode("utf-8")
                for name in REQUIRED_FILES
            }
        except UnicodeDecodeError as exc:
            raise GtfsBuildError(f"GTFS table is not valid UTF-8: {exc}") from exc


def _read_directory(folder: Path) -> dict[str, str]:
    files: dict[str, str] = {}
    for name in REQUIRED_FILES:
        path = folder / name
        try:
            files[name] = path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise GtfsBuildError(f"Cannot read {path}: {exc}") from exc
    return files


def read_gtfs_files(source: str) -> dict[str, str]:
    """
    Return {filename: text} for routes.txt, trips.txt and agency.txt.

    source may be an http(s) URL to a zip, a local .zip file, or a folder
    holding the unpacked feed.
    """
    if _is_url(source):
        return unzip_gtfs(download_gtfs_zip(source))

    path = Path(source)
    if not path.exists():
        raise GtfsBuildError(f"GTFS input not found: {source}")
    if path.is_dir():
        return _read_directory(path)
    if path.suffix.lower() != ".zip":
        raise GtfsBuildError("GTFS input must be a .zip file, folder, or URL")
    return unzip_gtfs(path.read_bytes())


# ---------------------------------------------------------------------------
# Table parsers
# ---------------------------------------------------------------------------

def _header_index(header: list[str]) -> dict[str, int]:
    if header and header[0].startswith(_BOM):
        header = [header[0][len(_BOM):], *header[1:]]
    return {name: idx for idx, name in enumerate(header)}


def _cell(row: list[str], idx: int | None) -> str:
    if idx is None or idx >= len(row):
        return ""
    return row[idx].strip()


def _parse_route_type(raw: str) -> int | float | None:
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return int(value) if value.is_integer() else value


def parse_routes(routes_txt: str) -> dict[str, GtfsRouteInfo]:
    routes: dict[str, GtfsRouteInfo] = {}
    cols: dict[str, int] = {}
    for row_index, row in iter_csv_rows(routes_txt):
        if row_index == 0:
            cols = _header_index(row)
            continue
        route_id = _cell(row, cols.get("route_id"))
        if not route_id:
            continue
        routes[route_id] = GtfsRouteInfo(
            short_name=_cell(row, cols.get("route_short_name")) or None,
            long_name=_cell(row, cols.get("route_long_name")) or None,
            type=_parse_route_type(_cell(row, cols.get("route_type"))),
            agency_id=_cell(row, cols.get("agency_id")) or None,
        )
    logger.info("Parsed %d routes.", len(routes))
    return routes


def parse_trips(trips_txt: str) -> dict[str, str]:
    trips: dict[str, str] = {}
    cols: dict[str, int] = {}
    skipped = 0
    for row_index, row in iter_csv_rows(trips_txt):
        if row_index == 0:
            cols = _header_index(row)
            continue
        trip_id = _cell(row, cols.get("trip_id"))
        route_id = _cell(row, cols.get("route_id"))
        if not trip_id or not route_id:
            skipped += 1
            continue
        trips[trip_id] = route_id
    if skipped:
        logger.warning("Skipped %d trips without trip_id or route_id.", skipped)
    logger.info("Parsed %d trips.", len(trips))
    return trips


def parse_agencies(agency_txt: str) -> tuple[dict[str, str], str | None]:
    """
    Return (agency_id → agency_name, default_agency_id).

    Rows with an empty id cell are keyed by a fallback id that starts at
    "default" and then follows the last id used, so in a feed without an
    agency_id column every row lands on the same key.  A cell holding only
    whitespace is not empty: it trims to the key "".  default_agency_id is
    set only when exactly one key survives.
    """
    agencies: dict[str, str] = {}
    cols: dict[str, int] = {}
    fallback_id = "default"
    for row_index, row in iter_csv_rows(agency_txt):
        if row_index == 0:
            cols = _header_index(row)
            continue
        name = _cell(row, cols.get("agency_name"))
        if not name:
            continue
        if "agency_id" in cols:
            idx = cols["agency_id"]
            raw_id = row[idx] if idx < len(row) else ""
            # only an empty cell falls back; a blank one trims to ""
            agency_id = (raw_id or fallback_id).strip()
        else:
            agency_id = fallback_id
        agencies[agency_id] = name
        fallback_id = agency_id

    default_agency_id = next(iter(agencies)) if len(agencies) == 1 else None
    logger.info("Parsed %d agencies.", len(agencies))
    return agencies, default_agency_id


def build_short_name_index(routes: dict[str, GtfsRouteInfo]) -> dict[str, str]:
    """short_name → route_id; the first route seen with a given short name wins."""
    index: dict[str, str] = {}
    for route_id, info in routes.items():
        if info.short_name and info.short_name not in index:
            index[info.short_name] = route_id
    return index


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

def build_lookup(files: dict[str, str], source: str) -> GtfsLookup:
    """Assemble a GtfsLookup from the three table texts."""
    missing = [name for name in REQUIRED_FILES if name not in files]
    if missing:
        raise GtfsBuildError(f"GTFS input missing {', '.join(missing)}")

    routes = parse_routes(files["routes.txt"])
    trips = parse_trips(files["trips.txt"])
    agencies, default_agency_id = parse_agencies(files["agency.txt"])

    return GtfsLookup(
        routes=routes,
        trips=trips,
        route_short_name_to_id=build_short_name_index(routes),
        agencies=agencies,
        default_agency_id=default_agency_id,
        generated_at=datetime.now(timezone.utc).isoformat(),
        source=source,
    )


def write_lookup(lookup: GtfsLookup, output: Path) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(
        lookup.model_dump_json(by_alias=True, exclude_none=True),
        encoding="utf-8",
    )
    logger.info("GTFS lookup written to %s", output)


def build_and_write(source: str, output: Path = GTFS_LOOKUP_PATH) -> GtfsLookup:
    """Read the feed at source, build the lookup, and write it to output."""
    lookup = build_lookup(read_gtfs_files(source), source)
    write_lookup(lookup, output)
    return lookup


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Build the GTFS line lookup JSON from a feed zip, folder, or URL.",
    )
    parser.add_argument(
        "input",
        nargs="?",
        default=GTFS_STATIC_PATH or GTFS_STATIC_URL,
        help="GTFS .zip file, unpacked folder, or http(s) URL "
             "(default: GTFS_STATIC_PATH / GTFS_STATIC_URL)",
    )
    parser.add_argument(
        "output",
        nargs="?",
        default=str(GTFS_LOOKUP_PATH),
        help="Output JSON path (default: GTFS_LOOKUP_PATH)",
    )
    args = parser.parse_args(argv)

    if not args.input:
        parser.print_usage(sys.stderr)
        print("error: no GTFS input given and GTFS_STATIC_PATH / GTFS_STATIC_URL unset", file=sys.stderr)
        return 1

    try:
        lookup = build_and_write(args.input, Path(args.output))
    except GtfsBuildError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    print(f"GTFS lookup written to {args.output}")
    print(
        f"Routes: {len(lookup.routes)}, Trips: {len(lookup.trips)}, "
        f"Agencies: {len(lookup.agencies)}"
    )
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    raise SystemExit(main())
