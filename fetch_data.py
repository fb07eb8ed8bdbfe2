"""
Download the longitudinal county CSV and derive the `fips` join key.

Usage:
    python fetch_data.py --source URL_OR_PATH [--state-col statecode] [--county-col countycode]

Saves:
    data/raw/counties_YYYYMMDD.csv
    data/raw/latest.csv (copy of most recent)
"""
from __future__ import annotations

import argparse
import csv
import io
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List

import pandas as pd
import requests

from config import KEY_COL
from errors import ParseError, ResourceUnavailable


RAW_DIR = Path("data/raw")

log = logging.getLogger(__name__)


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def fetch_bytes(source: str, timeout: float = 30) -> bytes:
    if is_url(source):
        try:
            resp = requests.get(source, timeout=timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise ResourceUnavailable(f"Failed to fetch {source}: {exc}") from exc
        return resp.content
    try:
        return Path(source).read_bytes()
    except OSError as exc:
        raise ResourceUnavailable(f"Failed to read {source}: {exc}") from exc


def ragged_lines(text: str) -> List[int]:
    """Line numbers of non-blank records whose field count differs from the header's."""
    reader = csv.reader(io.StringIO(text))
    header = next(reader, None)
    if header is None:
        return []
    width = len(header)
    return [reader.line_num for row in reader if row and len(row) != width]


def parse_table(content: bytes, state_col: str, county_col: str) -> pd.DataFrame:
    try:
        text = content.decode("utf-8-sig")
        df = pd.read_csv(io.StringIO(text), dtype={state_col: str, county_col: str})
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise ParseError(f"Input is not a readable CSV table: {exc}") from exc
    missing = [c for c in (state_col, county_col) if c not in df.columns]
    if missing:
        raise ParseError(f"CSV is missing identifier columns: {missing}. Found: {list(df.columns)}")

    bad_lines = ragged_lines(text)
    if bad_lines:
        raise ParseError(f"Rows with a field count different from the header on lines {bad_lines[:10]}")

    blank = pd.Series(False, index=df.index)
    for col in (state_col, county_col):
        blank |= df[col].fillna("").astype(str).str.strip().eq("")
    if blank.any():
        rows = [int(i) + 1 for i in df.index[blank][:10]]
        raise ParseError(f"Empty {state_col}/{county_col} in data rows {rows}")
    return df


def add_fips(df: pd.DataFrame, state_col: str, county_col: str) -> pd.DataFrame:
    """Insert `fips` (2-digit state + 3-digit county) as the first column."""
    out = df.copy()
    state = out[state_col].astype(str).str.strip().str.zfill(2)
    county = out[county_col].astype(str).str.strip().str.zfill(3)
    if KEY_COL in out.columns:
        out = out.drop(columns=[KEY_COL])
    out.insert(0, KEY_COL, state + county)
    return out


def load_table(
    source: str,
    state_col: str = "statecode",
    county_col: str = "countycode",
    timeout: float = 30,
) -> pd.DataFrame:
    content = fetch_bytes(source, timeout=timeout)
    df = add_fips(parse_table(content, state_col, county_col), state_col, county_col)
    log.info("Loaded %d rows x %d columns from %s", len(df), df.shape[1], source)
    return df


def save_raw(content: bytes) -> Path:
    RAW_DIR.mkdir(parents=True, exist_ok=True)
    date_str = datetime.now(timezone.utc).strftime("%Y%m%d")
    out_path = RAW_DIR / f"counties_{date_str}.csv"
    out_path.write_bytes(content)

    # Maintain a latest.csv convenience copy
    (RAW_DIR / "latest.csv").write_bytes(content)
    return out_path


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Fetch the county CSV and cache it locally")
    p.add_argument("--source", required=True, help="URL or path of the longitudinal CSV")
    p.add_argument("--state-col", default="statecode")
    p.add_argument("--county-col", default="countycode")
    return p.parse_args()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
    args = parse_args()
    content = fetch_bytes(args.source)
    # Validate before caching so a bad download never becomes latest.csv
    df = parse_table(content, args.state_col, args.county_col)
    path = save_raw(content)
    log.info("Fetched %d rows -> %s", len(df), path)


if __name__ == "__main__":
    main()
