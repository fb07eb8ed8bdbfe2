"""
Run the full pipeline: fetch -> reduce -> publish -> embed.

Usage:
    python run_pipeline.py --source URL --title TITLE --metric COL --folder-id ID
    python run_pipeline.py ... --chart-id ID     # update an existing chart
    python run_pipeline.py ... --dry-run         # local stages only
"""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from typing import List, Optional

import pandas as pd
import requests

from compute_latest import metric_columns_from_range, parse_range, reduce_latest, save_outputs, select_metrics
from config import DEFAULT_BASEMAP, DEFAULT_MAP_KEY_ATTR, KEY_COL, PipelineConfig, load_env
from embed import embed_code, update_readme, write_embed
from errors import PipelineError
from fetch_data import load_table
from preview_charts import render_previews
from publish_chart import PublishResult, publish_choropleth


log = logging.getLogger("run_pipeline")


@dataclass
class RunResult:
    table: pd.DataFrame
    published: Optional[PublishResult] = None
    embed: Optional[str] = None


def metric_columns(df: pd.DataFrame, config: PipelineConfig) -> List[str]:
    if config.metric_range is not None:
        return metric_columns_from_range(df, *config.metric_range)
    skip = {KEY_COL, config.state_col, config.county_col, config.year_col, *config.name_cols}
    return [c for c in df.columns if c not in skip]


def run(
    config: PipelineConfig,
    dry_run: bool = False,
    previews: bool = False,
    session: Optional[requests.Session] = None,
) -> RunResult:
    config.validate(dry_run=dry_run)

    log.info("Step 1/4: loading %s", config.source)
    df = load_table(config.source, config.state_col, config.county_col, timeout=config.timeout)

    log.info("Step 2/4: reducing to latest value per county")
    latest = reduce_latest(
        df,
        metric_columns(df, config),
        drop_cols=(config.year_col, config.state_col, config.county_col),
    )
    table = select_metrics(latest, [config.metric], config.name_cols)
    save_outputs(latest)
    if previews:
        render_previews(table, config.metric)

    if dry_run:
        log.info("Dry run: skipping publish (%d counties, metric %s)", len(table), config.metric)
        return RunResult(table=table)

    log.info("Step 3/4: publishing chart")
    published = publish_choropleth(table, config, session=session)

    log.info("Step 4/4: writing embed snippet")
    snippet = embed_code(config.title, published.chart_id, config.height)
    write_embed(snippet)
    update_readme(snippet)
    return RunResult(table=table, published=published, embed=snippet)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Publish a county choropleth from a longitudinal CSV")
    p.add_argument("--source", required=True, help="URL or path of the longitudinal CSV")
    p.add_argument("--title", required=True)
    p.add_argument("--metric", required=True, help="Metric column to map")
    p.add_argument("--folder-id")
    p.add_argument("--chart-id", help="Existing chart to update instead of creating one")
    p.add_argument("--basemap", default=DEFAULT_BASEMAP)
    p.add_argument("--map-key-attr", default=DEFAULT_MAP_KEY_ATTR)
    p.add_argument("--source-name", default="")
    p.add_argument("--source-url", default="")
    p.add_argument("--intro", default="")
    p.add_argument("--byline", default="")
    p.add_argument("--state-col", default="statecode")
    p.add_argument("--county-col", default="countycode")
    p.add_argument("--year-col", default="year")
    p.add_argument("--name-cols", default="state,county", help="Comma-separated descriptive columns")
    p.add_argument("--metric-range", type=parse_range, help="Positional metric columns START[:STOP] (fips is column 0)")
    p.add_argument("--token", help="Datawrapper API token (default: DATAWRAPPER_ACCESS_TOKEN)")
    p.add_argument("--timeout", type=float, default=30.0)
    p.add_argument("--height", type=int, default=400)
    p.add_argument("--dry-run", action="store_true", help="Prepare data only, no API calls")
    p.add_argument("--previews", action="store_true", help="Also render local preview figures")
    return p.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> PipelineConfig:
    return PipelineConfig(
        source=args.source,
        title=args.title,
        metric=args.metric,
        folder_id=args.folder_id,
        chart_id=args.chart_id,
        basemap=args.basemap,
        map_key_attr=args.map_key_attr,
        source_name=args.source_name,
        source_url=args.source_url,
        intro=args.intro,
        byline=args.byline,
        state_col=args.state_col,
        county_col=args.county_col,
        year_col=args.year_col,
        name_cols=tuple(c.strip() for c in args.name_cols.split(",") if c.strip()),
        metric_range=args.metric_range,
        token=args.token,
        timeout=args.timeout,
        height=args.height,
    )


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
    args = parse_args(argv)
    config = config_from_args(args).with_token(load_env())
    try:
        result = run(config, dry_run=args.dry_run, previews=args.previews)
    except PipelineError as exc:
        log.error("Pipeline failed: %s", exc)
        return 1
    if result.published is not None:
        print(f"Published {result.published.chart_id} -> {result.published.public_url}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
