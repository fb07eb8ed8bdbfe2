"""
Create, fill, configure and publish a Datawrapper county choropleth.

Usage:
    python publish_chart.py --title TITLE --metric COL --folder-id ID [--chart-id ID]

Reads:
    data/processed/latest.csv (from compute_latest.py)

The four API calls run strictly in order and stop at the first failure.
Nothing is retried or rolled back: a chart that was created but failed a later
step stays in Datawrapper as an unpublished draft.
"""
from __future__ import annotations

import argparse
import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

import pandas as pd
import requests

from config import API_BASE, CDN_HOST, CHART_TYPE, DEFAULT_BASEMAP, DEFAULT_MAP_KEY_ATTR, KEY_COL, PipelineConfig
from errors import RemoteAPIError


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishResult:
    chart_id: str
    public_url: str
    created: bool


def redact(text: str, token: Optional[str]) -> str:
    return text.replace(token, "***TOKEN***") if token else text


def make_session(token: str) -> requests.Session:
    session = requests.Session()
    session.headers.update({
        "Authorization": f"Bearer {token}",
        "Accept": "application/json",
    })
    return session


def _call(
    session: requests.Session,
    step: str,
    method: str,
    path: str,
    timeout: float = 30,
    **kwargs,
) -> requests.Response:
    url = f"{API_BASE}{path}"
    token = _session_token(session)
    try:
        resp = session.request(method, url, timeout=timeout, **kwargs)
    except requests.RequestException as exc:
        raise RemoteAPIError(step, redact(f"{method} {path} failed: {exc}", token)) from exc
    if not resp.ok:
        raise RemoteAPIError(step, redact(f"{method} {path}: {resp.text[:500]}", token), status=resp.status_code)
    log.info("%s %s -> %s", method, path, resp.status_code)
    return resp


def _session_token(session) -> Optional[str]:
    auth = getattr(session, "headers", {}).get("Authorization", "")
    return auth[len("Bearer "):] if auth.startswith("Bearer ") else None


def _json(resp: requests.Response, step: str) -> Dict:
    try:
        payload = resp.json()
    except ValueError as exc:
        raise RemoteAPIError(step, f"Response is not JSON: {resp.text[:200]}", status=resp.status_code) from exc
    if not isinstance(payload, dict):
        raise RemoteAPIError(step, f"Unexpected response body: {payload!r}", status=resp.status_code)
    return payload


def create_chart(
    session: requests.Session,
    title: str,
    folder_id: Optional[str],
    chart_type: str = CHART_TYPE,
    timeout: float = 30,
) -> str:
    body = {"title": title, "type": chart_type}
    if folder_id:
        body["folderId"] = folder_id
    payload = _json(_call(session, "create", "POST", "/charts", timeout=timeout, json=body), "create")
    chart_id = payload.get("id")
    if not chart_id:
        raise RemoteAPIError("create", f"No chart id in response: {payload}")
    return str(chart_id)


def upload_data(session: requests.Session, chart_id: str, table: pd.DataFrame, timeout: float = 30) -> None:
    """Replace the chart's dataset with `table` as CSV."""
    if KEY_COL not in table.columns:
        raise RemoteAPIError("upload", f"Table has no '{KEY_COL}' column to join on. Found: {list(table.columns)}")
    csv_body = table.to_csv(index=False).encode("utf-8")
    _call(
        session,
        "upload",
        "PUT",
        f"/charts/{chart_id}/data",
        timeout=timeout,
        data=csv_body,
        headers={"Content-Type": "text/csv"},
    )


def tooltip_var(col: str) -> str:
    # Datawrapper exposes columns to templates lower-cased with non-word chars as "_"
    return re.sub(r"[^a-z0-9_]", "_", col.strip().lower())


def build_tooltip(metric: str, name_cols: Sequence[str]) -> Dict:
    cols = [*name_cols, metric] if name_cols else [KEY_COL, metric]
    fields = {tooltip_var(c): c for c in cols}
    if name_cols:
        title = ", ".join(f"{{{{ {tooltip_var(c)} }}}}" for c in reversed(list(name_cols)))
    else:
        title = f"{{{{ {tooltip_var(KEY_COL)} }}}}"
    body = f"<b>{metric.replace('_', ' ')}:</b> {{{{ {tooltip_var(metric)} }}}}"
    return {"title": title, "body": body, "fields": fields, "sticky": False}


def build_metadata(
    table: pd.DataFrame,
    metric: str,
    basemap: str,
    source_name: str = "",
    source_url: str = "",
    intro: str = "",
    byline: str = "",
    map_key_attr: str = DEFAULT_MAP_KEY_ATTR,
    name_cols: Optional[Sequence[str]] = None,
) -> Dict:
    """The single combined metadata update for a county choropleth.

    `name_cols` feed the tooltip title; by default every text column other
    than the key is used.
    """
    missing = [c for c in (KEY_COL, metric) if c not in table.columns]
    if missing:
        raise RemoteAPIError("configure", f"Axis columns not in chart data: {missing}")
    if name_cols is None:
        name_cols = [
            c for c in table.columns
            if c not in (KEY_COL, metric) and pd.api.types.is_string_dtype(table[c])
        ]
    else:
        name_cols = [c for c in name_cols if c in table.columns]
    return {
        "describe": {
            "source-name": source_name,
            "source-url": source_url,
            "intro": intro,
            "byline": byline,
        },
        "data": {
            # Keep FIPS as text so leading zeros survive
            "column-format": {KEY_COL: {"type": "text", "ignore": False}},
        },
        "axes": {"keys": KEY_COL, "values": metric},
        "visualize": {
            "basemap": basemap,
            "map-key-attr": map_key_attr,
            "tooltip": build_tooltip(metric, name_cols),
        },
    }


def update_metadata(session: requests.Session, chart_id: str, metadata: Dict, timeout: float = 30) -> None:
    _call(session, "configure", "PATCH", f"/charts/{chart_id}", timeout=timeout, json={"metadata": metadata})


def publish(session: requests.Session, chart_id: str, timeout: float = 30) -> str:
    resp = _call(session, "publish", "POST", f"/charts/{chart_id}/publish", timeout=timeout)
    try:
        payload = resp.json()
    except ValueError:
        payload = {}
    data = payload.get("data") if isinstance(payload, dict) else None
    url = data.get("publicUrl") if isinstance(data, dict) else None
    return url or chart_url(chart_id)


def chart_url(chart_id: str) -> str:
    return f"https://{CDN_HOST}/{chart_id}/"


def publish_choropleth(
    table: pd.DataFrame,
    config: PipelineConfig,
    session: Optional[requests.Session] = None,
) -> PublishResult:
    """Create (unless config.chart_id is set) -> upload -> configure -> publish."""
    own_session = session is None
    if own_session:
        session = make_session(config.token or "")
    try:
        if config.chart_id:
            chart_id = config.chart_id
            created = False
            log.info("Updating existing chart %s", chart_id)
        else:
            chart_id = create_chart(session, config.title, config.folder_id, timeout=config.timeout)
            created = True
            # No record of this id survives the process; re-running without it makes a duplicate
            log.warning("Created chart %s; pass --chart-id %s to update it on later runs", chart_id, chart_id)
        upload_data(session, chart_id, table, timeout=config.timeout)
        metadata = build_metadata(
            table,
            config.metric,
            config.basemap,
            source_name=config.source_name,
            source_url=config.source_url,
            intro=config.intro,
            byline=config.byline,
            map_key_attr=config.map_key_attr,
            name_cols=config.name_cols,
        )
        update_metadata(session, chart_id, metadata, timeout=config.timeout)
        public_url = publish(session, chart_id, timeout=config.timeout)
    finally:
        if own_session:
            session.close()
    log.info("Published chart %s -> %s", chart_id, public_url)
    return PublishResult(chart_id=chart_id, public_url=public_url, created=created)


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Publish the processed county table as a Datawrapper map")
    p.add_argument("--title", required=True)
    p.add_argument("--metric", required=True)
    p.add_argument("--folder-id")
    p.add_argument("--chart-id", help="Existing chart to update instead of creating one")
    p.add_argument("--basemap", default=DEFAULT_BASEMAP)
    p.add_argument("--source-name", default="")
    p.add_argument("--token", help="Datawrapper API token (default: DATAWRAPPER_ACCESS_TOKEN)")
    return p.parse_args()


def main() -> None:
    from compute_latest import PROC_CSV, load_processed, select_metrics
    from config import load_env

    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
    args = parse_args()
    table = load_processed()
    if table is None:
        raise FileNotFoundError(f"{PROC_CSV} not found. Run compute_latest.py first.")
    config = PipelineConfig(
        source=str(PROC_CSV),
        title=args.title,
        metric=args.metric,
        folder_id=args.folder_id,
        chart_id=args.chart_id,
        basemap=args.basemap,
        source_name=args.source_name,
        token=args.token or load_env(),
    ).validate()
    result = publish_choropleth(select_metrics(table, [config.metric], config.name_cols), config)
    print(f"Published {result.chart_id} -> {result.public_url}")


if __name__ == "__main__":
    main()
