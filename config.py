"""
Run configuration for the choropleth pipeline.

All run parameters travel in one PipelineConfig that is validated before
any data is fetched. The Datawrapper token comes from the environment
(optionally a local .env file).
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

from errors import ConfigError


API_BASE = "https://api.datawrapper.de/v3"
CDN_HOST = "datawrapper.dwcdn.net"
CHART_TYPE = "d3-maps-choropleth"
DEFAULT_BASEMAP = "usa-counties-2018"
# County basemaps expose the 5-digit FIPS code as GEOID
DEFAULT_MAP_KEY_ATTR = "GEOID"
TOKEN_ENV = "DATAWRAPPER_ACCESS_TOKEN"
KEY_COL = "fips"


def load_env(dotenv_path: Optional[Path] = None) -> Optional[str]:
    """Load .env (exported variables win) and return the API token, if any."""
    path = dotenv_path or Path(".env")
    if path.exists():
        load_dotenv(dotenv_path=path, override=False)
    return os.environ.get(TOKEN_ENV) or None


@dataclass(frozen=True)
class PipelineConfig:
    source: str
    title: str
    metric: str
    folder_id: Optional[str] = None
    basemap: str = DEFAULT_BASEMAP
    source_name: str = ""
    source_url: str = ""
    intro: str = ""
    byline: str = ""
    # Existing chart to update instead of creating a new one
    chart_id: Optional[str] = None
    state_col: str = "statecode"
    county_col: str = "countycode"
    year_col: str = "year"
    name_cols: Tuple[str, ...] = ("state", "county")
    # Positional (start, stop) of the columns to reduce; None means every
    # column that is not an identifier, the year or a name column
    metric_range: Optional[Tuple[int, Optional[int]]] = None
    map_key_attr: str = DEFAULT_MAP_KEY_ATTR
    token: Optional[str] = field(default=None, repr=False)
    timeout: float = 30.0
    height: int = 400

    def validate(self, dry_run: bool = False) -> "PipelineConfig":
        problems = []
        for name in ("source", "title", "metric", "basemap", "map_key_attr"):
            if not str(getattr(self, name) or "").strip():
                problems.append(f"{name} must not be empty")
        if self.state_col == self.county_col:
            problems.append("state_col and county_col must differ")
        if KEY_COL in self.name_cols:
            problems.append(f"name_cols must not include the key column '{KEY_COL}'")
        if self.timeout <= 0:
            problems.append("timeout must be positive")
        if self.height <= 0:
            problems.append("height must be positive")
        if not dry_run:
            if not self.folder_id and not self.chart_id:
                problems.append("folder_id is required unless an existing chart_id is given")
            if not self.token:
                problems.append(f"API token missing; set {TOKEN_ENV} or pass --token")
        if problems:
            raise ConfigError("; ".join(problems))
        return self

    def with_token(self, token: Optional[str]) -> "PipelineConfig":
        if self.token or not token:
            return self
        return replace(self, token=token)
