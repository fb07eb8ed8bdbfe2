"""
Build the responsive Datawrapper embed snippet and write it out.

Usage:
    python embed.py --title TITLE --chart-id ID [--height 400]

Outputs:
    reports/embed.html
    README.md (embed block between markers + 'Last updated' stamp)
"""
from __future__ import annotations

import argparse
import html
import logging
from datetime import datetime, timezone
from pathlib import Path

from config import CDN_HOST


EMBED_HTML = Path("reports/embed.html")
README = Path("README.md")
MARKER_PREFIX = "Last updated: "
EMBED_START = "<!-- embed:start -->"
EMBED_END = "<!-- embed:end -->"

# Resizes any frame whose window posts a "datawrapper-height" message
RESIZE_SCRIPT = (
    '<script type="text/javascript">!function(){"use strict";'
    'window.addEventListener("message",(function(a){'
    'if(void 0!==a.data["datawrapper-height"]){'
    'var e=document.querySelectorAll("iframe");'
    'for(var t in a.data["datawrapper-height"])'
    'for(var r=0;r<e.length;r++)'
    'if(e[r].contentWindow===a.source){'
    'var i=a.data["datawrapper-height"][t]+"px";e[r].style.height=i}}}))}();'
    "</script>"
)

log = logging.getLogger(__name__)


def embed_code(title: str, chart_id: str, height: int = 400) -> str:
    src = f"https://{CDN_HOST}/{chart_id}/"
    frame = (
        f'<iframe title="{html.escape(title, quote=True)}" aria-label="Map" '
        f'id="datawrapper-chart-{chart_id}" src="{src}" '
        'scrolling="no" frameborder="0" '
        'style="width: 0; min-width: 100% !important; border: none;" '
        f'height="{height}" data-external="1"></iframe>'
    )
    return frame + RESIZE_SCRIPT


def write_embed(snippet: str, path: Path = EMBED_HTML) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(snippet + "\n")
    return path


def update_readme(snippet: str, readme: Path = README) -> bool:
    if not readme.exists():
        return False
    lines = readme.read_text().splitlines()
    today = datetime.now(timezone.utc).date().isoformat()
    new_lines = []
    in_block = False
    embedded = False
    stamped = False
    for line in lines:
        if line.strip() == EMBED_START:
            new_lines.extend([EMBED_START, snippet, EMBED_END])
            in_block = True
            embedded = True
            continue
        if in_block:
            if line.strip() == EMBED_END:
                in_block = False
            continue
        if line.startswith(MARKER_PREFIX):
            new_lines.append(f"{MARKER_PREFIX}{today}")
            stamped = True
        else:
            new_lines.append(line)
    if not embedded:
        new_lines.extend(["", EMBED_START, snippet, EMBED_END])
    if not stamped:
        new_lines.append(f"{MARKER_PREFIX}{today}")
    readme.write_text("\n".join(new_lines) + "\n")
    log.info("README embed updated (%s)", today)
    return True


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Write the Datawrapper embed snippet")
    p.add_argument("--title", required=True)
    p.add_argument("--chart-id", required=True)
    p.add_argument("--height", type=int, default=400)
    return p.parse_args()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
    args = parse_args()
    snippet = embed_code(args.title, args.chart_id, args.height)
    path = write_embed(snippet)
    update_readme(snippet)
    print(f"Saved embed -> {path}")


if __name__ == "__main__":
    main()
