from __future__ import annotations

import json
import shutil
import subprocess
import sys
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

from rich.console import Console
from rich.table import Table

# Table and JSON output shared by the CLI views.

console = Console()

def run_with_status(message: str, fn: Callable[..., Any], *args, spinner: str = "dots", **kwargs) -> Any:
    """Run a callable under a transient Rich spinner."""
    with console.status(message, spinner=spinner):
        return fn(*args, **kwargs)


def print_json_data(data: Any, output: Optional[str] = None) -> None:
    """
    Print JSON data to stdout (output None, '-' or empty) or write it to a file path.
    Stdout goes through jq for colour when jq is installed.
    """
    json_str = json.dumps(data, indent=2, sort_keys=False, default=str)
    if output not in (None, "", "-"):
        with open(output, "w", encoding="utf-8") as f:
            f.write(json_str + "\n")
        return
    if shutil.which("jq"):
        jq_cmd = ["jq", "."]
        if sys.stdout.isatty():
            jq_cmd.insert(1, "-C")
        proc = subprocess.run(jq_cmd, input=json_str, text=True, check=False)
        if proc.returncode == 0:
            return
    sys.stdout.write(json_str + "\n")
    sys.stdout.flush()


def print_table(
    title: str,
    columns: Sequence[Dict[str, Any]],
    rows: Iterable[Dict[str, Any]],
    style_map: Optional[Dict[str, str]] = None,
    state_key: Optional[str] = None,
) -> None:
    """
    Render a table given a list of column specs and row dicts.
    columns: list of dicts with keys:
      - header: str (column header)
      - key: str (field key to pull from each row)
      - no_wrap: bool (optional; default False)
    style_map: optional mapping of a state value -> Rich style for the state cell
    state_key: key in row holding the state to colourise
    """
    table = Table(title=title, show_lines=False)
    for col in columns:
        table.add_column(str(col.get("header", "")), no_wrap=bool(col.get("no_wrap", False)))

    for r in rows:
        rendered: list[str] = []
        for col in columns:
            key = str(col.get("key", ""))
            val = r.get(key, "")
            if isinstance(val, list):
                val = ", ".join(str(x) for x in val)
            val_str = "" if val is None else str(val)
            if state_key and key == state_key and style_map:
                style = style_map.get(val_str)
                if style:
                    val_str = f"[{style}]{val_str}[/{style}]"
            rendered.append(val_str)
        table.add_row(*rendered)
    console.print(table)
