"""Jinja2 rendering of outbound email bodies."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Tuple

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from models.records import WaterParameters
from models.reference import NORMAL_RANGES

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

_PARAMETER_LABELS = (
    ("ph", "pH Level"),
    ("ecoli", "E.coli (CFU/100ml)"),
    ("turbidity", "Turbidity (NTU)"),
    ("tds", "TDS (ppm)"),
    ("temperature", "Temperature (°C)"),
    ("flow_rate", "Flow Rate (L/min)"),
    ("dissolved_oxygen", "Dissolved Oxygen (mg/L)"),
)


@lru_cache
def get_environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(["html"]),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_pair(name: str, context: Dict[str, Any]) -> Tuple[str, str]:
    """Render ``<name>.html`` and ``<name>.txt`` with the same context."""

    env = get_environment()
    html = env.get_template(f"{name}.html").render(**context)
    text = env.get_template(f"{name}.txt").render(**context)
    return html, text


def parameter_rows(parameters: WaterParameters) -> List[Dict[str, Any]]:
    values = parameters.as_dict()
    rows = []
    for key, label in _PARAMETER_LABELS:
        bounds = NORMAL_RANGES[key]
        value = values[key]
        rows.append(
            {
                "label": label,
                "value": f"{value:g}",
                "normal": f"{bounds.min:g} - {bounds.max:g}",
            }
        )
    return rows
