# scival_explorer/render.py
"""
Template rendering.

Page templates and partials are read from disk once, at startup, into a single
Jinja2 DictLoader. The resulting environment is never modified afterwards, so
rendering is a pure function of (template, context, today).

Pages are addressed by file name ("author.html"); partials by their bare name
("metrics"), e.g. ``{% include "metrics" %}``.
"""
from __future__ import annotations

import logging
import re
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from jinja2 import DictLoader, Environment, Undefined, select_autoescape

log = logging.getLogger("scival.render")

_PARTIAL_RE = re.compile(r"^([^.]+)\.html$")
_NUMERAL_RE = re.compile(r"^0(,0)?(?:\.(0+))?(%)?$")
_UPPER_BOUNDARY_RE = re.compile(r"(?<=.)(?=[A-Z])")


# ==============================
# Helpers
# ==============================

def remove_id_prefix(value: Any) -> str:
    """'2-s2.0-85012345678' -> '85012345678'; unchanged when there is no '-'."""
    return str(value).rpartition("-")[2]


def camel_case_to_spaced(value: Any, capitalize: bool = True) -> str:
    s = _UPPER_BOUNDARY_RE.sub(" ", str(value))
    if capitalize and s:
        s = s[0].upper() + s[1:]
    return s


def if_equals(a: Any, b: Any) -> bool:
    if a == b:
        return True
    if a is None or b is None:
        return False
    return str(a) == str(b)


def format_number(value: Any, pattern: str = "0,0") -> Any:
    """
    Numeral-style formatting: '0,0' -> 12,345 ; '0,0.00' -> 12,345.68 ;
    '0.0' -> 12345.7 ; '0.0%' -> 45.6% (value taken as a fraction).
    Values that are not numbers are returned as they are.
    """
    m = _NUMERAL_RE.match(pattern)
    if not m:
        raise ValueError(f"unsupported number pattern: {pattern!r}")
    if value is None or isinstance(value, (bool, Undefined)):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return value
    grouping, decimals, percent = m.group(1), m.group(2) or "", m.group(3)
    if percent:
        number *= 100
    fmt = f"{',' if grouping else ''}.{len(decimals)}f"
    return format(number, fmt) + ("%" if percent else "")


# ==============================
# Renderer
# ==============================

class Renderer:
    def __init__(self, env: Environment):
        self._env = env

    @property
    def templates(self) -> list:
        return self._env.list_templates()

    def render(self, template_name: str, context: Mapping[str, Any]) -> str:
        return self._env.get_template(template_name).render(**context)


def load_templates(templates_dir: Path) -> Dict[str, str]:
    if not templates_dir.is_dir():
        raise FileNotFoundError(f"templates directory not found: {templates_dir}")

    sources: Dict[str, str] = {}
    for page in sorted(templates_dir.glob("*.html")):
        sources[page.name] = page.read_text(encoding="utf-8")

    partials_dir = templates_dir / "partials"
    if partials_dir.is_dir():
        for path in sorted(partials_dir.iterdir()):
            m = _PARTIAL_RE.match(path.name)
            if not m or not path.is_file():
                continue
            log.info("Registering partial file [%s]", m.group(1))
            sources[m.group(1)] = path.read_text(encoding="utf-8")
    return sources


def build_renderer(templates_dir: Path, today: Callable[[], date] = date.today) -> Renderer:
    env = Environment(
        loader=DictLoader(load_templates(templates_dir)),
        autoescape=select_autoescape(default=True, default_for_string=True),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters.update(
        remove_id_prefix=remove_id_prefix,
        camel_case_to_spaced=camel_case_to_spaced,
        format_number=format_number,
    )
    env.globals.update(
        if_equals=if_equals,
        current_year_minus=lambda offset=0: today().year - int(offset),
    )
    log.info("Loaded %d templates from %s", len(env.list_templates()), templates_dir)
    return Renderer(env)
