from __future__ import annotations

from faultline.reporters.city import build_city
from faultline.reporters.json_reporter import parse_json_report, render_city_json, render_json
from faultline.reporters.terminal import render_terminal

__all__ = ["build_city", "parse_json_report", "render_city_json", "render_json", "render_terminal"]
