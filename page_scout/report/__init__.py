# File: page_scout/report/__init__.py
"""page_scout.report: CSV and JSON reports built from the crawler's page records."""

from page_scout.report.csv_report import write_csv_report
from page_scout.report.json_report import render_json

__all__ = ["write_csv_report", "render_json"]
