# File: indie_scout/report/__init__.py
"""indie_scout.report: запись отчётов прогона, используемая CLI и тестами."""

from indie_scout.report.json_report import render_json

__all__ = ["render_json"]
