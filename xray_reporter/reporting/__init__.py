"""
Reporting Module.

Terminal presentation of a run: section headers, per-test lines,
error lists, the results summary and Jira status messages.
"""

from xray_reporter.reporting.console import ConsoleWriter, Palette

__all__ = ["ConsoleWriter", "Palette"]
