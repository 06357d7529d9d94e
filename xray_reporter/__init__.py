"""
Xray Run Reporter.

Console reporter for end-to-end test runs that can push aggregated
results to Jira Xray as Test Execution issues:
- Collecting per-test outcomes from the host test runner.
- Rendering progress and summaries to the terminal.
- Grouping results by Test Plan and importing them into Xray.
"""

__version__ = "0.3.0"
