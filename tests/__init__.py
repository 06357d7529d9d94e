"""
Xray Run Reporter - Test Suite Package.

Unit tests for the collector, configuration, console rendering, Jira Xray
client and sync, lifecycle reporter and pytest bridge.
"""
