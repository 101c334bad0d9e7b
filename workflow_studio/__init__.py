"""Workflow Studio: execution backend for visual AI workflows."""

__version__ = "1.0.0"
