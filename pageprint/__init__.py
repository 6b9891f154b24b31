"""Render web pages to PDF or PNG with headless Chromium."""

__version__ = "1.0.0"
