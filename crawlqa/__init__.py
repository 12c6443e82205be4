"""Autonomous crawl-and-test scheduler for running web applications."""

__version__ = "0.1.0"
