"""
Benchmark harness for a locally built storage server.

This package builds and launches the server, waits for it to accept
connections, times PUT/GET/LIST/DELETE operations plus a concurrent upload
batch, and tears everything down again before printing a summary report.
"""

from .main import main

__all__ = ["main"]
