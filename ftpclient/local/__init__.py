"""Local filesystem module.

This module provides:
- LocalDirectorySource: Enumeration interface used by directory uploads
- LocalScanner: pathlib implementation of LocalDirectorySource
"""

from ftpclient.local.scanner import LocalDirectorySource, LocalScanner

__all__ = ["LocalDirectorySource", "LocalScanner"]
