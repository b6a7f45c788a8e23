# file: scamshield/__init__.py
"""
scamshield - call-blocking synchronization for a scam-reporting app.

This package keeps a durable block list shared between the main app and a
separately running call-directory extension, asks the host to reload the
extension after every change, and consults a remote report service before
blocking.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
