"""site-harvest core library.

This package recursively mirrors a web site into one flat directory per run
by driving a real browser, and keeps a crash-safe JSON report so an
interrupted run can be resumed.

Repo rules:
- Browser mechanics stay behind the ``Renderer`` protocol.
- The run report is only ever written by ``RunStateStore``.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
