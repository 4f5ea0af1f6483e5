"""Host page access.

``HostPage`` is the interface the engine and bridge program against. The
Playwright implementation lives in ``scrollback.host.playwright_page`` and is
imported explicitly where a real browser is needed.
"""

from scrollback.host.page import HostPage, ScrollDirection

__all__ = ["HostPage", "ScrollDirection"]
