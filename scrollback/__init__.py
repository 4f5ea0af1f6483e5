"""
Chat history scraper.

This package walks a virtualized chat list backward through its history,
extracting records from DOM snapshots, and exposes the same operations to a
local control process over a WebSocket RPC bridge.
"""
