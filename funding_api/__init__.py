"""FastAPI surface for the funding dashboard (JSON, WebSocket and static page)."""
