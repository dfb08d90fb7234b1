"""Dashboard surface -- FastAPI app, JSON data routes and realtime quote push."""
