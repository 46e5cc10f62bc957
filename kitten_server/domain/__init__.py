"""Domain layer (pure logic).

- Keep card and game rules here.
- Avoid I/O: no Redis, no HTTP/FastAPI, no WebSockets.
- Prefer deterministic functions (randomness is passed in as an argument).
"""
