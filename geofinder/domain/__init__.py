"""Domain layer (pure logic).

- Keep game rules and calculations here.
- Avoid I/O: no storage, no HTTP/FastAPI, no Redis.
- Prefer deterministic functions (time/random passed in as arguments if needed).
"""
