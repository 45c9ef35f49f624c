"""Domain layer (pure logic).

- Keep rehearsal rules here: deck, scenarios, camera rules, role slots, board reveal.
- Avoid I/O: no document store, no HTTP/FastAPI, no Redis.
- Prefer deterministic functions (randomness passed in as a numpy Generator).
"""
