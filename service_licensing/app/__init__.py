"""
Licensing Service package.

Answers "is this installation licensed?" for the host application. It
provides:

- app.main: API surface for license checks, refreshes and health.
- app.hq: HQ verification client and verdict caching.
- app.cache: Cache store backends (in-process and Redis).

Guidelines:
- Checks never raise on network trouble; they fail open with diagnostics.
- Keep HQ traffic low: successful verdicts are cached for hours.
"""
