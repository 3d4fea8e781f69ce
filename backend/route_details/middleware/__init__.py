# Middleware package init
"""
Route Details Backend: Middleware Package
===========================================

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    Request ID runs first so the access-log line and every log line written
    by the handler carry the same correlation ID.
"""
