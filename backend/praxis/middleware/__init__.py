# Middleware package init
"""
Praxis OS Backend: Middleware Package
======================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    Request ID runs first so the access log line carries the id. The order is
    reversed for responses, so the access log sees the final status code.
"""
