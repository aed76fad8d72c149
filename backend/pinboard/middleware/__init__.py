# Middleware package init
"""
Pinboard Backend — Middleware Package
=======================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Access Log] → [GZip] → [CORS] → Route

    1. Rate Limit first: abusive clients are rejected before any work
    2. Request ID: correlation id in a ContextVar, echoed as X-Request-ID
    3. Access Log: method, path, status, duration tagged with the request id
"""
