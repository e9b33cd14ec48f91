# Middleware package init
"""
Notes Backend — Middleware Package
====================================

Middleware Chain (outermost first):
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → [Error boundary] → Route

    1. Request ID: correlation id for logs and the X-Request-ID header
    2. Logging: one access line per request, with status and duration
    3. Error boundary: unexpected exceptions become a 500 envelope inside
       the chain, so they still get a request id and an access log line
"""
