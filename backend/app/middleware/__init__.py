# Middleware package init
"""
XFound Backend — Middleware Package
=====================================

Middleware Chain (HTTP only; the /ws/chat socket bypasses BaseHTTPMiddleware):
    Request → [Rate Limit] → [Request ID] → [Access Log] → [GZip] → [CORS] → Route

    1. Rate Limit first: reject abusive clients before any work
    2. Request ID: correlation id for every log line of the request
    3. Access Log: method, path, status, duration with the request id
"""
