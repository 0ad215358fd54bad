# Middleware package init
"""
Userhub Backend — Middleware Package
======================================

Middleware Chain (order matters!):
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Request ID first so every later log line can be correlated
    2. Logging measures the full duration including image processing
    3. CORS is FastAPI's CORSMiddleware (handles preflight)
"""
