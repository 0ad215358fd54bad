# Routes package init
"""
Userhub Backend — API Routes Package
======================================

Route Inventory:
    - upload.py:  POST /api/upload            (profile picture only)
                  POST /api/updateProfile     (fields + optional picture)
    - users.py:   GET  /api/users/{user_id}   (public profile)
    - auth.py:    POST /api/register, POST /api/login
    - media.py:   GET  /api/blobs/{key}       (signed private objects, local backend)
    - health.py:  GET  /health

    Public images are not served by a route: the app factory mounts the
    local media root at /media.

Design Principle:
    Routes are thin. They read the request, call a service, and shape the
    response; failures propagate to the global exception handlers.
"""
