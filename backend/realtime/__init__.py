"""
Realtime app for in-app booking notifications over WebSocket.

Key Components:
    - consumers/: WebSocket consumers (per-user notification stream)
    - middleware.py: JWT/Cookie authentication for WebSocket connections
    - routing.py: WebSocket URL patterns

Server code publishes with notifications.dispatch.push_user_event(), which
targets the recipient's personal group: user_<id>
"""
