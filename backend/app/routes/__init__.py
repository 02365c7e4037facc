# Routes package init
"""
XFound Backend — API Routes Package
=====================================

Route Inventory:
    - auth.py:         /api/auth/signup, login, logout, forgot-password,
                       reset-password/{token}
    - items.py:        /api/items (CRUD, search, per-user listing)
    - chats.py:        /api/chats (open, inbox, history)
    - chat_socket.py:  /ws/chat    (real-time messages)
    - files.py:        /api/files/{path} (listing images)
    - health.py:       /health

Routes stay thin: read the request, call a service, shape the response.
Errors are raised as XFoundError subclasses and formatted by the global
handlers in main.py.
"""
