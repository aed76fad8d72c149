# Routes package init
"""
Pinboard Backend — API Routes Package
=======================================

Route Inventory:
    - users.py:     POST /users/auth/register | /login | /logout
                    GET  /users/{username}
                    POST /users/follow/{username}
    - pins.py:      GET  /pins, GET /pins/{id}, POST /pins
                    GET  /pins/interaction-check/{id}
                    POST /pins/interact/{id}
    - boards.py:    GET  /boards/{userId}
    - comments.py:  GET  /comments/{pinId}, POST /comments
    - health.py:    GET  /health

Routes stay thin: read the request, call one service method, set the status
code and cookie. Errors propagate to the handlers registered in main.py.
"""
