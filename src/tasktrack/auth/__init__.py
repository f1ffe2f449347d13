"""Authentication and authorization.

Learn: Users log in with email/password and receive a signed JWT.
Every protected request then passes two gates, in order:
1. Authentication: bearer token → verified claims → user row
2. Authorization: the resolved role must be allowed for the route

Both gates are FastAPI dependencies (see dependencies.py).
"""
