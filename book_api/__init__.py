"""
FastAPI REST backend for the Book Directory application.

This package provides:
- User registration, login and logout with server-side sessions
- Book creation, listing, update and deletion
- Ownership rules between users and the books they created
"""
