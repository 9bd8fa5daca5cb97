"""
Backend package for the Shotify template editor.

This package provides a FastAPI application with storage and database
abstractions for templates, user projects and uploaded image assets.
"""
