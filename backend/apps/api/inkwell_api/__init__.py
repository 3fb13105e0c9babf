"""
Inkwell API.

FastAPI application exposing the interaction engine over HTTP.
"""

__version__ = "0.1.0"
