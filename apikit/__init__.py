"""WSGI toolkit for JSON APIs: routing, middleware, localized errors, validation and pagination."""

__version__ = "0.1.0"