"""HTTP API for MIME detection and negotiation."""

from .server import create_app

__all__ = ['create_app']
