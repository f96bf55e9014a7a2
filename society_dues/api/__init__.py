"""HTTP API for the society dues dashboard."""

from society_dues.api.app import create_app

__all__ = ["create_app"]
