"""Auth0-backed session handling for the lab portal."""

__version__ = "0.1.0"
