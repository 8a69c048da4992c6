"""Client for the tarkov.dev community API."""

from libraries.tarkov.client import DEFAULT_API_URL, TarkovAPIError, TarkovClient

__all__ = ["DEFAULT_API_URL", "TarkovAPIError", "TarkovClient"]
