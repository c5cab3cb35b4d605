"""Cloudflare REST API access (Workers AI, Vectorize, D1)."""

from .client import CloudflareAPIError, CloudflareClient, get_cloudflare_client

__all__ = ["CloudflareAPIError", "CloudflareClient", "get_cloudflare_client"]
