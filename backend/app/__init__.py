"""Perfume recommendation API."""
