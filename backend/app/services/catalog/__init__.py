"""Relational store access: perfume records and questionnaire responses."""

from .perfumes import PerfumeCatalog, build_perfume_details_query, get_perfume_catalog
from .responses import ResponseRecorder, get_response_recorder

__all__ = [
    "PerfumeCatalog",
    "build_perfume_details_query",
    "get_perfume_catalog",
    "ResponseRecorder",
    "get_response_recorder",
]
