"""Rendering helpers for catalog results."""

from .json import catalog_payload, render_json, write_json
from .table import render_table

__all__ = ["catalog_payload", "render_json", "render_table", "write_json"]
