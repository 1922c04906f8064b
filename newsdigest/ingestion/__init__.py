"""Page rendering and URL handling."""

from .renderer import BrowserRenderer, HttpRenderer, Renderer, create_renderer
from .metadata import page_title
from .urls import (
    domain_of,
    model_suffix,
    parse_candidate_urls,
    source_name_for,
    url_to_basename,
)

__all__ = [
    "BrowserRenderer",
    "HttpRenderer",
    "Renderer",
    "create_renderer",
    "domain_of",
    "page_title",
    "model_suffix",
    "parse_candidate_urls",
    "source_name_for",
    "url_to_basename",
]
