"""Page metadata read from captured markup."""

import logging
from typing import Optional

from trafilatura.metadata import extract_metadata

logger = logging.getLogger(__name__)


def page_title(markup: str, url: Optional[str] = None) -> Optional[str]:
    """Title of a captured page, or None when the markup has none."""
    if not markup.strip():
        return None
    try:
        metadata = extract_metadata(markup, default_url=url)
    except (ValueError, TypeError) as e:
        logger.debug("Metadata extraction failed for %s: %s", url, e)
        return None
    if metadata is None or not metadata.title:
        return None
    return metadata.title.strip() or None
