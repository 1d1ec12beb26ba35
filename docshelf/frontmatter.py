"""
Front matter (leading ``---`` header block) parsing.

Best-effort and informational only: malformed headers are treated as
absent, never as errors.
"""

import logging
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

FRONT_MATTER_DELIMITER = "---"


def parse_front_matter(content: str) -> tuple[Optional[dict[str, Any]], str]:
    """
    Split content into (front matter, body).

    The header block must start on the first line with ``---`` and end at
    the next line that is exactly ``---`` (surrounding whitespace ignored).

    Returns:
        (fields, body). fields is None when there is no usable header;
        body is then the full content.
    """
    lines = content.split("\n")
    if len(lines) < 3 or lines[0].strip() != FRONT_MATTER_DELIMITER:
        return None, content

    end = next(
        (i for i in range(1, len(lines)) if lines[i].strip() == FRONT_MATTER_DELIMITER),
        None,
    )
    if end is None:
        return None, content

    header = "\n".join(lines[1:end])
    body = "\n".join(lines[end + 1:]).strip()
    try:
        fields = yaml.safe_load(header)
    except yaml.YAMLError as e:
        logger.debug("Ignoring unparseable front matter: %s", e)
        return None, content
    if not isinstance(fields, dict) or not fields:
        return None, body
    return {str(k): v for k, v in fields.items()}, body


def extract_synopsis(content: str) -> Optional[str]:
    """The ``synopsis`` front matter field as a string, if present."""
    fields, _ = parse_front_matter(content)
    if not fields:
        return None
    value = fields.get("synopsis")
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value).strip() or None
