"""
Serialization of region lists.

Responsibility:
    Convert face regions to and from the JSON array format exchanged with
    callers: [{"x": .., "y": .., "width": .., "height": ..}, ...].
"""

import json
import logging
from typing import Iterable, List

from faceblur.detection import Region

logger = logging.getLogger(__name__)

_FIELDS = ("x", "y", "width", "height")


def regions_to_json(regions: Iterable[Region]) -> str:
    """Serialize regions to a JSON array string, preserving order."""
    return json.dumps([region.to_dict() for region in regions])


def regions_from_json(text: str) -> List[Region]:
    """Parse a JSON array of rectangles into Region objects.

    Numeric values are truncated to int. Extra keys are ignored.

    Raises:
        ValueError: If the text is not valid JSON or an entry is malformed.
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid region JSON: {e}") from e

    if not isinstance(payload, list):
        raise ValueError(
            f"Region JSON must be an array, got {type(payload).__name__}."
        )

    regions: List[Region] = []
    for idx, item in enumerate(payload):
        if not isinstance(item, dict):
            raise ValueError(f"Region #{idx} must be an object, got {item!r}.")

        missing = [name for name in _FIELDS if name not in item]
        if missing:
            raise ValueError(f"Region #{idx} is missing {missing}.")

        try:
            regions.append(Region(**{name: int(item[name]) for name in _FIELDS}))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Region #{idx} has a non-numeric value: {item!r}.") from e

    logger.debug("Parsed %d region(s) from JSON", len(regions))
    return regions
