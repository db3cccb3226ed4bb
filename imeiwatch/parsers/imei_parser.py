"""
imeiwatch/parsers/imei_parser.py
Parses the raw IMEI text box (newline or comma separated).

Whole-batch validation: a single malformed token rejects the batch.
Duplicates are kept in submission order — each occurrence is looked up
and reported.
"""

import logging
import re
from typing import List

from imeiwatch.errors import EmptyInput, InvalidFormat

logger = logging.getLogger(__name__)

SEPARATORS = re.compile(r'[\n,]')
IMEI_PATTERN = re.compile(r'[0-9]{15}')


def tokenize(text: str) -> List[str]:
    """Split on newline/comma, trim, drop empty tokens."""
    if not text:
        return []
    tokens = (t.strip() for t in SEPARATORS.split(text))
    return [t for t in tokens if t]


def count_imeis(text: str) -> int:
    """Number of non-empty tokens typed so far (unvalidated)."""
    return len(tokenize(text))


def is_valid_imei(token: str) -> bool:
    return IMEI_PATTERN.fullmatch(token) is not None


def parse_imeis(text: str) -> List[str]:
    """
    Validate a raw IMEI batch.

    Returns the IMEIs in submission order.
    Raises EmptyInput if nothing is left after trimming, InvalidFormat
    listing every token that is not exactly 15 decimal digits.
    """
    imeis = tokenize(text)
    if not imeis:
        raise EmptyInput()

    invalid = [t for t in imeis if not is_valid_imei(t)]
    if invalid:
        logger.warning(f"Rejected batch: {len(invalid)} of {len(imeis)} tokens invalid")
        raise InvalidFormat(invalid)

    logger.debug(f"Validated {len(imeis)} IMEIs")
    return imeis
