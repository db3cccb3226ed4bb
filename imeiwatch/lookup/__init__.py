"""
imeiwatch/lookup — device lookup backends.
"""

from imeiwatch.lookup.base import LookupClient
from imeiwatch.lookup.http_client import HttpLookupClient

__all__ = [
    "LookupClient",
    "HttpLookupClient",
]
