"""
Header merging for relayed requests
"""

from typing import Mapping, Optional

from multidict import CIMultiDict

from config import RELAY_CONFIG


def merge_headers(caller: Optional[Mapping[str, str]] = None,
                  defaults: Optional[Mapping[str, str]] = None) -> CIMultiDict:
    """
    Combine caller headers with the relay defaults.

    Names compare case-insensitively. A default is only added when the caller
    did not supply that header under any casing.
    """
    if defaults is None:
        defaults = RELAY_CONFIG["default_headers"]

    merged = CIMultiDict(caller or {})
    for name, value in defaults.items():
        merged.setdefault(name, value)
    return merged
