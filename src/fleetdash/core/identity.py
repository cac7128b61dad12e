from __future__ import annotations

import re

# 12 hex digits: a MAC address without separators, as ESP firmware embeds it
# in its default node names.
HARDWARE_ID_RE = re.compile(r"[0-9a-fA-F]{12}")


def _hardware_ids(logical_id: str) -> list[str]:
    return HARDWARE_ID_RE.findall(logical_id)


def has_physical_id(logical_id: str) -> bool:
    return bool(_hardware_ids(logical_id))


def extract_physical_id(logical_id: str) -> str:
    """Return the hardware id embedded in a node id.

    The last match wins so ids such as ``esp-112233445566-aabbccddeeff``
    resolve to the trailing address. Ids without one are their own
    physical id.
    """
    matches = _hardware_ids(logical_id)
    if matches:
        return matches[-1]
    return logical_id


def same_device(first: str, second: str) -> bool:
    return extract_physical_id(first) == extract_physical_id(second)
