import re
from typing import List, Optional

_LABEL_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")
_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


def is_valid_address(value: str) -> bool:
    """Sui account address: 0x followed by 32 bytes of hex."""
    return bool(_ADDRESS_RE.match((value or "").strip()))


def normalize_name(raw: str) -> Optional[str]:
    """
    Canonical dotted form used as the tracked name and lookup key.
    Accepts `@alice`, `alice.sui`, `sub@alice`, `sub.alice.sui` and bare `alice`.
    Returns None when the input cannot be a SuiNS name.
    """
    s = (raw or "").strip().lower()
    if not s:
        return None

    if "@" in s:
        left, _, right = s.rpartition("@")
        if not right or "." in right:
            return None
        s = f"{left}.{right}.sui" if left else f"{right}.sui"
    elif not s.endswith(".sui"):
        s = f"{s}.sui"

    labels = s.split(".")
    if len(labels) < 2 or any(not _LABEL_RE.match(label) for label in labels):
        return None
    return s


def domain_labels(name: str) -> List[str]:
    """Labels in on-chain order (TLD first): `sub.alice.sui` -> ["sui", "alice", "sub"]."""
    return list(reversed(name.split(".")))


def format_name(name: str) -> str:
    """Display form: `alice.sui` -> `@alice`, `sub.alice.sui` -> `sub@alice`."""
    pure = re.sub(r"\.sui$", "", name or "")
    if "." in pure:
        return pure.replace(".", "@")
    return "@" + pure


def short_address(address: str) -> str:
    a = address or ""
    if len(a) <= 14:
        return a
    return f"{a[:6]}...{a[-4:]}"
