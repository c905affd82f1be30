from dataclasses import dataclass, replace, asdict
from typing import List, Optional, Tuple, Any, Dict


@dataclass(frozen=True)
class NameRecord:
    """A resolved SuiNS name record."""
    name: str = ""
    expiresAtMs: Optional[int] = None
    targetAddress: Optional[str] = None
    # Registration NFT id; its owner is the account that controls the name.
    nftId: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["NameRecord"]:
        if not isinstance(data, dict):
            return None
        return cls(
            name=str(data.get("name") or ""),
            expiresAtMs=data.get("expiresAtMs"),
            targetAddress=data.get("targetAddress"),
            nftId=data.get("nftId"),
        )


@dataclass(frozen=True)
class OwnedName:
    """A SuinsRegistration object held by an account."""
    objectId: str
    name: str
    expiresAtMs: int


@dataclass(frozen=True)
class SessionState:
    """
    Per-chat conversation context. Immutable: every transition returns a new
    value, and one-shot fields are cleared by the transition that consumes them.
    """
    # None | "track-address:address" | "track-name:name"
    waitingFor: Optional[str] = None
    # Owner address offered for a follow-up "search this owner's names"
    recentLookup: Optional[str] = None
    # Record fetched by a name search, waiting for "Track expiration"
    pendingTrack: Optional[NameRecord] = None
    # Ordered snapshot behind the "Stop tracking" buttons of the last list
    lastListedNames: Optional[Tuple[str, ...]] = None
    # Only varies the wording of the next greeting
    triedUnknownCommand: bool = False

    # --- transitions ---

    def awaiting(self, waiting_for: str) -> "SessionState":
        # A new search makes earlier follow-ups stale.
        return replace(self, waitingFor=waiting_for, pendingTrack=None, recentLookup=None)

    def consume_input(self) -> Tuple[Optional[str], "SessionState"]:
        return self.waitingFor, replace(self, waitingFor=None)

    def with_pending_track(self, record: NameRecord) -> "SessionState":
        return replace(self, pendingTrack=record)

    def take_pending_track(self) -> Tuple[Optional[NameRecord], "SessionState"]:
        return self.pendingTrack, replace(self, pendingTrack=None)

    def with_recent_lookup(self, address: Optional[str]) -> "SessionState":
        return replace(self, recentLookup=address)

    def take_recent_lookup(self) -> Tuple[Optional[str], "SessionState"]:
        return self.recentLookup, replace(self, recentLookup=None)

    def with_listed_names(self, names: List[str]) -> "SessionState":
        return replace(self, lastListedNames=tuple(names))

    def mark_confused(self) -> "SessionState":
        return replace(self, triedUnknownCommand=True)

    # --- persistence ---

    def to_dict(self) -> Dict[str, Any]:
        return {
            "waitingFor": self.waitingFor,
            "recentLookup": self.recentLookup,
            "pendingTrack": self.pendingTrack.to_dict() if self.pendingTrack else None,
            "lastListedNames": list(self.lastListedNames) if self.lastListedNames is not None else None,
            "triedUnknownCommand": bool(self.triedUnknownCommand),
        }
