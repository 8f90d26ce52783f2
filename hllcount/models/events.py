"""
Event, filter and count reply models
"""
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field, validator

from hllcount.utils.encoding import hex_to_key, is_valid_hex_key


class EventKind:
    """Event kinds that feed approximate counters"""

    FOLLOW_LIST = 3
    REACTION = 7
    COMMENT = 1111


class Event(BaseModel):
    """Signed network event (already verified upstream)"""

    id: str = ""
    pubkey: str = Field(..., description="Author public key, 64 hex characters")
    created_at: int = 0
    kind: int
    tags: List[List[str]] = Field(default_factory=list)
    content: str = ""
    sig: Optional[str] = None

    @validator("pubkey")
    def check_pubkey(cls, v):
        """Author key must be a 32-byte hex string"""
        if not is_valid_hex_key(v):
            raise ValueError("pubkey must be 64 hex characters")
        return v.lower()

    @property
    def subject_key(self) -> bytes:
        """Author key as 32 raw bytes"""
        return hex_to_key(self.pubkey)

    class Config:
        json_schema_extra = {
            "example": {
                "id": "4376c65d2f232afbe9b882a35baa4f6fe8667c4e684749af565f981833ed6a65",
                "pubkey": "6e468422dfb74a5738702a8823b9b28168abab8655faacb6853cd0ee15deee93",
                "created_at": 1700000000,
                "kind": 3,
                "tags": [
                    ["p", "3bf0c63fcb93463407af97a5e5ee64fa883d107ef9e558472c4eb9aaaefa459d"],
                ],
                "content": "",
            }
        }


class Filter(BaseModel):
    """
    Query filter

    Tag selectors ("#p", "#e", ...) are not declared fields; they are kept as
    extra fields and read back through tag_selectors.
    """

    ids: Optional[List[str]] = None
    authors: Optional[List[str]] = None
    kinds: Optional[List[int]] = None
    since: Optional[int] = None
    until: Optional[int] = None
    limit: Optional[int] = None
    search: Optional[str] = None

    class Config:
        extra = "allow"

    @property
    def tag_selectors(self) -> Dict[str, Any]:
        """Extra fields whose names start with '#'"""
        extra = self.model_extra or {}
        return {key: value for key, value in extra.items() if key.startswith("#")}

    @classmethod
    def parse(cls, data: Dict[str, Any]) -> "Filter":
        """Build a filter from its JSON object form"""
        return cls(**data)


class CountResponse(BaseModel):
    """Approximate count reply, carrying the registers so peers can merge them"""

    count: int
    hll: str = Field(..., min_length=512, max_length=512)
    approximate: bool = True
