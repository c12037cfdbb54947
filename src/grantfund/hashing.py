from __future__ import annotations

import hashlib
import json
from typing import Sequence

from src.grantfund.models import TransferAction


def description_hash(description: str) -> str:
    return hashlib.sha256(description.encode("utf-8")).hexdigest()


def hash_proposal(actions: Sequence[TransferAction], description: str) -> str:
    """Content hash identifying a proposal.

    Two submissions with the same actions and description map to the same id.
    """
    payload = {
        "actions": [[a.token, a.recipient, str(a.amount)] for a in actions],
        "description": description_hash(description),
    }
    encoded = json.dumps(payload, separators=(",", ":"), sort_keys=True)
    return "0x" + hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def hash_slate(proposal_ids: Sequence[str]) -> str:
    """Order-sensitive hash of a slate."""
    encoded = json.dumps(list(proposal_ids), separators=(",", ":"))
    return "0x" + hashlib.sha256(encoded.encode("utf-8")).hexdigest()


__all__ = ["description_hash", "hash_proposal", "hash_slate"]
