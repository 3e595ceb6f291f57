"""SHA-256 digests over canonical JSON.

Artifacts, approval signals, stage inputs and outputs and ledger seals all
hash the same serialization: sorted keys, no insignificant whitespace,
ASCII-only, UTF-8 bytes.  Two processes that agree on the data therefore
agree on the digest.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True).encode()


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _digest(obj: Any) -> str:
    return sha256_hex(canonical_json_bytes(obj))


def compute_input_hash(stage_id: str, inputs: dict[str, Any]) -> str:
    """Digest of what a stage was given, recorded on its ``running`` entry."""
    return _digest({"stage_id": stage_id, "inputs": inputs})


def compute_output_hash(stage_id: str, outputs: dict[str, Any]) -> str:
    """Digest of what a stage produced (or of its failure details)."""
    return _digest({"stage_id": stage_id, "outputs": outputs})


def compute_entry_hash(entry_dict: dict[str, Any]) -> str:
    """Seal for a ledger entry: the digest of every field but ``entry_hash``."""
    return _digest({key: value for key, value in entry_dict.items() if key != "entry_hash"})
