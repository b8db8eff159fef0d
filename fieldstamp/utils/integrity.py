"""
Integrity utilities: SHA-256 content hashing and tamper verification.

Hashes fingerprint a source document at ingestion and the produced output,
and are recomputed later to detect changes. A mismatch is a normal result
(IntegrityResult.changed), not an exception.
"""
import hashlib
import json
from dataclasses import dataclass, asdict
from typing import Any, Mapping


@dataclass(frozen=True)
class IntegrityResult:
    """Outcome of comparing a recorded hash with freshly computed content."""
    is_verified: bool
    expected_hash: str
    current_hash: str
    changed: bool

    def to_dict(self) -> dict:
        return asdict(self)


def compute_file_hash(file_path: str) -> str:
    """
    Compute SHA-256 hash of a file.
    Reads file in chunks for memory efficiency.
    """
    sha256 = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            sha256.update(chunk)
    return sha256.hexdigest()


def compute_bytes_hash(data: bytes) -> str:
    """Compute SHA-256 hash of bytes."""
    return hashlib.sha256(data).hexdigest()


def compute_audit_hash(data: Mapping[str, Any]) -> str:
    """
    Compute SHA-256 over an audit entry.

    Keys are sorted so the same entry always hashes the same regardless of
    insertion order. Non-JSON values (datetimes, enums) are stringified.
    """
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _compare(expected_hash: str, current_hash: str) -> IntegrityResult:
    expected = (expected_hash or "").strip().lower()
    matches = expected == current_hash
    return IntegrityResult(
        is_verified=matches,
        expected_hash=expected,
        current_hash=current_hash,
        changed=not matches,
    )


def verify_integrity(expected_hash: str, current_bytes: bytes) -> IntegrityResult:
    """
    Re-hash content and compare it against a previously recorded hash.

    Args:
        expected_hash: Hex SHA-256 recorded earlier (case-insensitive)
        current_bytes: Content as it exists now

    Returns:
        IntegrityResult with changed=True when the content no longer matches
    """
    return _compare(expected_hash, compute_bytes_hash(current_bytes))


def verify_file_integrity(expected_hash: str, file_path: str) -> IntegrityResult:
    """Same as verify_integrity() for a stored file."""
    return _compare(expected_hash, compute_file_hash(file_path))
