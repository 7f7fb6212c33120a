"""
Deterministic identifier generation.

Records created by migrations (default accounts, seeded income categories)
need identifiers that do not depend on randomness, so that migrating the same
legacy data twice yields the same document.
"""

import hashlib


def generate_id(*parts: str, prefix: str = "", length: int = 16) -> str:
    """
    Generate a deterministic identifier from seed parts.

    Args:
        parts: Seed values; the same parts always produce the same ID.
        prefix: Optional human-readable prefix.
        length: Number of hex characters kept from the digest.

    Returns:
        Identifier such as ``acc_1f3a...``.
    """
    hash_func = hashlib.sha256()
    hash_func.update("|".join(parts).encode("utf-8"))
    digest = hash_func.hexdigest()[:length]
    return f"{prefix}_{digest}" if prefix else digest


def compute_text_size(text: str) -> int:
    """Return the UTF-8 encoded size of a stored string in bytes."""
    return len(text.encode("utf-8"))
