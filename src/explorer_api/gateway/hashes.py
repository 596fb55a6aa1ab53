"""Hash codec for the chain-sync storage format.

Chain-sync stores every hash with a leading '\\x' marker (the textual
form of a bytea column). Nothing outside the gateway ever sees that
marker: hashes are wrapped on the way into a query and unwrapped on the
way out.
"""

HASH_PREFIX = "\\x"


def wrap_hash(hash_hex: str) -> str:
    """Convert a plain lowercase hex hash into its stored form."""
    return f"{HASH_PREFIX}{hash_hex.lower()}"


def unwrap_hash(stored: str) -> str:
    """Convert a stored hash back into plain lowercase hex."""
    if stored.startswith(HASH_PREFIX):
        stored = stored[len(HASH_PREFIX):]
    return stored.lower()
