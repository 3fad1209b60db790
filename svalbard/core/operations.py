"""Operations guarded by access tokens."""

from enum import IntEnum


class Operation(IntEnum):
    """
    Share operation a token is scoped to.

    Ordinals are stable; token store bindings rely on them.
    """
    STORE = 0
    RETRIEVE = 1
    DELETE = 2

    @property
    def token_label(self) -> str:
        """Human-readable token name used in responses and logs."""
        return _TOKEN_LABELS[self]


_TOKEN_LABELS = {
    Operation.STORE: "storage",
    Operation.RETRIEVE: "retrieval",
    Operation.DELETE: "deletion",
}
