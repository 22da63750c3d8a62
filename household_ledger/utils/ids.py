"""Record id generation."""

from uuid import uuid4


def new_id(prefix: str) -> str:
    """Globally unique record id, e.g. "bill_3f2a...". """
    return f"{prefix}_{uuid4()}"
