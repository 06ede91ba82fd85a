"""Text representation of embedding vectors for the pgvector column."""

import json
import math
from collections.abc import Sequence


def encode_vector(vector: Sequence[float]) -> str:
    """Encode a vector as ``[v1,v2,...]`` with no whitespace.

    Raises:
        ValueError: If any component is NaN or infinite.
    """
    parts = []
    for value in vector:
        number = float(value)
        if not math.isfinite(number):
            raise ValueError(f"Vector component is not finite: {value!r}")
        parts.append(repr(number))
    return "[" + ",".join(parts) + "]"


def decode_vector(text: str) -> list[float]:
    """Parse a stored vector back into floats."""
    values = json.loads(text)
    if not isinstance(values, list):
        raise ValueError("Encoded vector must be a JSON array")
    return [float(v) for v in values]
