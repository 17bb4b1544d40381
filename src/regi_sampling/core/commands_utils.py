import numpy as np

from .errors import ConfigurationError


def parse_label_spec(spec: str, max_id: int = 255):
    """'1-4,7' -> boolean keep table of length max_id + 1 (None for an empty spec)."""
    if not spec or not spec.strip():
        return None
    keep = np.zeros(max_id + 1, dtype=bool)
    for token in spec.split(","):
        token = token.strip()
        if not token:
            continue
        try:
            if "-" in token:
                a, b = token.split("-")
                a, b = int(a), int(b)
            else:
                a = b = int(token)
        except ValueError:
            raise ConfigurationError(f"bad label token {token!r} in {spec!r}") from None
        if a < 0 or b > max_id or a > b:
            raise ConfigurationError(f"label range {token!r} outside 0-{max_id}")
        keep[a:b + 1] = True
    return keep
