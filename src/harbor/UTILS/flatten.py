"""
Flattening of nested settings into Traefik's dotted key form, shared by
label synthesis and static command-line arguments.
"""
from typing import Any, List, Tuple


def format_value(value: Any) -> str:
    """
    Renders a scalar or a list of scalars the way Traefik expects it.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(format_value(v) for v in value)
    return str(value)


def flatten(prefix: str, data: Any) -> List[Tuple[str, str]]:
    """
    Flattens nested mappings into `(dotted.key, value)` pairs.

    Keys are lower-cased (Traefik keys are case-insensitive), lists of
    mappings are indexed as `key[0]`, lists of scalars are comma-joined and
    `None` values and empty lists are skipped. Mapping order is preserved.

    :param prefix: Dotted prefix for every key, e.g. `traefik.http.middlewares.auth`.
    :param data: The nested value to flatten.
    :return: The pairs in declaration order.
    """
    pairs: List[Tuple[str, str]] = []
    if data is None or (isinstance(data, (list, tuple)) and not data):
        return pairs
    if isinstance(data, dict):
        for key, value in data.items():
            child = f"{prefix}.{str(key).lower()}" if prefix else str(key).lower()
            pairs.extend(flatten(child, value))
        return pairs
    if isinstance(data, (list, tuple)) and any(isinstance(v, dict) for v in data):
        for index, value in enumerate(data):
            pairs.extend(flatten(f"{prefix}[{index}]", value))
        return pairs
    pairs.append((prefix, format_value(data)))
    return pairs
