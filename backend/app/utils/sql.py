"""
SQL helpers shared by the services.

like_pattern() builds escaped LIKE patterns so user search input cannot
inject wildcards.
"""

LIKE_ESCAPE = "\\"


def escape_like(value: str) -> str:
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def like_pattern(value: str, prefix: bool = False) -> str:
    """Lowercased LIKE pattern: 'value%' when prefix, else '%value%'."""
    escaped = escape_like(value.lower())
    if prefix:
        return f"{escaped}%"
    return f"%{escaped}%"
