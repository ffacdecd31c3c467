"""Utility functions for quicknote."""


def escape_like_pattern(value: str) -> str:
    """Escape SQL LIKE wildcards to treat them as literals.

    User input containing '%' or '_' would otherwise match unintended
    patterns. Use together with ``ESCAPE '\\'``.

    Args:
        value: User input string that may contain LIKE wildcards

    Returns:
        String with '%', '_', and '\\' escaped for safe use in LIKE clauses

    Example:
        >>> escape_like_pattern("100% complete")
        '100\\\\% complete'
        >>> escape_like_pattern("file_name")
        'file\\\\_name'
    """
    escape_table = str.maketrans(
        {
            "\\": "\\\\",  # Escape backslash first
            "%": "\\%",
            "_": "\\_",
        }
    )
    return value.translate(escape_table)


def substring_pattern(value: str) -> str:
    """Wrap an escaped value in wildcards for substring containment."""
    return f"%{escape_like_pattern(value)}%"
