"""Scheme identity helpers for scheme-registry."""

import re
from typing import Any
from urllib.parse import unquote

EDITABLE_COPY_PREFIX = "_@user_"

# Escape character, path separators, characters reserved on Windows, control characters
_UNSAFE_FILE_CHARS = re.compile(r'[%\\/:*?"<>|\x00-\x1f]')


def get_display_name(scheme: Any) -> str:
    """Get the user-facing name of a scheme.

    Editable copies carry EDITABLE_COPY_PREFIX in their name; the prefix is an
    internal naming convention and is stripped here so it never reaches the UI.

    Args:
        scheme: A scheme (anything with a ``name`` attribute) or a raw name

    Returns:
        Name without the editable-copy prefix

    Examples:
        >>> get_display_name("_@user_Darcula")
        'Darcula'

        >>> get_display_name("Darcula")
        'Darcula'
    """
    name = scheme if isinstance(scheme, str) else scheme.name
    if name.startswith(EDITABLE_COPY_PREFIX):
        return name[len(EDITABLE_COPY_PREFIX) :]
    return name


def is_editable_copy(name: str) -> bool:
    """Check whether a scheme name denotes a user-editable copy."""
    return name.startswith(EDITABLE_COPY_PREFIX)


def editable_copy_name(name: str) -> str:
    """Get the name of the editable copy of a scheme.

    Args:
        name: Scheme name, with or without the editable-copy prefix

    Returns:
        Name carrying EDITABLE_COPY_PREFIX exactly once

    Examples:
        >>> editable_copy_name("Darcula")
        '_@user_Darcula'

        >>> editable_copy_name("_@user_Darcula")
        '_@user_Darcula'
    """
    if is_editable_copy(name):
        return name
    return EDITABLE_COPY_PREFIX + name


def _quote(char: str) -> str:
    return f"%{ord(char):02X}"


def scheme_file_name(name: str, extension: str = ".yaml") -> str:
    """Map a scheme name to a file name.

    Unsafe characters and ``%`` itself are percent-encoded, so distinct scheme
    names always get distinct files. Trailing dots and spaces are encoded as
    well; Windows drops them, and "." or ".." would point outside the root.

    Args:
        name: Scheme name
        extension: File extension including the leading dot

    Returns:
        File name for the scheme

    Raises:
        ValueError: If name is empty or only whitespace

    Examples:
        >>> scheme_file_name("a/b")
        'a%2Fb.yaml'

        >>> scheme_file_name("..")
        '%2E%2E.yaml'
    """
    if not name.strip():
        raise ValueError("Scheme name must not be empty")
    safe = _UNSAFE_FILE_CHARS.sub(lambda match: _quote(match.group()), name)
    stem = safe.rstrip(". ")
    return stem + "".join(_quote(char) for char in safe[len(stem) :]) + extension


def scheme_name_from_file(stem: str) -> str:
    """Recover the scheme name from a file stem written by scheme_file_name."""
    return unquote(stem)
