"""Data models for scheme-registry."""

import copy
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Protocol
from typing import runtime_checkable

from .utils import editable_copy_name
from .utils import get_display_name


@runtime_checkable
class Scheme(Protocol):
    """Anything the registry can manage: a unit identified by its name.

    The registry never looks past ``name``; payload types are supplied by
    applications and need not inherit from anything.
    """

    name: str


@dataclass
class YamlScheme:
    """Scheme backed by a single YAML document.

    Attributes:
        name: Unique scheme name (may carry the editable-copy prefix)
        settings: Scheme payload, opaque to the registry
        read_only: True for bundled or otherwise protected schemes
    """

    name: str
    settings: dict[str, Any] = field(default_factory=dict)
    read_only: bool = False

    @property
    def display_name(self) -> str:
        return get_display_name(self.name)

    def copy_as_editable(self) -> "YamlScheme":
        """Create a writable copy named with the editable-copy prefix.

        Returns:
            New scheme; settings are deep-copied so edits never reach the original
        """
        return YamlScheme(
            name=editable_copy_name(self.name),
            settings=copy.deepcopy(self.settings),
            read_only=False,
        )
