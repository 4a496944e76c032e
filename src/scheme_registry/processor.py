"""Scheme loading and persistence for scheme-registry."""

import logging
from importlib import resources
from pathlib import Path
from typing import Any
from typing import Protocol
from typing import TypeVar

import yaml

from .exceptions import SchemeFileError
from .exceptions import SchemeValidationError
from .models import YamlScheme
from .utils import scheme_file_name
from .utils import scheme_name_from_file

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SchemeProcessor(Protocol[T]):
    """Storage collaborator used by SchemeManager.

    The manager decides what to load, save and delete; the processor owns the
    format and the I/O. ``root`` is the manager's root directory, passed through
    unchanged.
    """

    def load(self, root: Path) -> list[T]:
        """Load every scheme stored under root."""
        ...

    def save(self, scheme: T, root: Path) -> None:
        """Persist one scheme. Raises on failure."""
        ...

    def delete(self, name: str, root: Path) -> None:
        """Remove the stored copy of a scheme, if any. Raises on failure."""
        ...

    def load_bundled(self, resource_name: str, requestor: Any) -> T:
        """Load a scheme shipped as a package resource of requestor."""
        ...


class YamlSchemeProcessor:
    """Stores each scheme as one YAML document in the root directory.

    Document layout::

        name: Darcula
        settings:
          background: "#2b2b2b"

    Args:
        extension: File extension for scheme files (default: ".yaml")
    """

    def __init__(self, extension: str = ".yaml"):
        self.extension = extension

    def load(self, root: Path) -> list[YamlScheme]:
        """Load all schemes from root.

        Files that cannot be read or parsed are logged and skipped, so one broken
        file never hides the rest.

        Args:
            root: Directory holding scheme files

        Returns:
            Schemes in file name order (empty if root doesn't exist)
        """
        if not root.is_dir():
            return []

        schemes = []
        for path in sorted(root.glob(f"*{self.extension}")):
            data = self._read_yaml(path)
            if data is None:
                continue
            try:
                schemes.append(self.parse(data, default_name=scheme_name_from_file(path.stem)))
            except SchemeValidationError as e:
                logger.warning(f"Skipping invalid scheme file {path}: {e}")
        return schemes

    def save(self, scheme: YamlScheme, root: Path) -> None:
        """Write scheme to its file under root.

        Raises:
            SchemeFileError: If write fails
        """
        path = root / scheme_file_name(scheme.name, self.extension)
        self._write_yaml(path, {"name": scheme.name, "settings": scheme.settings}, scheme.name)

    def delete(self, name: str, root: Path) -> None:
        """Delete the file of a scheme; missing files are ignored.

        Raises:
            SchemeFileError: If the file exists but cannot be removed
        """
        path = root / scheme_file_name(name, self.extension)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise SchemeFileError(f"Failed to delete scheme file {path}: {e}", scheme_name=name) from e

    def load_bundled(self, resource_name: str, requestor: Any) -> YamlScheme:
        """Load a read-only scheme shipped inside a package.

        Args:
            resource_name: Resource path relative to the package, e.g. "schemes/Darcula.yaml"
            requestor: Package (module object or dotted name) that ships the resource

        Returns:
            Scheme marked read-only

        Raises:
            SchemeFileError: If the resource cannot be read
            SchemeValidationError: If the resource is not a valid scheme document
        """
        resource = resources.files(requestor).joinpath(resource_name)
        try:
            data = yaml.safe_load(resource.read_text(encoding="utf-8"))
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise SchemeFileError(f"Failed to read bundled scheme '{resource_name}': {e}") from e

        default_name = Path(resource_name).stem
        scheme = self.parse(data or {}, default_name=default_name)
        scheme.read_only = True
        return scheme

    @staticmethod
    def parse(data: Any, default_name: str) -> YamlScheme:
        """Build a scheme from a parsed YAML document.

        Args:
            data: Parsed document
            default_name: Name used when the document has none (usually the file stem)

        Raises:
            SchemeValidationError: If the document is not a valid scheme
        """
        if not isinstance(data, dict):
            raise SchemeValidationError(f"Expected a mapping, got {type(data).__name__}")

        name = data.get("name", default_name)
        if not isinstance(name, str) or not name.strip():
            raise SchemeValidationError(f"Invalid scheme name: {name!r}")

        settings = data.get("settings") or {}
        if not isinstance(settings, dict):
            raise SchemeValidationError(f"Settings of scheme '{name}' must be a mapping")

        return YamlScheme(name=name, settings=settings)

    # ===== Private Helpers =====

    def _read_yaml(self, path: Path) -> Any:
        """Read YAML file.

        Args:
            path: Path to YAML file

        Returns:
            Parsed document ({} for an empty file) or None if unreadable
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
                return data if data is not None else {}
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.warning(f"Failed to read scheme from {path}: {e}")
            return None

    def _write_yaml(self, path: Path, data: dict[str, Any], scheme_name: str) -> None:
        """Write YAML file.

        Raises:
            SchemeFileError: If write fails
        """
        try:
            # Nothing is written unless the whole document serializes
            text = yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
            # Ensure directory exists
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                f.write(text)
        except (OSError, yaml.YAMLError) as e:
            raise SchemeFileError(f"Failed to write scheme to {path}: {e}", scheme_name=scheme_name) from e
