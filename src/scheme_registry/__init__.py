"""scheme-registry: Named, switchable configuration schemes.

This library manages a collection of interchangeable configuration profiles
("schemes" such as color themes or keymaps) with exactly one scheme current
at a time:
- Registry of schemes identified by unique name
- Current scheme selected by name and resolved lazily
- Bulk replace of the whole collection with selection reconciliation
- Editable copies of bundled schemes, marked by a name prefix

Applications inject the storage location and a processor to define their
persistence policy. The library provides the registry mechanism and never
interprets scheme content.

Public API:
    SchemeManager: Registry, selection, bulk replace and save orchestration
    SchemeProcessor: Protocol for loader/persister collaborators
    YamlSchemeProcessor: Processor storing one YAML file per scheme
    Scheme: Protocol for managed schemes (anything with a ``name``)
    YamlScheme: Dataclass scheme used by YamlSchemeProcessor
    EDITABLE_COPY_PREFIX, get_display_name, editable_copy_name, is_editable_copy:
        Editable-copy naming helpers
    SchemeError, DuplicateSchemeNameError, SchemeFileError, SchemeValidationError:
        Exception types

Example:
    ```python
    from pathlib import Path
    from scheme_registry import SchemeManager, YamlSchemeProcessor

    # Application injects storage (policy)
    manager = SchemeManager(Path.home() / ".myapp" / "colors", YamlSchemeProcessor())

    # Bundled schemes first, then the user's
    manager.load_bundled_scheme("schemes/Darcula.yaml", "myapp")
    manager.set_current_scheme_name("Darcula")
    manager.load_schemes()

    # Customize a copy of the bundled scheme
    copy = manager.current_scheme.copy_as_editable()
    manager.add_scheme(copy)
    manager.set_current(copy)

    errors = []
    manager.save(errors)
    ```
"""

from .exceptions import DuplicateSchemeNameError
from .exceptions import SchemeError
from .exceptions import SchemeFileError
from .exceptions import SchemeValidationError
from .manager import SchemeManager
from .models import Scheme
from .models import YamlScheme
from .processor import SchemeProcessor
from .processor import YamlSchemeProcessor
from .utils import EDITABLE_COPY_PREFIX
from .utils import editable_copy_name
from .utils import get_display_name
from .utils import is_editable_copy

__version__ = "0.1.0"

__all__ = [
    "SchemeManager",
    "SchemeProcessor",
    "YamlSchemeProcessor",
    "Scheme",
    "YamlScheme",
    "EDITABLE_COPY_PREFIX",
    "get_display_name",
    "editable_copy_name",
    "is_editable_copy",
    "SchemeError",
    "DuplicateSchemeNameError",
    "SchemeFileError",
    "SchemeValidationError",
]
