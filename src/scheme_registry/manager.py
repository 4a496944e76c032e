"""Scheme manager: registry, current selection and persistence orchestration."""

import logging
import threading
from collections.abc import Callable
from collections.abc import Iterable
from pathlib import Path
from typing import Any
from typing import Generic
from typing import TypeVar

from .exceptions import DuplicateSchemeNameError
from .exceptions import SchemeError
from .exceptions import SchemeFileError
from .models import Scheme
from .processor import SchemeProcessor

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Scheme)

SchemeListener = Callable[[Any, Any], None]


class SchemeManager(Generic[T]):
    """Manages a named collection of schemes with one current scheme.

    Schemes are identified by name only; any object with a ``name`` attribute
    can be managed. The current scheme is tracked by name and resolved against
    the collection on read, so a selection can be recorded before the schemes
    are loaded.

    All state is guarded by one re-entrant lock. Processor I/O and listener
    callbacks run outside of it.

    Args:
        root_directory: Storage location handed to the processor
        processor: Loader/persister for schemes (optional for in-memory use)
    """

    def __init__(self, root_directory: Path, processor: SchemeProcessor[T] | None = None):
        """Initialize scheme manager with injected storage.

        Args:
            root_directory: Directory the schemes are stored in
            processor: SchemeProcessor doing the actual load/save
        """
        self.processor = processor
        self._root_directory = Path(root_directory)
        self._lock = threading.RLock()
        self._schemes: list[T] = []
        self._current_scheme_name: str | None = None
        self._current_scheme: T | None = None
        # Bundled originals by name, kept so overrides can be undone on reload
        self._bundled: dict[str, T] = {}
        # Name -> generation of the latest change, so a save only clears what it wrote
        self._dirty: dict[str, int] = {}
        self._generation = 0
        self._pending_deletes: set[str] = set()
        self._listeners: list[SchemeListener] = []
        self._schemes_loaded = False

    # ===== Registry =====

    @property
    def root_directory(self) -> Path:
        """Storage location handed to the processor."""
        return self._root_directory

    @property
    def all_schemes(self) -> tuple[T, ...]:
        """Snapshot of all schemes in registry order."""
        with self._lock:
            return tuple(self._schemes)

    @property
    def all_scheme_names(self) -> list[str]:
        """Names of all schemes in registry order."""
        with self._lock:
            return [scheme.name for scheme in self._schemes]

    @property
    def is_empty(self) -> bool:
        """True if no scheme is registered."""
        with self._lock:
            return not self._schemes

    def find_scheme_by_name(self, name: str) -> T | None:
        """Find scheme by exact name.

        Args:
            name: Scheme name (case-sensitive)

        Returns:
            Matching scheme or None
        """
        with self._lock:
            index = self._index_of(name)
            return None if index is None else self._schemes[index]

    def add_new_scheme(self, scheme: T, replace_existing: bool) -> None:
        """Add scheme to the registry.

        Args:
            scheme: Scheme to add
            replace_existing: Replace a registered scheme of the same name in place

        Raises:
            DuplicateSchemeNameError: If the name is taken and replace_existing is False
        """
        with self._lock:
            index = self._index_of(scheme.name)
            if index is None:
                self._track_replacement(scheme.name, None, scheme)
                self._schemes.append(scheme)
            elif not replace_existing:
                raise DuplicateSchemeNameError(scheme.name)
            else:
                self._track_replacement(scheme.name, self._schemes[index], scheme)
                self._schemes[index] = scheme
            self._current_scheme = None

        action = "Added" if index is None else "Replaced"
        logger.info(f"{action} scheme '{scheme.name}'")

    def add_scheme(self, scheme: T) -> None:
        """Add scheme, replacing any scheme of the same name."""
        self.add_new_scheme(scheme, replace_existing=True)

    def remove_scheme(self, scheme: T) -> bool:
        """Remove scheme from the registry.

        The current scheme name is left untouched even when it pointed to the
        removed scheme; callers must select a new scheme themselves.

        Args:
            scheme: Scheme to remove (matched by name)

        Returns:
            True if removed, False if not found
        """
        with self._lock:
            index = self._index_of(scheme.name)
            if index is None:
                return False
            removed = self._schemes.pop(index)
            self._dirty.pop(removed.name, None)
            if self._is_persistable(removed):
                self._pending_deletes.add(removed.name)
            self._current_scheme = None

        logger.info(f"Removed scheme '{removed.name}'")
        return True

    def remove_scheme_by_name(self, name: str) -> T | None:
        """Remove scheme by name.

        Args:
            name: Scheme name

        Returns:
            Removed scheme or None if not found
        """
        scheme = self.find_scheme_by_name(name)
        if scheme is not None:
            self.remove_scheme(scheme)
        return scheme

    def clear_all_schemes(self) -> None:
        """Forget all schemes in memory.

        Nothing is deleted from storage and the current scheme name is kept.
        Prefer set_schemes() for replacing the collection.
        """
        with self._lock:
            self._schemes.clear()
            self._dirty.clear()
            self._current_scheme = None
        logger.info("Cleared all schemes")

    # ===== Current Scheme =====

    @property
    def current_scheme_name(self) -> str | None:
        """Name of the current scheme, resolvable or not."""
        with self._lock:
            return self._current_scheme_name

    @property
    def current_scheme(self) -> T | None:
        """Current scheme, resolved by name on first use.

        Returns:
            Current scheme or None if no name is set or the name doesn't resolve
        """
        with self._lock:
            return self._resolve_current()

    def set_current_scheme_name(self, name: str | None, notify: bool = True) -> None:
        """Select scheme by name without requiring it to be loaded yet.

        Args:
            name: Scheme name, or None to clear the selection
            notify: Inform listeners if the selection changed
        """
        with self._lock:
            old_name = self._current_scheme_name
            old = self._resolve_current()
            self._current_scheme_name = name
            self._current_scheme = None
            new = self._resolve_current()

        if old_name != name:
            logger.info(f"Current scheme name set to '{name}'")
        self._notify_switched(old, new, old_name != name, notify)

    def set_current(self, scheme: T | None, notify: bool = True) -> None:
        """Select scheme.

        Args:
            scheme: Scheme to make current, or None to clear the selection
            notify: Inform listeners if the selection changed
        """
        with self._lock:
            old_name, old, new_name = self._switch_current(scheme)

        if old_name != new_name:
            logger.info(f"Switched current scheme from '{old_name}' to '{new_name}'")
        self._notify_switched(old, scheme, old_name != new_name, notify)

    def add_listener(self, listener: SchemeListener) -> None:
        """Register callback invoked as listener(old_scheme, new_scheme) on selection change."""
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: SchemeListener) -> bool:
        """Unregister callback.

        Returns:
            True if removed, False if not registered
        """
        with self._lock:
            if listener not in self._listeners:
                return False
            self._listeners.remove(listener)
            return True

    # ===== Bulk Replace =====

    def set_schemes(
        self,
        new_schemes: Iterable[T],
        new_current_scheme: T | None = None,
        remove_condition: Callable[[T], bool] | None = None,
        notify: bool = True,
    ) -> None:
        """Replace the whole collection with new_schemes.

        Schemes missing from new_schemes are removed, unless remove_condition is
        given and returns False for them. Kept schemes stay in front of the
        scheme that followed them before the replace (or at the end when none
        did). Schemes present in both collections take the new instance.

        Selection: new_current_scheme becomes current when given; otherwise the
        current name is kept and resolves only if it is still present.

        Listeners are notified once, after the collection has been replaced.

        Args:
            new_schemes: Replacement collection (its order wins)
            new_current_scheme: Scheme to select afterwards
            remove_condition: Predicate deciding removal of schemes missing from new_schemes
            notify: Inform listeners if the selection changed
        """
        with self._lock:
            old_name = self._current_scheme_name
            old = self._resolve_current()
            removed = self._replace_schemes(new_schemes, remove_condition, track_changes=True)
            if new_current_scheme is not None:
                self._switch_current(new_current_scheme)
            new = self._resolve_current()
            new_name = self._current_scheme_name
            count = len(self._schemes)

        logger.info(f"Replaced schemes: {count} registered, {len(removed)} removed")
        self._notify_switched(old, new, old_name != new_name, notify)

    # ===== Mutability Policy =====

    def is_metadata_editable(self, scheme: T) -> bool:
        """Check whether scheme may be renamed or deleted.

        Read-only schemes, bundled schemes and user schemes overriding a bundled
        scheme are protected. Enforcement is up to the caller.

        Args:
            scheme: Scheme to check

        Returns:
            True if rename/delete is permitted
        """
        if getattr(scheme, "read_only", False):
            return False
        with self._lock:
            return scheme.name not in self._bundled

    # ===== Loading & Persistence =====

    def load_bundled_scheme(self, resource_name: str, requestor: Any) -> T:
        """Load a bundled scheme shipped as a package resource.

        Must be called before load_schemes(); later calls are not supported.

        Args:
            resource_name: Resource path within requestor
            requestor: Package that ships the resource

        Returns:
            Loaded scheme

        Raises:
            SchemeError: If no processor is configured
            SchemeFileError: If the resource cannot be read
        """
        if self.processor is None:
            raise SchemeError("No scheme processor configured - cannot load bundled schemes")
        with self._lock:
            loaded_already = self._schemes_loaded
        if loaded_already:
            logger.warning(f"Bundled scheme '{resource_name}' loaded after load_schemes() - not supported")

        scheme = self.processor.load_bundled(resource_name, requestor)

        with self._lock:
            self._bundled[scheme.name] = scheme
            index = self._index_of(scheme.name)
            if index is None:
                self._schemes.append(scheme)
            else:
                self._schemes[index] = scheme
            self._dirty.pop(scheme.name, None)
            self._current_scheme = None

        logger.info(f"Loaded bundled scheme '{scheme.name}' from {resource_name}")
        return scheme

    def load_schemes(self) -> list[T]:
        """Load schemes from the root directory, replacing the collection.

        Stored schemes override bundled schemes of the same name. Unsaved changes
        are discarded. The current scheme name is kept.

        Returns:
            Loaded collection, bundled schemes included
        """
        if self.processor is None:
            logger.debug("No scheme processor configured - nothing to load")
            return list(self.all_schemes)

        loaded = self.processor.load(self._root_directory)

        with self._lock:
            old_name = self._current_scheme_name
            old = self._resolve_current()
            merged: list[T] = list(self._bundled.values())
            for scheme in loaded:
                index = next((i for i, s in enumerate(merged) if s.name == scheme.name), None)
                if index is None:
                    merged.append(scheme)
                elif scheme.name in self._bundled and merged[index] is self._bundled[scheme.name]:
                    logger.debug(f"Scheme '{scheme.name}' overrides bundled scheme")
                    merged[index] = scheme
                else:
                    logger.warning(f"Duplicate scheme '{scheme.name}' in {self._root_directory} - using last")
                    merged[index] = scheme
            self._replace_schemes(merged, None, track_changes=False)
            self._schemes_loaded = True
            new = self._resolve_current()
            result = list(self._schemes)

        logger.info(f"Loaded {len(loaded)} schemes from {self._root_directory}")
        self._notify_switched(old, new, False, True)
        return result

    def reload(self) -> None:
        """Re-read schemes from storage, keeping the current scheme name."""
        if self.processor is None:
            return
        self.load_schemes()

    def mark_dirty(self, scheme: T) -> bool:
        """Flag a registered scheme as modified so the next save() writes it.

        Returns:
            True if flagged, False if scheme is not registered
        """
        with self._lock:
            if self._index_of(scheme.name) is None:
                return False
            self._mark_dirty(scheme.name)
            return True

    def save(self, errors: list[Exception]) -> None:
        """Persist modified schemes and delete removed ones.

        Failures never stop the remaining schemes from being processed. Each
        failure is appended to errors as a SchemeFileError and the scheme stays
        modified; successful schemes are not written again by the next save().

        Args:
            errors: List collecting per-scheme failures
        """
        if self.processor is None:
            logger.debug("No scheme processor configured - nothing to save")
            return

        with self._lock:
            to_delete = sorted(self._pending_deletes)
            to_save = [s for s in self._schemes if s.name in self._dirty and self._is_persistable(s)]
            generations = {s.name: self._dirty[s.name] for s in to_save}

        deleted = []
        for name in to_delete:
            try:
                self.processor.delete(name, self._root_directory)
                deleted.append(name)
            except Exception as e:
                errors.append(self._persistence_error(e, name, "delete"))

        saved = []
        for scheme in to_save:
            try:
                self.processor.save(scheme, self._root_directory)
                saved.append(scheme)
            except Exception as e:
                errors.append(self._persistence_error(e, scheme.name, "save"))

        with self._lock:
            self._pending_deletes.difference_update(deleted)
            for scheme in saved:
                # Changed again while saving: stays dirty
                if self._dirty.get(scheme.name) == generations[scheme.name]:
                    del self._dirty[scheme.name]

        failed = len(to_save) + len(to_delete) - len(saved) - len(deleted)
        logger.info(f"Saved {len(saved)} schemes, deleted {len(deleted)}, {failed} failed")

    # ===== Private Helpers =====

    def _index_of(self, name: str) -> int | None:
        for index, scheme in enumerate(self._schemes):
            if scheme.name == name:
                return index
        return None

    def _resolve_current(self) -> T | None:
        """Resolve the current scheme name against the collection (lock held)."""
        if self._current_scheme is None and self._current_scheme_name is not None:
            self._current_scheme = self.find_scheme_by_name(self._current_scheme_name)
            if self._current_scheme is None:
                logger.debug(f"Current scheme '{self._current_scheme_name}' not found")
        return self._current_scheme

    def _switch_current(self, scheme: T | None) -> tuple[str | None, T | None, str | None]:
        """Point the selection at scheme (lock held).

        Returns:
            Tuple of (old name, old resolved scheme, new name)
        """
        old_name = self._current_scheme_name
        old = self._resolve_current()
        self._current_scheme_name = None if scheme is None else scheme.name
        self._current_scheme = scheme
        return old_name, old, self._current_scheme_name

    def _is_persistable(self, scheme: T) -> bool:
        """Bundled originals and read-only schemes are never written or deleted."""
        if getattr(scheme, "read_only", False):
            return False
        return self._bundled.get(scheme.name) is not scheme

    def _mark_dirty(self, name: str) -> None:
        self._generation += 1
        self._dirty[name] = self._generation

    def _track_replacement(self, name: str, old: T | None, new: T) -> None:
        """Record that new takes the place of old under name (lock held).

        A persistable scheme gets written on the next save. A bundled or
        read-only one can't be written, so the stored copy it replaces is
        deleted instead.
        """
        if self._is_persistable(new):
            self._mark_dirty(name)
            self._pending_deletes.discard(name)
            return
        self._dirty.pop(name, None)
        if old is not None and self._is_persistable(old):
            self._pending_deletes.add(name)

    def _replace_schemes(
        self,
        new_schemes: Iterable[T],
        remove_condition: Callable[[T], bool] | None,
        track_changes: bool,
    ) -> list[T]:
        """Swap the collection for new_schemes (lock held).

        Args:
            new_schemes: Replacement collection
            remove_condition: Predicate deciding removal of schemes missing from new_schemes
            track_changes: Record dirty/deleted schemes; False resets the bookkeeping

        Returns:
            Removed schemes
        """
        incoming: dict[str, T] = {}
        for scheme in new_schemes:
            if scheme.name in incoming:
                logger.warning(f"Duplicate scheme '{scheme.name}' in replacement - using last")
            incoming[scheme.name] = scheme

        old_by_name = {scheme.name: scheme for scheme in self._schemes}
        kept_before: dict[str, list[T]] = {}
        pending: list[T] = []
        removed: list[T] = []
        for scheme in self._schemes:
            if scheme.name in incoming:
                if pending:
                    kept_before[scheme.name] = pending
                    pending = []
            elif remove_condition is not None and not remove_condition(scheme):
                pending.append(scheme)
            else:
                removed.append(scheme)

        result: list[T] = []
        for name, scheme in incoming.items():
            result.extend(kept_before.get(name, ()))
            result.append(scheme)
        result.extend(pending)

        if track_changes:
            for scheme in removed:
                self._dirty.pop(scheme.name, None)
                if self._is_persistable(scheme):
                    self._pending_deletes.add(scheme.name)
            for name, scheme in incoming.items():
                if old_by_name.get(name) is not scheme:
                    self._track_replacement(name, old_by_name.get(name), scheme)
        else:
            self._dirty.clear()
            self._pending_deletes.clear()

        self._schemes = result
        self._current_scheme = None
        return removed

    def _notify_switched(self, old: T | None, new: T | None, name_changed: bool, notify: bool) -> None:
        """Call listeners if notify is set and the selection changed."""
        if not notify or (not name_changed and old is new):
            return
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(old, new)

    @staticmethod
    def _persistence_error(error: Exception, name: str, action: str) -> SchemeFileError:
        logger.warning(f"Failed to {action} scheme '{name}': {error}")
        if isinstance(error, SchemeFileError):
            if error.scheme_name is None:
                error.scheme_name = name
            return error
        wrapped = SchemeFileError(f"Failed to {action} scheme '{name}': {error}", scheme_name=name)
        wrapped.__cause__ = error
        return wrapped
