"""Key-value store mirrored onto a remote two-column table.

This module composes authorization, hydration, the row index, and the
path editor into the public store. Reads are served from the in-memory
cache; writes update the cache at call time and replicate to the remote
table through one ordered lane.
"""

from __future__ import annotations

import asyncio
import copy
from typing import Any, Callable, Coroutine, Iterator

from core.constants import FIRST_DATA_ROW, VALUE_COLUMN
from core.errors import (
    SheetKVConfigError,
    SheetKVError,
    SheetKVInvalidOperationError,
    SheetKVInvalidValueError,
    SheetKVNotReadyError,
    SheetKVRemoteError,
)
from core.logging_config import get_logger
from core.types import (
    AuthInfo,
    HydrationReport,
    HydrationSnapshot,
    Key,
    PathSpec,
    PathToken,
    ReplicationPolicy,
    StoreOptions,
    Value,
)
from remote.protocols import AuthProvider, RemoteTable, RemoteTableOpener
from store.hydration import hydrate_rows
from store.lifecycle import LifecycleState, Readiness
from store.path_editor import get_path, is_nested, parse_path, set_path, unset_path
from store.remote_calls import call_remote
from store.row_index import RowIndex
from store.value_codec import encode_key, encode_value, validate_value

_LOGGER = get_logger(__name__)

_UNRESOLVED = object()

ReplicationTask = asyncio.Task[None]
_Apply = Callable[[], ReplicationTask]


class CloudStore:
    """Persistent key-value store backed by a remote table.

    Initialization (authorize, open the table, hydrate) starts at
    construction when an event loop is running, otherwise on the first
    ``is_ready`` access or mutation. Mutations issued before readiness
    are queued and applied in call order once hydration completes;
    reads issued before readiness raise ``SheetKVNotReadyError``.

    Keys are held in their column A text form, so ``1`` and ``"1"`` name
    the same entry.

    Every mutation returns an ``asyncio.Task`` that completes once the
    remote table accepted the write. The cache already reflects the
    mutation when the method returns, so a failed task means cache and
    remote may have diverged.
    """

    def __init__(
        self,
        options: StoreOptions,
        auth_info: AuthInfo,
        *,
        auth_provider: AuthProvider | None = None,
        table_opener: RemoteTableOpener | None = None,
        policy: ReplicationPolicy | None = None,
    ) -> None:
        """Validate options and schedule initialization.

        Args:
            options: Table name, spreadsheet key, and token persistence flag.
            auth_info: Authorized client, or credentials plus optional token.
            auth_provider: Authorization capability; Google OAuth by default.
            table_opener: Remote table capability; gspread by default.
            policy: Timeout and retry settings for remote calls.

        Raises:
            SheetKVConfigError: If required options or auth inputs are missing.
        """
        _validate_construction(options, auth_info)
        self._options = options
        self._auth_info = auth_info
        self._auth_provider = auth_provider or _default_auth_provider()
        self._table_opener = table_opener or _default_table_opener()
        self._policy = policy or ReplicationPolicy()
        self._cache: dict[str, Value] = {}
        self._row_index = RowIndex()
        self._readiness = Readiness()
        self._report: HydrationReport | None = None
        self._table: RemoteTable | None = None
        self._replication_lock = asyncio.Lock()
        self._row_index_stale = False
        self._init_task: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Task[Any]] = set()
        self._backlog: list[tuple[_Apply, asyncio.Future[ReplicationTask]]] = []
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        self._start()

    @classmethod
    async def open(
        cls,
        options: StoreOptions,
        auth_info: AuthInfo,
        *,
        auth_provider: AuthProvider | None = None,
        table_opener: RemoteTableOpener | None = None,
        policy: ReplicationPolicy | None = None,
    ) -> "CloudStore":
        """Construct a store and wait until it is hydrated."""
        store = cls(
            options,
            auth_info,
            auth_provider=auth_provider,
            table_opener=table_opener,
            policy=policy,
        )
        await store.is_ready
        return store

    @property
    def is_ready(self) -> asyncio.Future[HydrationSnapshot]:
        """Future fulfilled once with the hydration snapshot.

        Awaiting it raises the initialization error when authorization
        or hydration failed.
        """
        self._start()
        return self._readiness.future

    @property
    def state(self) -> LifecycleState:
        """Current lifecycle state."""
        return self._readiness.state

    @property
    def name(self) -> str:
        """Remote table name."""
        return str(self._options.name)

    @property
    def hydration_report(self) -> HydrationReport | None:
        """Report of the hydration pass, None before it ran."""
        return self._report

    def __len__(self) -> int:
        self._require_ready()
        return len(self._cache)

    def __contains__(self, key: object) -> bool:
        self._require_ready()
        if isinstance(key, bool) or not isinstance(key, (str, int)):
            return False
        return encode_key(key) in self._cache

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def keys(self) -> tuple[str, ...]:
        """Return stored keys in insertion order."""
        self._require_ready()
        return tuple(self._cache)

    def get(self, key: Key, path: PathSpec | None = None) -> Value | None:
        """Read a value, or a sub-value at a path.

        A path is ignored when the stored value is a scalar.

        Args:
            key: Entry key; an integer addresses the entry stored under its text.
            path: Optional dotted/bracketed path into a nested value.

        Returns:
            A copy of the value, None when the key or path is absent.

        Raises:
            SheetKVNotReadyError: If called before hydration completed.
            SheetKVInvalidValueError: If the key is not a string or integer.
            SheetKVPathError: If the path is malformed.
        """
        self._require_ready()
        key = _normalize_key(key)
        parsed_path = parse_path(path) if path is not None else None
        if key not in self._cache:
            return None
        value = self._cache[key]
        if parsed_path is None or not is_nested(value):
            return copy.deepcopy(value)
        return copy.deepcopy(get_path(value, parsed_path))

    def ensure(self, key: Key, default: Value, path: PathSpec | None = None) -> Value:
        """Read a value, falling back to a default.

        The default applies when the key is absent or when a path into
        a nested value does not resolve. A scalar value is returned
        as-is even when a path and default were supplied.

        Raises:
            SheetKVNotReadyError: If called before hydration completed.
            SheetKVPathError: If the path is malformed.
        """
        self._require_ready()
        key = _normalize_key(key)
        parsed_path = parse_path(path) if path is not None else None
        if key not in self._cache:
            return default
        value = self._cache[key]
        if parsed_path is None or not is_nested(value):
            return copy.deepcopy(value)
        resolved = get_path(value, parsed_path, _UNRESOLVED)
        return default if resolved is _UNRESOLVED else copy.deepcopy(resolved)

    def set(self, key: Key, value: Value, path: PathSpec | None = None) -> ReplicationTask:
        """Store a value, or a sub-value at a path.

        With a path the current nested value is cloned and updated; a
        scalar or missing value is replaced by a new dict. Without a
        path the value replaces the entry.

        Args:
            key: Entry key, a string or integer. Integers are stored as
                their text, the form column A holds.
            value: JSON-compatible value; None is rejected.
            path: Optional dotted/bracketed path into the stored value.

        Returns:
            Task completing when the remote table accepted the write.

        Raises:
            SheetKVInvalidValueError: If the key or value cannot be stored.
            SheetKVPathError: If the path is malformed.
        """
        key = _normalize_key(key)
        validate_value(value)
        stored_value = copy.deepcopy(value)
        parsed_path = parse_path(path) if path is not None else None
        if not self._readiness.is_fulfilled:
            return self._enqueue(lambda: self._set_now(key, stored_value, parsed_path))
        return self._set_now(key, stored_value, parsed_path)

    def delete(self, key: Key, path: PathSpec | None = None) -> ReplicationTask:
        """Delete an entry, or a sub-field at a path.

        Deleting a sub-field persists the pruned value through a set.
        Deleting an entry removes its remote row; later keys move up
        one row.

        Returns:
            Task completing when the remote table accepted the change.

        Raises:
            SheetKVInvalidOperationError: If a path is given for a scalar value.
            SheetKVPathError: If the path is malformed.
        """
        key = _normalize_key(key)
        parsed_path = parse_path(path) if path is not None else None
        if not self._readiness.is_fulfilled:
            return self._enqueue(lambda: self._delete_now(key, parsed_path))
        return self._delete_now(key, parsed_path)

    def delete_all(self) -> ReplicationTask:
        """Delete every entry with one bulk remote row deletion.

        Returns:
            Task completing when the remote table accepted the deletion.
        """
        if not self._readiness.is_fulfilled:
            return self._enqueue(self._delete_all_now)
        return self._delete_all_now()

    async def flush(self) -> None:
        """Wait for every pending replication task.

        Raises:
            SheetKVError: The first replication failure, if any.
        """
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def _start(self) -> None:
        if self._init_task is not None:
            return
        self._init_task = asyncio.get_running_loop().create_task(self._initialize())

    async def _initialize(self) -> None:
        try:
            self._readiness.advance(LifecycleState.AUTHORIZING)
            client = self._auth_info.auth
            if client is None:
                client = await self._auth_provider.authorize(
                    self._auth_info.credentials,
                    self._auth_info.token,
                    self._options.save_token,
                )
            self._readiness.advance(LifecycleState.HYDRATING)
            table = await self._table_opener.open_table(
                client, str(self._options.key), str(self._options.name)
            )
            rows = await call_remote(
                table.fetch_all,
                action="fetch_all",
                policy=self._policy,
                idempotent=True,
            )
        except Exception as error:
            _LOGGER.error(
                "store_initialization_failed",
                table_name=self.name,
                state=self._readiness.state.value,
                error=str(error),
            )
            self._readiness.fail(error)
            self._fail_backlog(error)
            return
        self._table = table
        self._row_index, self._cache, self._report = hydrate_rows(rows, self.name)
        snapshot = HydrationSnapshot(
            keys=self._row_index.keys(),
            values=copy.deepcopy(self._cache),
            report=self._report,
        )
        self._readiness.fulfill(snapshot)
        _LOGGER.info(
            "store_ready",
            table_name=self.name,
            row_count=self._report.row_count,
            loaded_count=self._report.loaded_count,
            skipped_count=len(self._report.skipped_rows),
            queued_count=len(self._backlog),
        )
        self._drain_backlog()

    def _set_now(
        self,
        key: str,
        value: Value,
        path: tuple[PathToken, ...] | None,
    ) -> ReplicationTask:
        if path is None:
            new_value = value
        else:
            current = self._cache.get(key)
            base = copy.deepcopy(current) if is_nested(current) else {}
            new_value = set_path(base, path, value)
        self._cache[key] = new_value
        return self._spawn(self._replicate_set(key, copy.deepcopy(new_value)))

    def _delete_now(self, key: str, path: tuple[PathToken, ...] | None) -> ReplicationTask:
        if key not in self._cache:
            return self._spawn(_completed())
        if path is None:
            del self._cache[key]
            return self._spawn(self._replicate_delete(key))
        current = self._cache[key]
        if not is_nested(current):
            raise SheetKVInvalidOperationError(
                f"Cannot delete a path from key {key!r}: stored value is a "
                f"{type(current).__name__}, not a dict or list."
            )
        pruned = copy.deepcopy(current)
        if not unset_path(pruned, path):
            return self._spawn(_completed())
        return self._set_now(key, pruned, None)

    def _delete_all_now(self) -> ReplicationTask:
        self._cache.clear()
        return self._spawn(self._replicate_delete_all())

    async def _replicate_set(self, key: str, value: Value) -> None:
        encoded = encode_value(value)
        async with self._replication_lock:
            table = await self._aligned_table()
            if key in self._row_index:
                row_number = self._row_index.row_of(key)
                await call_remote(
                    lambda: table.update_cell(row_number, VALUE_COLUMN, encoded),
                    action="update_cell",
                    policy=self._policy,
                    idempotent=True,
                )
                _LOGGER.debug("row_updated", table_name=self.name, row_number=row_number)
                return
            expected_row = self._row_index.span + FIRST_DATA_ROW
            try:
                landed_row = await call_remote(
                    lambda: table.append_row([key, encoded]),
                    action="append_row",
                    policy=self._policy,
                    idempotent=False,
                )
            except SheetKVRemoteError:
                # The append may have been applied before the failure surfaced.
                resynced = await self._resync_after_failure(table, "append_row")
                if resynced and key in self._row_index:
                    return
                raise
            if landed_row is not None and landed_row != expected_row:
                await self._resync_row_index(
                    table, reason=f"append landed at row {landed_row}, expected {expected_row}"
                )
                return
            row_number = self._row_index.append(key)
            _LOGGER.debug("row_appended", table_name=self.name, row_number=row_number)

    async def _replicate_delete(self, key: str) -> None:
        async with self._replication_lock:
            table = await self._aligned_table()
            if key not in self._row_index:
                # Never replicated, e.g. its append failed.
                return
            row_number = self._row_index.row_of(key)
            try:
                await call_remote(
                    lambda: table.delete_rows(row_number, row_number + 1),
                    action="delete_rows",
                    policy=self._policy,
                    idempotent=False,
                )
            except SheetKVRemoteError:
                resynced = await self._resync_after_failure(table, "delete_rows")
                if resynced and key not in self._row_index:
                    return
                raise
            self._row_index.remove(key)
            _LOGGER.debug("rows_deleted", table_name=self.name, start_row=row_number, count=1)

    async def _replicate_delete_all(self) -> None:
        async with self._replication_lock:
            table = await self._aligned_table()
            span = self._row_index.span
            if span:
                try:
                    await call_remote(
                        lambda: table.delete_rows(FIRST_DATA_ROW, FIRST_DATA_ROW + span),
                        action="delete_rows",
                        policy=self._policy,
                        idempotent=False,
                    )
                except SheetKVRemoteError:
                    resynced = await self._resync_after_failure(table, "delete_rows")
                    if resynced and not self._row_index.span:
                        return
                    raise
            self._row_index.clear()
            _LOGGER.info(
                "rows_deleted", table_name=self.name, start_row=FIRST_DATA_ROW, count=span
            )

    async def _aligned_table(self) -> RemoteTable:
        """Return the table, rebuilding row positions first when they are unknown."""
        table = self._require_table()
        if self._row_index_stale:
            await self._resync_row_index(table, reason="row positions unknown")
        return table

    async def _resync_row_index(self, table: RemoteTable, *, reason: str) -> None:
        """Rebuild the row index from the remote rows.

        Values stay as cached; only key positions are refreshed. Until
        a rebuild succeeds every replication starts by retrying it.
        """
        self._row_index_stale = True
        rows = await call_remote(
            table.fetch_all,
            action="fetch_all",
            policy=self._policy,
            idempotent=True,
        )
        self._row_index, _, report = hydrate_rows(rows, self.name)
        self._row_index_stale = False
        _LOGGER.warning(
            "row_index_resynced",
            table_name=self.name,
            reason=reason,
            row_count=report.row_count,
            key_count=report.loaded_count,
        )

    async def _resync_after_failure(self, table: RemoteTable, action: str) -> bool:
        """Rebuild row positions after a failed structural call.

        Returns:
            Whether the rebuild succeeded; on failure the index stays stale
            and the caller raises its original error.
        """
        try:
            await self._resync_row_index(table, reason=f"{action} outcome unknown")
        except SheetKVError as error:
            _LOGGER.error(
                "row_index_resync_failed", table_name=self.name, action=action, error=str(error)
            )
            return False
        return True

    def _enqueue(self, apply: _Apply) -> ReplicationTask:
        applied: asyncio.Future[ReplicationTask] = asyncio.get_running_loop().create_future()
        self._backlog.append((apply, applied))
        return self._spawn(_await_applied(applied))

    def _drain_backlog(self) -> None:
        backlog, self._backlog = self._backlog, []
        for apply, applied in backlog:
            try:
                applied.set_result(apply())
            except Exception as error:
                applied.set_exception(error)

    def _fail_backlog(self, error: BaseException) -> None:
        backlog, self._backlog = self._backlog, []
        for _, applied in backlog:
            applied.set_exception(error)

    def _spawn(self, coroutine: Coroutine[Any, Any, None]) -> ReplicationTask:
        self._start()
        task = asyncio.get_running_loop().create_task(coroutine)
        self._pending.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            _LOGGER.warning("replication_failed", table_name=self.name, error=str(error))

    def _require_ready(self) -> None:
        if self._readiness.is_fulfilled:
            return
        raise SheetKVNotReadyError(
            f"Store '{self.name}' is {self._readiness.state.value}: "
            "await store.is_ready before reading."
        )

    def _require_table(self) -> RemoteTable:
        if self._table is None:
            raise SheetKVError(f"Store '{self.name}' has no open remote table.")
        return self._table


async def _completed() -> None:
    return None


async def _await_applied(applied: asyncio.Future[ReplicationTask]) -> None:
    replication = await applied
    await replication


def _validate_construction(options: StoreOptions | None, auth_info: AuthInfo | None) -> None:
    if options is None or auth_info is None:
        raise SheetKVConfigError("Expected both store options and auth info.")
    if not options.name:
        raise SheetKVConfigError("Expected a table name in options.name.")
    if not options.key:
        raise SheetKVConfigError("Expected a spreadsheet key in options.key.")
    if auth_info.auth is None and auth_info.credentials is None:
        raise SheetKVConfigError(
            "Expected auth_info.auth (an authorized client) or auth_info.credentials."
        )


def _normalize_key(key: Key) -> str:
    if isinstance(key, bool) or not isinstance(key, (str, int)):
        raise SheetKVInvalidValueError(f"Invalid key {key!r}: expected a string or integer.")
    if isinstance(key, str) and not key.strip():
        raise SheetKVInvalidValueError("Invalid key: expected a non-blank string.")
    return encode_key(key)


def _default_auth_provider() -> AuthProvider:
    from remote.google_auth import GoogleOAuthProvider

    return GoogleOAuthProvider()


def _default_table_opener() -> RemoteTableOpener:
    from remote.sheets_table import GspreadTableOpener

    return GspreadTableOpener()
