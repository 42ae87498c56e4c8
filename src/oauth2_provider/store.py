"""In-memory accessor store with code and token indices.

Every operation runs under one re-entrant lock scoped to the store, so a
read-mutate-reinsert sequence is atomic for all concurrent callers.
"""

from __future__ import annotations

import threading
from typing import Callable

from .errors import InvalidGrantError, MissingParameterError, Problem
from .models import Accessor, Client
from .telemetry import get_logger
from .tokens import TokenGenerator

Mutation = Callable[[Accessor], None]


class AccessorStore:
    """Owns all accessors and the indices used to find them."""

    def __init__(self, generator: TokenGenerator | None = None) -> None:
        """Initialize an empty store.

        Args:
            generator: Identifier generator for authorization codes.
        """
        self._generator = generator or TokenGenerator()
        self._lock = threading.RLock()
        self._accessors: dict[str, Accessor] = {}
        self._by_code: dict[str, Accessor] = {}
        self._by_refresh_token: dict[str, Accessor] = {}
        self._by_access_token: dict[str, Accessor] = {}
        self._logger = get_logger().bind(component="accessor_store")

    def issue_code(self, client: Client) -> Accessor:
        """Create an accessor for ``client`` and index it by a fresh code."""
        accessor = Accessor(client=client)
        accessor.code = self._generator.new_identifier(client.client_id)
        with self._lock:
            self._accessors[accessor.accessor_id] = accessor
            self._insert(accessor)
        self._logger.info(
            "code_issued",
            client_id=client.client_id,
            accessor_id=accessor.accessor_id,
        )
        return accessor

    def find_by_code(self, code: str | None) -> Accessor:
        """Find the accessor holding an unconsumed authorization code.

        Raises:
            MissingParameterError: If no code was supplied.
            InvalidGrantError: If the code is unknown or already consumed.
        """
        if not code:
            raise MissingParameterError("code")
        with self._lock:
            accessor = self._by_code.get(code)
        if accessor is None:
            raise InvalidGrantError(Problem.INVALID_CODE)
        return accessor

    def find_by_refresh_token(self, token: str | None) -> Accessor:
        """Find the accessor holding a current refresh token.

        Raises:
            MissingParameterError: If no refresh token was supplied.
            InvalidGrantError: If the token is unknown or replaced.
        """
        if not token:
            raise MissingParameterError("refresh_token")
        with self._lock:
            accessor = self._by_refresh_token.get(token)
        if accessor is None:
            raise InvalidGrantError(Problem.INVALID_TOKEN)
        return accessor

    def find_by_access_token(self, token: str | None) -> Accessor:
        """Find the accessor holding a current access token.

        Raises:
            MissingParameterError: If no access token was supplied.
            InvalidGrantError: If the token is unknown or replaced.
        """
        if not token:
            raise MissingParameterError("access_token")
        with self._lock:
            accessor = self._by_access_token.get(token)
        if accessor is None:
            raise InvalidGrantError(Problem.INVALID_TOKEN)
        return accessor

    def update(self, accessor: Accessor, mutation: Mutation) -> Accessor:
        """Atomically mutate an accessor and reindex it.

        The accessor is removed from every index, ``mutation`` is applied and
        the accessor is inserted again under its current code and tokens.
        If the mutation raises, the accessor is reinserted as it was left and
        the exception propagates.

        Raises:
            ValueError: If the accessor is not owned by this store.
        """
        with self._lock:
            if self._accessors.get(accessor.accessor_id) is not accessor:
                msg = f"Accessor {accessor.accessor_id} is not held by this store"
                raise ValueError(msg)
            self._remove(accessor)
            try:
                mutation(accessor)
                accessor.touch()
            finally:
                self._insert(accessor)
        return accessor

    def _insert(self, accessor: Accessor) -> None:
        if accessor.code is not None:
            self._by_code[accessor.code] = accessor
        if accessor.refresh_token is not None:
            self._by_refresh_token[accessor.refresh_token] = accessor
        if accessor.access_token is not None:
            self._by_access_token[accessor.access_token] = accessor

    def _remove(self, accessor: Accessor) -> None:
        for index, key in (
            (self._by_code, accessor.code),
            (self._by_refresh_token, accessor.refresh_token),
            (self._by_access_token, accessor.access_token),
        ):
            if key is not None and index.get(key) is accessor:
                del index[key]

    def __contains__(self, accessor: object) -> bool:
        if not isinstance(accessor, Accessor):
            return False
        with self._lock:
            return self._accessors.get(accessor.accessor_id) is accessor

    def __len__(self) -> int:
        with self._lock:
            return len(self._accessors)
