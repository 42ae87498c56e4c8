"""Authorization grant lifecycle.

Drives one accessor through ``code_issued -> authorized -> token_issued``
and any number of refreshes. Every transition is applied through
:meth:`AccessorStore.update`, so state checks and mutations happen under
the store lock and concurrent requests on one grant are serialized.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..errors import InvalidGrantError, Problem
from ..models import Accessor, GrantState
from ..telemetry import get_logger
from ..tokens import TokenGenerator

if TYPE_CHECKING:
    from ..store import AccessorStore


class GrantStateMachine:
    """Applies lifecycle transitions to accessors held by a store."""

    def __init__(
        self,
        store: AccessorStore,
        generator: TokenGenerator | None = None,
    ) -> None:
        self.store = store
        self._generator = generator or TokenGenerator()
        self._logger = get_logger().bind(component="grant_state_machine")

    def mark_authorized(self, accessor: Accessor, user_id: str) -> Accessor:
        """Record the end user's approval of the grant.

        Approval happens once per code. Repeating it for the same user is a
        no-op, approving for a different user fails.

        Raises:
            InvalidGrantError: If the code was approved for another user or
                already exchanged.
        """

        def authorize(a: Accessor) -> None:
            if a.state is GrantState.AUTHORIZED and a.user_id == user_id:
                return
            if a.state is not GrantState.CODE_ISSUED:
                raise InvalidGrantError(Problem.INVALID_CODE)
            a.user_id = user_id
            a.authorized = True
            a.set_property("user", user_id)
            a.set_property("authorized", True)
            a.state = GrantState.AUTHORIZED

        self.store.update(accessor, authorize)
        self._logger.info(
            "grant_authorized",
            client_id=accessor.client.client_id,
            accessor_id=accessor.accessor_id,
        )
        return accessor

    def issue_tokens(self, accessor: Accessor) -> Accessor:
        """Exchange the grant's code for an access and refresh token pair.

        The code is consumed in the same atomic update, so it no longer
        resolves afterwards and a concurrent second exchange fails.

        Raises:
            InvalidGrantError: If the code was already exchanged.
        """

        def exchange(a: Accessor) -> None:
            if a.state is GrantState.TOKEN_ISSUED or a.code is None:
                raise InvalidGrantError(Problem.INVALID_CODE)
            self._assign_tokens(a)
            a.code = None
            a.state = GrantState.TOKEN_ISSUED

        self.store.update(accessor, exchange)
        self._logger.info(
            "tokens_issued",
            client_id=accessor.client.client_id,
            accessor_id=accessor.accessor_id,
        )
        return accessor

    def refresh(
        self,
        accessor: Accessor,
        refresh_token: str | None = None,
    ) -> Accessor:
        """Replace the grant's token pair with a freshly minted one.

        Args:
            accessor: Accessor in the ``token_issued`` state.
            refresh_token: Refresh token the accessor was looked up by. When
                given, the refresh fails if another request replaced it in
                the meantime.

        Raises:
            InvalidGrantError: If no tokens were issued yet or the refresh
                token was already replaced.
        """

        def rotate(a: Accessor) -> None:
            if a.state is not GrantState.TOKEN_ISSUED:
                raise InvalidGrantError(Problem.INVALID_TOKEN)
            if refresh_token is not None and a.refresh_token != refresh_token:
                raise InvalidGrantError(Problem.INVALID_TOKEN)
            self._assign_tokens(a)
            a.refresh_count += 1

        self.store.update(accessor, rotate)
        self._logger.info(
            "tokens_refreshed",
            client_id=accessor.client.client_id,
            accessor_id=accessor.accessor_id,
            refresh_count=accessor.refresh_count,
        )
        return accessor

    def _assign_tokens(self, accessor: Accessor) -> None:
        client = accessor.client
        accessor.access_token = self._generator.new_identifier(client.client_id)
        accessor.refresh_token = self._generator.new_identifier(
            client.redirect_uri or client.client_id
        )
