"""Centralized translation of failures into protocol problems.

The provider facade is the only caller: internal components raise their
typed errors unchanged and the facade turns them into
:class:`OAuth2ProblemError` right before handing off to the transport.
"""

from __future__ import annotations

from typing import Any, Protocol

from ..errors import (
    ErrorCode,
    OAuth2ProblemError,
    OAuth2ProviderError,
    Problem,
)


class SupportsState(Protocol):
    """Inbound message carrying an optional ``state`` parameter."""

    state: str | None


class ProblemFactory:
    """Builds protocol problems with consistent structure.

    Every problem created here carries:
    - the protocol error code of the original failure
    - the original failure as ``__cause__``
    - the inbound ``state`` parameter, unchanged, when there was one
    """

    @staticmethod
    def state_of(message: SupportsState | None) -> str | None:
        """Extract the state parameter of a message, if any."""
        if message is None:
            return None
        return getattr(message, "state", None)

    @staticmethod
    def from_exception(
        exc: BaseException,
        *,
        state: str | None = None,
    ) -> OAuth2ProblemError:
        """Create a protocol problem from any exception.

        Args:
            exc: Original exception.
            state: State parameter of the inbound message.

        Returns:
            OAuth2ProblemError describing ``exc``.
        """
        if isinstance(exc, OAuth2ProblemError):
            # Already translated, only fill in a missing state
            if exc.state is None and state is not None:
                exc.state = state
            return exc

        if isinstance(exc, OAuth2ProviderError):
            problem = OAuth2ProblemError(
                exc.message,
                exc.code,
                problem=exc.problem,
                status_code=exc.status_code,
                state=state,
                details=dict(exc.details),
            )
        else:
            problem = OAuth2ProblemError(
                "The server encountered an unexpected condition",
                ErrorCode.SERVER_ERROR,
                problem=Problem.INTERNAL_ERROR,
                status_code=500,
                state=state,
                details={"exception": type(exc).__name__},
            )
        problem.__cause__ = exc
        return problem

    @staticmethod
    def for_message(
        exc: BaseException,
        message: SupportsState | None,
    ) -> OAuth2ProblemError:
        """Create a protocol problem echoing the message's state."""
        return ProblemFactory.from_exception(
            exc,
            state=ProblemFactory.state_of(message),
        )

    @staticmethod
    def describe(problem: OAuth2ProblemError) -> dict[str, Any]:
        """Loggable summary of a problem, without the echoed state."""
        return {
            "error": problem.code,
            "problem": problem.problem,
            "status_code": problem.status_code,
        }
