"""Core components of the OAuth2 provider.

Grant lifecycle and problem translation shared by the provider facade.
"""

from __future__ import annotations

from .errors import ProblemFactory
from .grant import GrantStateMachine

__all__ = [
    "GrantStateMachine",
    "ProblemFactory",
]
