"""Client registry loaded once from a properties-style configuration.

Each top-level key of the configuration is a client id and its value the
shared secret. ``<client_id>.description`` and ``<client_id>.callbackURL``
attach metadata to that client::

    abc = xyz
    abc.description = Example application
    abc.callbackURL = https://app.example.com/callback
"""

from __future__ import annotations

import re
import threading
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import TextIO

from .errors import ConfigurationError, UnknownClientError
from .models import Client
from .telemetry import get_logger

ClientSource = str | Path | Mapping[str, str] | TextIO

_SEPARATOR = re.compile(r"(?<!\\)(?:\\\\)*[=: \t\f]")
_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_BLANKS = " \t\f"
_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


def _unescape(text: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch != "\\" or i + 1 >= len(text):
            out.append(ch)
            i += 1
            continue
        nxt = text[i + 1]
        if nxt == "u":
            digits = text[i + 2 : i + 6]
            if len(digits) != 4 or not all(c in "0123456789abcdefABCDEF" for c in digits):
                msg = f"Malformed \\uxxxx encoding in {text!r}"
                raise ConfigurationError(msg)
            out.append(chr(int(digits, 16)))
            i += 6
            continue
        out.append(_ESCAPES.get(nxt, nxt))
        i += 2
    return "".join(out)


def _logical_lines(text: str) -> Iterator[str]:
    """Join continuation lines and drop blanks and comments."""
    pending = ""
    for raw in _LINE_BREAK.split(text):
        line = raw.lstrip(_BLANKS)
        if not pending and (not line or line[0] in "#!"):
            continue
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            pending += line[:-1]
            continue
        yield pending + line
        pending = ""
    if pending:
        yield pending


def parse_properties(text: str) -> dict[str, str]:
    """Parse Java-properties formatted text into a dictionary.

    Args:
        text: Properties file contents.

    Returns:
        Mapping of unescaped keys to unescaped values.

    Raises:
        ConfigurationError: If an escape sequence is malformed.
    """
    result: dict[str, str] = {}
    for line in _logical_lines(text):
        match = _SEPARATOR.search(line)
        if match is None:
            key, value = line, ""
        else:
            end = match.end()
            key = line[: end - 1]
            rest = line[end:].lstrip(_BLANKS)
            # "key : value" style, whitespace before the real separator
            if line[end - 1] in _BLANKS and rest[:1] in ("=", ":"):
                rest = rest[1:].lstrip(_BLANKS)
            value = rest
        result[_unescape(key)] = _unescape(value)
    return result


class ClientRegistry:
    """Registered clients, parsed once and read without locking."""

    def __init__(self) -> None:
        self._properties: dict[str, str] | None = None
        self._clients: dict[str, Client] = {}
        self._lock = threading.Lock()
        self._logger = get_logger().bind(component="client_registry")

    @property
    def is_loaded(self) -> bool:
        return self._properties is not None

    def load(self, source: ClientSource | None = None) -> None:
        """Load clients from a configuration source.

        Only the first successful call reads the source; later calls reuse
        the parsed configuration.

        Args:
            source: Path to a properties file, a parsed mapping, or a text
                stream.

        Raises:
            ConfigurationError: If the source is missing, unreadable or
                malformed.
        """
        with self._lock:
            properties = self._properties
            if properties is None:
                if source is None:
                    msg = "No client configuration source given"
                    raise ConfigurationError(msg)
                properties = self._read(source)
            clients = self._build_clients(properties)
            self._properties = properties
            # Readers see either the old map or the complete new one
            self._clients = clients
        self._logger.info("clients_loaded", count=len(clients))

    def _read(self, source: ClientSource) -> dict[str, str]:
        if isinstance(source, Mapping):
            return {str(k): str(v) for k, v in source.items()}
        if isinstance(source, (str, Path)):
            path = Path(source)
            try:
                text = path.read_text(encoding="utf-8")
            except FileNotFoundError as e:
                msg = f"Client configuration not found: {path}"
                raise ConfigurationError(msg, source=str(path)) from e
            except (OSError, UnicodeDecodeError) as e:
                msg = f"Client configuration unreadable: {path}: {e}"
                raise ConfigurationError(msg, source=str(path)) from e
            return parse_properties(text)
        try:
            text = source.read()
        except (OSError, UnicodeDecodeError) as e:
            msg = f"Client configuration unreadable: {e}"
            raise ConfigurationError(msg) from e
        if not isinstance(text, str):
            msg = "Client configuration stream must be opened in text mode"
            raise ConfigurationError(msg)
        return parse_properties(text)

    @staticmethod
    def _build_clients(properties: Mapping[str, str]) -> dict[str, Client]:
        clients: dict[str, Client] = {}
        for key, secret in properties.items():
            # dotted keys are metadata of another client
            if "." in key:
                continue
            if not key or not secret:
                msg = f"Client {key!r} has an empty id or secret"
                raise ConfigurationError(msg)
            metadata = {"name": key}
            description = properties.get(f"{key}.description")
            if description is not None:
                metadata["description"] = description
            clients[key] = Client(
                client_id=key,
                client_secret=secret,
                redirect_uri=properties.get(f"{key}.callbackURL"),
                metadata=metadata,
            )
        return clients

    def lookup(self, client_id: str | None) -> Client:
        """Get a registered client by id.

        Raises:
            UnknownClientError: If no client with that id is registered.
        """
        client = self._clients.get(client_id) if client_id else None
        if client is None:
            raise UnknownClientError(client_id)
        return client

    def client_ids(self) -> list[str]:
        return sorted(self._clients)

    def __contains__(self, client_id: object) -> bool:
        return client_id in self._clients

    def __len__(self) -> int:
        return len(self._clients)
