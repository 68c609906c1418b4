"""Credential pool with circular rotation for the image generation API.

The external API enforces a quota per credential, so the service holds
several credentials and rotates through them whenever an attempt fails.

Two views of rotation are provided:

- :class:`KeyPool` - the process-wide pool.  ``current()`` / ``advance()``
  rotate a single shared index.
- :class:`KeyRotation` - a private, per-request lease obtained with
  :meth:`KeyPool.lease`.  It starts where the shared round-robin cursor
  points (the cursor is then bumped by one) and its ``advance()`` never
  touches shared state.  The retry controller always works on a lease, so
  concurrent requests cannot move each other's credential.

Credentials are loaded once at startup from numbered variables::

    GEMINI_API_KEY_1=...
    GEMINI_API_KEY_2=...

Scanning stops at the first missing number.
"""

from __future__ import annotations

import logging
import os
import random
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from threading import Lock

from dotenv import dotenv_values

from zulepfp.core.errors import NoCredentialsError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    """One quota-bearing account with the generation API.

    Attributes:
        name: Ordinal name used in logs (``GEMINI_API_KEY_2``).
        secret: The API key itself.  Never logged.
    """

    name: str
    secret: str = ""

    def __repr__(self) -> str:
        return f"Credential(name={self.name!r})"


def load_credentials(
    prefix: str = "GEMINI_API_KEY_",
    env_file: str | Path | None = ".env",
    environ: Mapping[str, str] | None = None,
) -> list[Credential]:
    """Collect numbered credentials from the environment.

    The process environment takes precedence over the dotenv file.

    Args:
        prefix: Variable prefix; ``1`` is appended for the first credential.
        env_file: Optional dotenv file to merge under the environment.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        Credentials in numeric order, possibly empty.
    """
    values: dict[str, str | None] = {}
    if env_file is not None and Path(env_file).is_file():
        values.update(dotenv_values(env_file))
    values.update(os.environ if environ is None else environ)

    credentials: list[Credential] = []
    index = 1
    while values.get(f"{prefix}{index}"):
        credentials.append(Credential(name=f"{prefix}{index}", secret=values[f"{prefix}{index}"]))
        index += 1

    logger.info(f"Loaded {len(credentials)} generation credential(s)")
    return credentials


class KeyRotation:
    """Private rotation over a shared, immutable credential tuple."""

    def __init__(self, credentials: tuple[Credential, ...], start: int = 0) -> None:
        self._credentials = credentials
        self._index = start % len(credentials) if credentials else 0
        self.advances = 0

    def __len__(self) -> int:
        return len(self._credentials)

    def current(self) -> Credential:
        if not self._credentials:
            raise NoCredentialsError()
        return self._credentials[self._index]

    def advance(self) -> Credential:
        if not self._credentials:
            raise NoCredentialsError()
        self._index = (self._index + 1) % len(self._credentials)
        self.advances += 1
        return self._credentials[self._index]


class KeyPool:
    """Ordered credential pool with wrap-around rotation.

    Exhausted or banned credentials are never removed; they are revisited
    after one full cycle.

    Args:
        credentials: Credentials in their configured order.
        shuffle: Randomise the order once at construction.
        rng: Random source used for shuffling (for deterministic tests).
    """

    def __init__(
        self,
        credentials: Iterable[Credential],
        *,
        shuffle: bool = False,
        rng: random.Random | None = None,
    ) -> None:
        ordered = list(credentials)
        if shuffle:
            (rng or random.Random()).shuffle(ordered)
        self._credentials: tuple[Credential, ...] = tuple(ordered)
        self._index = 0
        self._cursor = 0
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._credentials)

    @property
    def credentials(self) -> tuple[Credential, ...]:
        return self._credentials

    def current(self) -> Credential:
        """Return the credential at the shared index.

        Raises:
            NoCredentialsError: If the pool is empty.
        """
        if not self._credentials:
            raise NoCredentialsError()
        return self._credentials[self._index]

    def advance(self) -> Credential:
        """Move the shared index one step (modulo pool size) and return it.

        Raises:
            NoCredentialsError: If the pool is empty.
        """
        if not self._credentials:
            raise NoCredentialsError()
        with self._lock:
            self._index = (self._index + 1) % len(self._credentials)
            return self._credentials[self._index]

    def lease(self) -> KeyRotation:
        """Hand out a private rotation starting at the round-robin cursor.

        Successive leases start on successive credentials, so load spreads
        across the pool even when every request succeeds first time.
        """
        with self._lock:
            start = self._cursor
            if self._credentials:
                self._cursor = (self._cursor + 1) % len(self._credentials)
        return KeyRotation(self._credentials, start)
