"""Session-bound, time-windowed CSRF tokens.

A token is ``"<seed>|<signature>"`` where::

    signature = sha256_hex(session_id + str(random_seed))
    seed      = random_seed + window_base(now)

``window_base`` floors the unix time to a multiple of the timeout, so the
window is aligned to epoch boundaries rather than measured from issue time.
Verification subtracts the *current* window base before recomputing the
signature, which means a token only verifies inside the window that minted
it. A token minted one second before a boundary is rejected one second
after it.
"""

from __future__ import annotations

import hashlib
import hmac
import re
import secrets
import time
from typing import Callable, NamedTuple

TOKEN_SEPARATOR = "|"
MAX_SEED = 2**31 - 1

# Minted seeds are below 2**31 plus a unix timestamp, far shorter than this.
_SEED_PATTERN = re.compile(r"-?\d{1,20}")


class CsrfToken(NamedTuple):
    seed: int
    signature: str

    def __str__(self) -> str:
        return f"{self.seed}{TOKEN_SEPARATOR}{self.signature}"


def default_seed_source() -> int:
    return secrets.randbelow(MAX_SEED + 1)


def sign(session_id: str, seed: int) -> str:
    return hashlib.sha256(f"{session_id}{seed}".encode()).hexdigest()


def window_base(now: float, timeout: int) -> int:
    """Start of the epoch-aligned window containing ``now``."""
    return int(now) // timeout * timeout


class CsrfTokenEngine:
    """Mints and checks tokens for one session id resolver.

    Args:
        session_id: Zero-argument callable returning the session id. Called on
            every mint and check so a form can swap its id after creation.
        timeout: Window width in seconds.
        clock: Returns the current unix time.
        seed_source: Returns a random seed in ``[0, MAX_SEED]``.
    """

    def __init__(
        self,
        session_id: Callable[[], str],
        timeout: int = 300,
        *,
        clock: Callable[[], float] = time.time,
        seed_source: Callable[[], int] = default_seed_source,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be a positive number of seconds")
        self._session_id = session_id
        self.timeout = timeout
        self.clock = clock
        self.seed_source = seed_source

    def generate(self) -> CsrfToken:
        seed = self.seed_source()
        signature = sign(self._session_id(), seed)
        seed += window_base(self.clock(), self.timeout)
        return CsrfToken(seed, signature)

    def generate_string(self) -> str:
        return str(self.generate())

    def verify(self, value: str) -> bool:
        """Check a submitted token string. Malformed input is simply invalid."""
        if not isinstance(value, str) or TOKEN_SEPARATOR not in value:
            return False

        seed_part, signature = value.split(TOKEN_SEPARATOR, 1)
        if not _SEED_PATTERN.fullmatch(seed_part):
            return False

        seed = int(seed_part) - window_base(self.clock(), self.timeout)
        expected = sign(self._session_id(), seed)
        return hmac.compare_digest(signature.encode(), expected.encode())
