"""
Proof engine adapter.

The pairing-based signature and range proof math is provided by an
external engine. This module defines the interface such an engine has to
offer, the message encoding it expects, and a timeout-bounded way of
calling it.
"""

from __future__ import annotations

import concurrent.futures
import logging
from typing import Any, Callable, Protocol, Sequence, TypeVar, Union, runtime_checkable

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProofBytes = Union[bytes, Sequence[bytes]]
Range = tuple[int, int, int]


class EngineVerificationFailed(Exception):
    """Raised when the proof engine rejects a signature or proof."""


class EngineTimeoutError(Exception):
    """Raised when a proof engine call exceeds its time bound."""


@runtime_checkable
class ProofEngine(Protocol):
    """Multi-message signature scheme with selective disclosure and range proofs.

    `verify_signature` and `verify_proof` return False for anything that
    does not verify; they do not raise to signal an invalid signature.
    """

    def sign(self, secret_key: bytes, public_key: bytes, messages: Sequence[bytes]) -> bytes:
        ...

    def verify_signature(
        self, signature: bytes, public_key: bytes, messages: Sequence[bytes]
    ) -> bool:
        ...

    def create_proof(
        self,
        signature: bytes,
        public_key: bytes,
        messages: Sequence[bytes],
        nonce: bytes,
        revealed: Sequence[int],
        equivalences: Sequence[Sequence[int]],
        ranges: Sequence[Range],
    ) -> ProofBytes:
        ...

    def verify_proof(
        self,
        proof: ProofBytes,
        public_key: bytes,
        messages: Sequence[bytes],
        nonce: bytes,
        revealed: Sequence[int],
        equivalences: Sequence[Sequence[int]],
        ranges: Sequence[Range],
    ) -> bool:
        ...


def prefix_messages(messages: Sequence[str]) -> list[bytes]:
    """Encode messages for the engine: UTF-8 with one leading zero byte."""
    return [b"\x00" + message.encode("utf-8") for message in messages]


def call_engine(func: Callable[..., T], *args: Any, timeout: float | None = None) -> T:
    """Invoke an engine operation, optionally bounded in time.

    The call runs on a worker thread when a timeout is given. A call that
    times out keeps running in the background; its result is discarded.

    Raises:
        EngineTimeoutError: If the call did not finish within `timeout`.
    """
    name = getattr(func, "__name__", repr(func))
    if timeout is None:
        return func(*args)

    executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    future = executor.submit(func, *args)
    try:
        return future.result(timeout=timeout)
    except concurrent.futures.TimeoutError as e:
        future.cancel()
        logger.warning("Proof engine call %s exceeded %.1fs", name, timeout)
        raise EngineTimeoutError(f"Proof engine call {name} timed out after {timeout}s") from e
    finally:
        executor.shutdown(wait=False)
