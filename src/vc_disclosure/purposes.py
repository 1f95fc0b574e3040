"""
Proof purposes.

A proof purpose ties a proof to the relationship its verification method
must have with its controller, e.g. `assertionMethod` for credentials.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from vc_disclosure.resolver import (
    ControllerDocument,
    DocumentResolutionError,
    DocumentResolver,
    VerificationMethod,
)


@dataclass
class PurposeResult:
    """Result of a proof purpose check."""

    valid: bool
    error: str | None = None
    controller: str | None = None


class ControllerProofPurpose(ABC):
    """Checks that the verification method is authorized by its controller."""

    term = ""

    def __init__(
        self,
        date: datetime | None = None,
        max_timestamp_delta: float | None = None,
    ) -> None:
        """Initialize the purpose.

        Args:
            date: Reference time for the created check. Defaults to now.
            max_timestamp_delta: Maximum seconds between `proof.created` and
                `date`. None disables the check.
        """
        self.date = date
        self.max_timestamp_delta = max_timestamp_delta

    def match(self, proof: dict[str, Any]) -> bool:
        return proof.get("proofPurpose") == self.term

    def validate(
        self,
        proof: dict[str, Any],
        verification_method: VerificationMethod,
        resolver: DocumentResolver,
    ) -> PurposeResult:
        """Validate the proof's purpose.

        Returns:
            PurposeResult; never raises for an invalid purpose.
        """
        if not self.match(proof):
            return PurposeResult(
                valid=False,
                error=f"Proof purpose {proof.get('proofPurpose')!r} does not match {self.term!r}",
            )

        timestamp_error = self._check_created(proof)
        if timestamp_error:
            return PurposeResult(valid=False, error=timestamp_error)

        controller_id = verification_method.controller or verification_method.id.split("#")[0]
        try:
            controller = resolver.get_controller(controller_id)
        except DocumentResolutionError as e:
            return PurposeResult(valid=False, error=f"Controller resolution failed: {e}")

        if controller.id and controller.id != controller_id:
            return PurposeResult(
                valid=False,
                error=f"Controller document id {controller.id} does not match {controller_id}",
            )

        relationship = self._relationship(controller)
        if verification_method.id not in relationship:
            return PurposeResult(
                valid=False,
                error=(
                    f"Verification method {verification_method.id} is not authorized "
                    f"by controller {controller_id} for proof purpose {self.term!r}"
                ),
            )

        return PurposeResult(valid=True, controller=controller_id)

    @abstractmethod
    def _relationship(self, controller: ControllerDocument) -> list[str]:
        """Method IDs the controller authorizes for this purpose."""

    def _check_created(self, proof: dict[str, Any]) -> str | None:
        if self.max_timestamp_delta is None:
            return None
        created = proof.get("created")
        if not isinstance(created, str):
            return "Proof has no created timestamp"
        try:
            created_at = datetime.fromisoformat(created.replace("Z", "+00:00"))
        except ValueError:
            return f"Invalid proof created timestamp {created!r}"
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        now = self.date or datetime.now(timezone.utc)
        if abs((now - created_at).total_seconds()) > self.max_timestamp_delta:
            return "The proof's created timestamp is out of range"
        return None


class AssertionProofPurpose(ControllerProofPurpose):
    """`assertionMethod` proof purpose used for credentials."""

    term = "assertionMethod"

    def _relationship(self, controller: ControllerDocument) -> list[str]:
        return controller.assertion_method
