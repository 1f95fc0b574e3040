"""
BBS+ Linked Data signature suites.

BbsBlsSignature2020 signs every canonical statement of a credential.
BbsBlsSignatureProof2020 derives a selective disclosure proof from such a
signature, revealing a chosen subset of statements and proving hidden
integer fields to lie within bounds, and verifies derived proofs.

Derive: canonicalize -> frame reveal document -> map reveal indices ->
extract ranges -> pack metadata into `domain` -> create proof.
Verify: decode `domain` -> assemble revealed messages -> verify proof ->
check proof purpose.
"""

from __future__ import annotations

import base64
import binascii
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from vc_disclosure.constants import (
    BBS_PROOF_TYPE,
    BBS_SIGNATURE_TYPE,
    NONCE_LENGTH,
    PROOF_TYPES,
    SECURITY_DOMAIN_URL,
    SIGNATURE_TYPES,
)
from vc_disclosure.engine import (
    EngineTimeoutError,
    EngineVerificationFailed,
    ProofBytes,
    ProofEngine,
    call_engine,
    prefix_messages,
)
from vc_disclosure.metadata import (
    DisclosureMetadata,
    MetadataCorruptError,
    RangeTriple,
    decode_metadata,
    encode_metadata,
)
from vc_disclosure.purposes import AssertionProofPurpose, ControllerProofPurpose, PurposeResult
from vc_disclosure.ranges import (
    assemble_messages,
    build_range_triples,
    drop_range_statements,
    extract_range_fields,
    strip_range_fields,
)
from vc_disclosure.resolver import DocumentResolutionError, DocumentResolver, VerificationMethod
from vc_disclosure.reveal import check_requested_fields, map_reveal_indices
from vc_disclosure.statements import (
    canonicalize,
    canonicalize_proof,
    frame_document,
    parse_statement,
    restore_blank_nodes,
    transform_blank_nodes,
)

logger = logging.getLogger(__name__)


class UnsupportedProofType(Exception):
    """Raised when a proof is not of a type this suite handles."""


class ProofRejected(Exception):
    """Raised by `raise_for_status` for a rejected proof."""


class VerificationStatus(Enum):
    """Overall verification status."""

    VERIFIED = "verified"
    REJECTED = "rejected"


class RejectionReason(Enum):
    """Why a proof was rejected."""

    UNSUPPORTED_PROOF = "unsupported_proof"
    MALFORMED_METADATA = "malformed_metadata"
    MALFORMED_PROOF = "malformed_proof"
    VERIFICATION_METHOD = "verification_method"
    ENGINE_REJECTED = "engine_rejected"
    PURPOSE_INVALID = "purpose_invalid"


@dataclass
class ProofVerificationResult:
    """Result of verifying a signature or derived proof."""

    verified: bool
    proof_type: str
    verification_method: str
    reason: RejectionReason | None = None
    error: str | None = None
    purpose: PurposeResult | None = None
    reveal_indices: list[int] = field(default_factory=list)
    range_triples: list[RangeTriple] = field(default_factory=list)

    @property
    def status(self) -> VerificationStatus:
        return VerificationStatus.VERIFIED if self.verified else VerificationStatus.REJECTED

    def raise_for_status(self) -> None:
        """Raise if the proof did not verify.

        Raises:
            EngineVerificationFailed: If the proof engine rejected the proof.
            ProofRejected: For any other rejection.
        """
        if self.verified:
            return
        if self.reason == RejectionReason.ENGINE_REJECTED:
            raise EngineVerificationFailed(self.error or "Proof engine rejected the proof")
        raise ProofRejected(f"{self.reason.value if self.reason else 'rejected'}: {self.error}")


@dataclass
class DerivedCredential:
    """A reveal document together with its derived proof."""

    document: dict[str, Any]
    proof: dict[str, Any]
    reveal_indices: list[int]
    range_triples: list[RangeTriple]

    def to_dict(self) -> dict[str, Any]:
        """The derived credential with its proof embedded."""
        return {**self.document, "proof": self.proof}


def _split_proof(
    credential: dict[str, Any],
    proof: dict[str, Any] | None = None,
) -> tuple[dict[str, Any], dict[str, Any] | None]:
    document = {k: v for k, v in credential.items() if k != "proof"}
    if proof is None:
        proof = credential.get("proof")
    return document, proof if isinstance(proof, dict) else None


def _method_id(proof: dict[str, Any]) -> str:
    method = proof.get("verificationMethod")
    if isinstance(method, dict):
        method = method.get("id")
    return method or ""


def _is_metadata_carrier(statement: str) -> bool:
    parsed = parse_statement(statement)
    return parsed is not None and parsed.predicate == SECURITY_DOMAIN_URL


def encode_proof_value(output: ProofBytes) -> str | list[str]:
    """Base64 encode engine output; multi-segment proofs become a list."""
    if isinstance(output, (bytes, bytearray)):
        return base64.b64encode(bytes(output)).decode("ascii")
    return [base64.b64encode(bytes(segment)).decode("ascii") for segment in output]


def decode_proof_value(value: Any) -> ProofBytes:
    """Inverse of `encode_proof_value`.

    Raises:
        ValueError: If the value is not base64 (or a list of base64 strings).
    """
    if isinstance(value, str):
        return base64.b64decode(value, validate=True)
    if isinstance(value, list) and value and all(isinstance(v, str) for v in value):
        return [base64.b64decode(v, validate=True) for v in value]
    raise ValueError("proofValue must be a base64 string or a list of base64 strings")


class _BbsSuite:
    """Shared plumbing of the BBS+ suites."""

    def __init__(
        self,
        engine: ProofEngine,
        resolver: DocumentResolver | None = None,
        engine_timeout: float | None = None,
    ) -> None:
        """Initialize the suite.

        Args:
            engine: Proof engine implementing the BBS+ math.
            resolver: Document resolver for contexts and verification
                methods. A resolver serving only the bundled contexts is
                created if not provided.
            engine_timeout: Seconds allowed per engine call, None for no bound.
        """
        self.engine = engine
        self.resolver = resolver or DocumentResolver()
        self.engine_timeout = engine_timeout

    def _call(self, func, *args):
        return call_engine(func, *args, timeout=self.engine_timeout)

    def create_verify_data(
        self,
        document: dict[str, Any],
        proof: dict[str, Any],
        proof_type: str | None = None,
    ) -> tuple[list[str], list[str]]:
        """Canonical proof statements and document statements."""
        loader = self.resolver.document_loader
        proof_statements = canonicalize_proof(
            proof, document.get("@context"), loader, proof_type=proof_type
        )
        document_statements = canonicalize(document, loader)
        return proof_statements, document_statements

    def _rejected(
        self,
        proof: dict[str, Any] | None,
        reason: RejectionReason,
        error: str,
        **kwargs: Any,
    ) -> ProofVerificationResult:
        proof = proof or {}
        logger.warning("Proof rejected (%s): %s", reason.value, error)
        return ProofVerificationResult(
            verified=False,
            proof_type=proof.get("type", "unknown"),
            verification_method=_method_id(proof) or "unknown",
            reason=reason,
            error=error,
            **kwargs,
        )

    def _check_purpose(
        self,
        proof: dict[str, Any],
        verification_method: VerificationMethod,
        purpose: ControllerProofPurpose | None,
    ) -> PurposeResult:
        purpose = purpose or AssertionProofPurpose()
        return purpose.validate(proof, verification_method, self.resolver)


class BbsBlsSignature2020(_BbsSuite):
    """Signs and verifies full BBS+ signatures over canonical statements."""

    def sign(
        self,
        credential: dict[str, Any],
        secret_key: bytes,
        verification_method: str,
        public_key: bytes | None = None,
        created: str | None = None,
        proof_purpose: str = "assertionMethod",
    ) -> dict[str, Any]:
        """Sign a credential.

        Args:
            credential: The unsigned credential.
            secret_key: Issuer secret key bytes, passed through to the engine.
            verification_method: ID of the issuer's verification method.
            public_key: Issuer public key; resolved from the verification
                method if not given.
            created: Proof creation time (ISO 8601). Defaults to now.
            proof_purpose: The proof purpose term.

        Returns:
            A copy of the credential with a BbsBlsSignature2020 proof.
        """
        document, _ = _split_proof(credential)
        proof: dict[str, Any] = {
            "type": BBS_SIGNATURE_TYPE,
            "created": created or datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "verificationMethod": verification_method,
            "proofPurpose": proof_purpose,
        }

        if public_key is None:
            public_key = self.resolver.get_verification_method(verification_method).public_key_bytes()

        proof_statements, document_statements = self.create_verify_data(document, proof)
        messages = prefix_messages(assemble_messages(proof_statements + document_statements))
        logger.debug(
            "Signing %d messages (%d proof, %d document statements)",
            len(messages),
            len(proof_statements),
            len(document_statements),
        )

        signature = self._call(self.engine.sign, secret_key, public_key, messages)
        proof["proofValue"] = base64.b64encode(signature).decode("ascii")
        return {**document, "proof": proof}

    def verify(
        self,
        credential: dict[str, Any],
        purpose: ControllerProofPurpose | None = None,
    ) -> ProofVerificationResult:
        """Verify a BbsBlsSignature2020 signed credential."""
        document, proof = _split_proof(credential)
        if proof is None:
            return self._rejected(None, RejectionReason.UNSUPPORTED_PROOF, "Missing proof")
        if proof.get("type") not in SIGNATURE_TYPES:
            return self._rejected(
                proof, RejectionReason.UNSUPPORTED_PROOF, f"Unsupported proof type: {proof.get('type')}"
            )

        try:
            signature = base64.b64decode(proof.get("proofValue", ""), validate=True)
        except (binascii.Error, ValueError) as e:
            return self._rejected(proof, RejectionReason.MALFORMED_PROOF, f"Invalid proofValue: {e}")

        try:
            vm = self.resolver.get_verification_method(_method_id(proof))
            public_key = vm.public_key_bytes()
        except DocumentResolutionError as e:
            return self._rejected(proof, RejectionReason.VERIFICATION_METHOD, str(e))

        proof_statements, document_statements = self.create_verify_data(document, proof)
        messages = prefix_messages(assemble_messages(proof_statements + document_statements))

        try:
            valid = self._call(self.engine.verify_signature, signature, public_key, messages)
        except EngineTimeoutError:
            raise
        except Exception as e:
            return self._rejected(proof, RejectionReason.ENGINE_REJECTED, f"Signature verification error: {e}")
        if not valid:
            return self._rejected(proof, RejectionReason.ENGINE_REJECTED, "Invalid signature")

        purpose_result = self._check_purpose(proof, vm, purpose)
        if not purpose_result.valid:
            return self._rejected(
                proof, RejectionReason.PURPOSE_INVALID, purpose_result.error or "", purpose=purpose_result
            )

        return ProofVerificationResult(
            verified=True,
            proof_type=proof["type"],
            verification_method=vm.id,
            purpose=purpose_result,
        )


class BbsBlsSignatureProof2020(_BbsSuite):
    """Derives and verifies selective disclosure proofs with range predicates."""

    def __init__(
        self,
        engine: ProofEngine,
        resolver: DocumentResolver | None = None,
        engine_timeout: float | None = None,
        nonce_length: int = NONCE_LENGTH,
    ) -> None:
        super().__init__(engine, resolver=resolver, engine_timeout=engine_timeout)
        self.nonce_length = nonce_length

    def derive_proof(
        self,
        credential: dict[str, Any],
        reveal_document: dict[str, Any],
        nonce: bytes | None = None,
    ) -> DerivedCredential:
        """Derive a selective disclosure proof.

        Args:
            credential: A credential carrying a BbsBlsSignature2020 proof.
            reveal_document: JSON-LD frame of what to disclose.
                credentialSubject values of the form `range-<min>-<max>` are
                proven within bounds instead of disclosed.
            nonce: Proof nonce. A fresh random nonce is used if not given.

        Returns:
            DerivedCredential with the framed document and derived proof.

        Raises:
            UnsupportedProofType: If the credential is not BBS+ signed.
            RevealMismatchError: If the reveal document asks for statements
                that were not signed.
            VerificationMethodNotFound: If the issuer key cannot be found.
            VerificationMethodRevoked: If the issuer key was revoked.
        """
        document, proof = _split_proof(credential)
        if proof is None or proof.get("type") not in SIGNATURE_TYPES:
            raise UnsupportedProofType(
                f"proof document proof incompatible, expected proof types of "
                f"{sorted(SIGNATURE_TYPES)} received {proof.get('type') if proof else None}"
            )

        if not proof.get("proofValue"):
            raise UnsupportedProofType("Signature proof has no proofValue")

        signature = base64.b64decode(proof["proofValue"])
        loader = self.resolver.document_loader

        proof_statements, document_statements = self.create_verify_data(document, proof)
        logger.debug(
            "Statements canonicalized: %d proof, %d document",
            len(proof_statements),
            len(document_statements),
        )

        transformed = transform_blank_nodes(document_statements)
        range_fields = extract_range_fields(reveal_document, loader)
        reveal_frame = strip_range_fields(reveal_document)

        frame_input = drop_range_statements(transformed, range_fields)
        framed = frame_document(frame_input, reveal_frame, loader)
        check_requested_fields(reveal_frame, framed)
        reveal_statements = canonicalize(framed, loader)
        logger.debug("Reframed: %d statements to reveal", len(reveal_statements))

        reveal_indices = map_reveal_indices(proof_statements, transformed, reveal_statements)
        logger.debug("Indices mapped: %s", reveal_indices)

        statements = proof_statements + document_statements
        range_triples = build_range_triples(statements, range_fields)
        logger.debug("Ranges extracted: %s", [t.as_tuple() for t in range_triples])

        domain = encode_metadata(reveal_indices, range_triples)

        if nonce is None:
            nonce = secrets.token_bytes(self.nonce_length)

        vm = self.resolver.get_verification_method(_method_id(proof))
        public_key = vm.public_key_bytes()
        messages = prefix_messages(assemble_messages(statements))

        output = self._call(
            self.engine.create_proof,
            signature,
            public_key,
            messages,
            nonce,
            reveal_indices,
            [],
            [t.as_tuple() for t in range_triples],
        )
        logger.debug("Proof created over %d messages", len(messages))

        derived_proof = {
            # proof options expand with the signed context, not the reveal frame
            "@context": proof.get("@context", document.get("@context")),
            "type": BBS_PROOF_TYPE,
            "created": proof.get("created"),
            "verificationMethod": proof.get("verificationMethod"),
            "proofPurpose": proof.get("proofPurpose"),
            "nonce": base64.b64encode(nonce).decode("ascii"),
            "proofValue": encode_proof_value(output),
            "domain": domain,
        }
        derived_proof = {k: v for k, v in derived_proof.items() if v is not None}

        return DerivedCredential(
            document=framed,
            proof=derived_proof,
            reveal_indices=reveal_indices,
            range_triples=range_triples,
        )

    def _check_metadata(self, metadata: DisclosureMetadata, message_count: int) -> str | None:
        indices = metadata.reveal_indices
        if len(indices) != message_count:
            return f"Metadata reveals {len(indices)} messages but the document holds {message_count}"
        if len(set(indices)) != len(indices):
            return "Metadata reveals the same message more than once"
        hidden = {t.message_index for t in metadata.range_triples}
        if hidden & set(indices):
            return "Metadata applies a range predicate to a revealed message"
        for triple in metadata.range_triples:
            if triple.min > triple.max:
                return f"Range minimum exceeds maximum for message {triple.message_index}"
        return None

    def verify_proof(
        self,
        credential: dict[str, Any],
        proof: dict[str, Any] | None = None,
        purpose: ControllerProofPurpose | None = None,
    ) -> ProofVerificationResult:
        """Verify a derived selective disclosure proof.

        Args:
            credential: The derived credential (proof embedded or separate).
            proof: The derived proof, if not embedded in `credential`.
            purpose: Proof purpose to enforce. Defaults to assertionMethod.

        Returns:
            ProofVerificationResult. Engine rejection and purpose failure are
            reported with distinct reasons and never raised.

        Raises:
            EngineTimeoutError: If the engine call exceeded `engine_timeout`.
        """
        document, proof = _split_proof(credential, proof)
        if proof is None:
            return self._rejected(None, RejectionReason.UNSUPPORTED_PROOF, "Missing proof")
        if proof.get("type") not in PROOF_TYPES:
            return self._rejected(
                proof, RejectionReason.UNSUPPORTED_PROOF, f"Unsupported proof type: {proof.get('type')}"
            )

        try:
            metadata = decode_metadata(proof.get("domain"))
        except MetadataCorruptError as e:
            return self._rejected(proof, RejectionReason.MALFORMED_METADATA, str(e))
        logger.debug(
            "Metadata decoded: %d revealed, %d ranges",
            len(metadata.reveal_indices),
            len(metadata.range_triples),
        )

        # the derived proof is checked against the options that were signed
        proof_statements, document_statements = self.create_verify_data(
            document, proof, proof_type=BBS_SIGNATURE_TYPE
        )
        proof_statements = [s for s in proof_statements if not _is_metadata_carrier(s)]
        document_statements = restore_blank_nodes(document_statements)
        messages = prefix_messages(proof_statements + document_statements)
        logger.debug("Messages assembled: %d", len(messages))

        problem = self._check_metadata(metadata, len(messages))
        if problem:
            return self._rejected(proof, RejectionReason.MALFORMED_METADATA, problem)

        try:
            proof_value = decode_proof_value(proof.get("proofValue"))
            nonce = base64.b64decode(proof.get("nonce", ""), validate=True)
        except (binascii.Error, ValueError) as e:
            return self._rejected(proof, RejectionReason.MALFORMED_PROOF, f"Invalid proof encoding: {e}")

        try:
            vm = self.resolver.get_verification_method(_method_id(proof))
            public_key = vm.public_key_bytes()
        except DocumentResolutionError as e:
            return self._rejected(proof, RejectionReason.VERIFICATION_METHOD, str(e))

        ranges = [t.as_tuple() for t in metadata.range_triples]
        try:
            verified = self._call(
                self.engine.verify_proof,
                proof_value,
                public_key,
                messages,
                nonce,
                metadata.reveal_indices,
                [],
                ranges,
            )
        except EngineTimeoutError:
            raise
        except Exception as e:
            return self._rejected(proof, RejectionReason.ENGINE_REJECTED, f"Proof verification error: {e}")

        if not verified:
            return self._rejected(
                proof,
                RejectionReason.ENGINE_REJECTED,
                "Invalid proof",
                reveal_indices=metadata.reveal_indices,
                range_triples=metadata.range_triples,
            )
        logger.debug("Engine verified proof")

        purpose_result = self._check_purpose(proof, vm, purpose)
        if not purpose_result.valid:
            return self._rejected(
                proof,
                RejectionReason.PURPOSE_INVALID,
                purpose_result.error or "",
                purpose=purpose_result,
                reveal_indices=metadata.reveal_indices,
                range_triples=metadata.range_triples,
            )

        return ProofVerificationResult(
            verified=True,
            proof_type=proof["type"],
            verification_method=vm.id,
            purpose=purpose_result,
            reveal_indices=metadata.reveal_indices,
            range_triples=metadata.range_triples,
        )


def sign_credential(
    credential: dict[str, Any],
    engine: ProofEngine,
    secret_key: bytes,
    verification_method: str,
    resolver: DocumentResolver | None = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """Convenience function to sign a credential with BbsBlsSignature2020."""
    suite = BbsBlsSignature2020(engine, resolver=resolver)
    return suite.sign(credential, secret_key, verification_method, **kwargs)


def derive_credential(
    credential: dict[str, Any],
    reveal_document: dict[str, Any],
    engine: ProofEngine,
    resolver: DocumentResolver | None = None,
    nonce: bytes | None = None,
) -> dict[str, Any]:
    """Convenience function to derive a selective disclosure credential.

    Returns:
        The reveal document with its BbsBlsSignatureProof2020 embedded.
    """
    suite = BbsBlsSignatureProof2020(engine, resolver=resolver)
    return suite.derive_proof(credential, reveal_document, nonce=nonce).to_dict()


def verify_credential(
    credential: dict[str, Any],
    engine: ProofEngine,
    resolver: DocumentResolver | None = None,
    purpose: ControllerProofPurpose | None = None,
) -> ProofVerificationResult:
    """Convenience function to verify a derived credential.

    Args:
        credential: Derived credential with an embedded proof.
        engine: Proof engine.
        resolver: Document resolver for contexts and keys.
        purpose: Proof purpose to enforce. Defaults to assertionMethod.

    Returns:
        ProofVerificationResult with details of all checks.
    """
    suite = BbsBlsSignatureProof2020(engine, resolver=resolver)
    return suite.verify_proof(credential, purpose=purpose)
