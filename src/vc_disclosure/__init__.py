"""
VC Disclosure - selective disclosure proofs for BBS+ signed Verifiable Credentials.

Supports:
- BbsBlsSignature2020 signing over URDNA2015 canonical statements
- BbsBlsSignatureProof2020 selective disclosure with JSON-LD framing
- Range predicates on hidden integer fields (`range-<min>-<max>`)
- Explicit document resolution, optional did:web fetching
"""

from vc_disclosure.engine import (
    EngineTimeoutError,
    EngineVerificationFailed,
    ProofEngine,
)
from vc_disclosure.metadata import (
    DisclosureMetadata,
    MetadataCorruptError,
    RangeTriple,
    decode_metadata,
    encode_metadata,
)
from vc_disclosure.purposes import AssertionProofPurpose, PurposeResult
from vc_disclosure.resolver import (
    DocumentResolutionError,
    DocumentResolver,
    VerificationMethodNotFound,
    VerificationMethodRevoked,
)
from vc_disclosure.reveal import RevealMismatchError
from vc_disclosure.suite import (
    BbsBlsSignature2020,
    BbsBlsSignatureProof2020,
    DerivedCredential,
    ProofRejected,
    ProofVerificationResult,
    RejectionReason,
    UnsupportedProofType,
    VerificationStatus,
    derive_credential,
    sign_credential,
    verify_credential,
)

__version__ = "0.1.0"

__all__ = [
    "AssertionProofPurpose",
    "BbsBlsSignature2020",
    "BbsBlsSignatureProof2020",
    "DerivedCredential",
    "DisclosureMetadata",
    "DocumentResolutionError",
    "DocumentResolver",
    "EngineTimeoutError",
    "EngineVerificationFailed",
    "MetadataCorruptError",
    "ProofEngine",
    "ProofRejected",
    "ProofVerificationResult",
    "PurposeResult",
    "RangeTriple",
    "RejectionReason",
    "RevealMismatchError",
    "UnsupportedProofType",
    "VerificationMethodNotFound",
    "VerificationMethodRevoked",
    "VerificationStatus",
    "decode_metadata",
    "derive_credential",
    "encode_metadata",
    "sign_credential",
    "verify_credential",
]
