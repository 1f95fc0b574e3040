"""
Document resolution.

Resolves IRIs (JSON-LD contexts, controller documents, verification
methods) from an explicit, caller-supplied set of documents. Resolution of
did:web identifiers and https URLs over the network is opt-in.
https://w3c-ccg.github.io/did-method-web/
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, field
from importlib import resources
from typing import Any, Mapping
from urllib.parse import quote

import base58
import httpx
from pyld import jsonld

from vc_disclosure.constants import CREDENTIALS_CONTEXT_V1_URL, SECURITY_CONTEXT_BBS_URL

logger = logging.getLogger(__name__)

BUILTIN_CONTEXTS = {
    CREDENTIALS_CONTEXT_V1_URL: "credentials_v1.json",
    SECURITY_CONTEXT_BBS_URL: "bbs_v1.json",
}


class DocumentResolutionError(Exception):
    """Raised when a document cannot be resolved."""


class VerificationMethodNotFound(DocumentResolutionError):
    """Raised when a verification method cannot be found."""


class VerificationMethodRevoked(DocumentResolutionError):
    """Raised when a verification method has been revoked."""


@dataclass
class PublicKeyJWK:
    """BLS12-381 public key in JWK format."""

    kty: str
    crv: str
    x: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PublicKeyJWK:
        """Create PublicKeyJWK from a JWK dictionary."""
        return cls(
            kty=data.get("kty", ""),
            crv=data.get("crv", ""),
            x=data.get("x", ""),
        )

    def is_valid_bls12381(self) -> bool:
        """Check if this is a BLS12-381 G1 or G2 key."""
        return (
            self.kty in ("EC", "OKP")
            and self.crv in ("BLS12381_G1", "BLS12381_G2")
            and bool(self.x)
        )


@dataclass
class VerificationMethod:
    """Controller document verification method."""

    id: str
    type: str
    controller: str
    public_key_base58: str | None = None
    public_key_jwk: PublicKeyJWK | None = None
    revoked: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VerificationMethod:
        jwk = data.get("publicKeyJwk")
        return cls(
            id=data.get("id", ""),
            type=data.get("type", ""),
            controller=data.get("controller", ""),
            public_key_base58=data.get("publicKeyBase58"),
            public_key_jwk=PublicKeyJWK.from_dict(jwk) if isinstance(jwk, dict) else None,
            revoked=data.get("revoked"),
        )

    def public_key_bytes(self) -> bytes:
        """Decode the raw public key.

        Raises:
            DocumentResolutionError: If the method carries no usable key.
        """
        if self.public_key_base58:
            try:
                return base58.b58decode(self.public_key_base58)
            except ValueError as e:
                raise DocumentResolutionError(
                    f"Invalid publicKeyBase58 in verification method {self.id}"
                ) from e

        if self.public_key_jwk is not None:
            if not self.public_key_jwk.is_valid_bls12381():
                raise DocumentResolutionError(
                    f"Public key is not a BLS12-381 key: {self.public_key_jwk}"
                )
            x = self.public_key_jwk.x
            return base64.urlsafe_b64decode(x + "=" * (-len(x) % 4))

        raise DocumentResolutionError(f"No public key in verification method {self.id}")


@dataclass
class ControllerDocument:
    """Controller (DID) document."""

    id: str
    verification_methods: list[VerificationMethod] = field(default_factory=list)
    authentication: list[str] = field(default_factory=list)
    assertion_method: list[str] = field(default_factory=list)

    def get_verification_method(self, method_id: str) -> VerificationMethod | None:
        """Get a verification method by ID."""
        for vm in self.verification_methods:
            if vm.id == method_id:
                return vm
        return None


class DocumentResolver:
    """Resolves IRIs to JSON(-LD) documents.

    Documents are looked up in the supplied mapping first, then in the
    bundled contexts. With `allow_remote`, did:web identifiers and https
    URLs are fetched and cached.
    """

    def __init__(
        self,
        documents: Mapping[str, Any] | None = None,
        include_builtin_contexts: bool = True,
        allow_remote: bool = False,
        timeout: float = 30.0,
        verify_ssl: bool = True,
    ) -> None:
        """Initialize the resolver.

        Args:
            documents: Mapping of IRI to document.
            include_builtin_contexts: Serve the bundled credentials and BBS contexts.
            allow_remote: Fetch unknown did:web and https documents.
            timeout: HTTP request timeout in seconds.
            verify_ssl: Whether to verify SSL certificates.
        """
        self._documents: dict[str, Any] = {}
        if include_builtin_contexts:
            self._documents.update(_load_builtin_contexts())
        if documents:
            self._documents.update(documents)
        self.allow_remote = allow_remote
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self._cache: dict[str, Any] = {}

    def add(self, iri: str, document: Any) -> None:
        """Register a document under an IRI."""
        self._documents[iri] = document

    def __contains__(self, iri: str) -> bool:
        return iri in self._documents or iri in self._cache

    def resolve(self, iri: str) -> Any:
        """Resolve an IRI to its document.

        Args:
            iri: Context URL, DID, or verification method ID.

        Returns:
            The JSON document.

        Raises:
            DocumentResolutionError: If the IRI is unknown and cannot be fetched.
        """
        if iri in self._documents:
            return self._documents[iri]
        if iri in self._cache:
            return self._cache[iri]

        if not self.allow_remote:
            raise DocumentResolutionError(
                f"Document {iri} is not available locally and remote loading is disabled"
            )

        if iri.startswith("did:web:"):
            url = _did_to_url(iri)
        elif iri.startswith("https://"):
            url = iri
        else:
            raise DocumentResolutionError(f"Cannot fetch document for {iri}")

        data = self._fetch(iri, url)
        if iri.startswith("did:web:") and data.get("id") != iri.split("#")[0]:
            raise DocumentResolutionError(
                f"DID Document id mismatch: expected {iri.split('#')[0]}, got {data.get('id')}"
            )
        self._cache[iri] = data
        return data

    def _fetch(self, iri: str, url: str) -> Any:
        logger.debug("Fetching %s from %s", iri, url)
        try:
            with httpx.Client(timeout=self.timeout, verify=self.verify_ssl) as client:
                response = client.get(
                    url,
                    headers={"Accept": "application/ld+json, application/did+ld+json, application/json"},
                )
                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as e:
            raise DocumentResolutionError(
                f"HTTP error resolving {iri}: {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise DocumentResolutionError(f"Network error resolving {iri}: {e}") from e
        except ValueError as e:
            raise DocumentResolutionError(f"Invalid JSON in document for {iri}") from e

    @property
    def document_loader(self):
        """PyLD document loader backed by this resolver."""

        def load(url: str, options: dict[str, Any] | None = None) -> dict[str, Any]:
            try:
                document = self.resolve(url)
            except DocumentResolutionError as e:
                raise jsonld.JsonLdError(
                    str(e),
                    "jsonld.LoadDocumentError",
                    {"url": url},
                    code="loading document failed",
                ) from e
            return {"contextUrl": None, "documentUrl": url, "document": document}

        return load

    def get_controller(self, controller_id: str) -> ControllerDocument:
        """Resolve and parse a controller document."""
        data = self.resolve(controller_id)
        if not isinstance(data, dict):
            raise DocumentResolutionError(f"Controller document {controller_id} is not an object")
        return _parse_controller_document(data)

    def get_verification_method(self, method_id: str) -> VerificationMethod:
        """Find a verification method.

        The method may be registered as a document of its own, or embedded
        in its controller's document.

        Raises:
            VerificationMethodNotFound: If the method cannot be found.
            VerificationMethodRevoked: If the method has been revoked.
        """
        if not method_id:
            raise VerificationMethodNotFound('No "verificationMethod" found in proof')

        vm: VerificationMethod | None = None
        if method_id in self:
            data = self.resolve(method_id)
            if isinstance(data, dict) and data.get("id") == method_id:
                vm = VerificationMethod.from_dict(data)

        if vm is None and "#" in method_id:
            try:
                controller = self.get_controller(method_id.split("#")[0])
            except DocumentResolutionError as e:
                raise VerificationMethodNotFound(
                    f"Verification method {method_id} not found: {e}"
                ) from e
            vm = controller.get_verification_method(method_id)

        if vm is None:
            raise VerificationMethodNotFound(f"Verification method {method_id} not found")

        if vm.revoked is not None:
            raise VerificationMethodRevoked(
                f"Verification method {method_id} was revoked at {vm.revoked}"
            )

        return vm

    def clear_cache(self) -> None:
        """Clear documents fetched over the network."""
        self._cache.clear()


def _load_builtin_contexts() -> dict[str, Any]:
    package = resources.files("vc_disclosure") / "contexts"
    return {
        url: json.loads((package / filename).read_text(encoding="utf-8"))
        for url, filename in BUILTIN_CONTEXTS.items()
    }


def _did_to_url(did: str) -> str:
    """Convert a did:web identifier to its resolution URL.

    did:web:example.com -> https://example.com/.well-known/did.json
    did:web:example.com:path:to:doc -> https://example.com/path/to/doc/did.json
    did:web:example.com%3A8080 -> https://example.com:8080/.well-known/did.json

    Raises:
        DocumentResolutionError: If the DID format is invalid.
    """
    if not did.startswith("did:web:"):
        raise DocumentResolutionError(f"Invalid did:web identifier: {did}")

    domain_path = did[8:].split("#")[0]
    parts = domain_path.split(":")
    domain = parts[0].replace("%3A", ":")

    if len(parts) > 1:
        path = "/" + "/".join(quote(p, safe="") for p in parts[1:]) + "/did.json"
    else:
        path = "/.well-known/did.json"

    return f"https://{domain}{path}"


def _parse_controller_document(data: dict[str, Any]) -> ControllerDocument:
    methods = [
        VerificationMethod.from_dict(item)
        for item in data.get("verificationMethod", [])
        if isinstance(item, dict)
    ]
    # embedded methods in verification relationships count as well
    for relationship in ("assertionMethod", "authentication"):
        for item in data.get(relationship, []):
            if isinstance(item, dict) and "id" in item:
                methods.append(VerificationMethod.from_dict(item))

    return ControllerDocument(
        id=data.get("id", ""),
        verification_methods=methods,
        authentication=_parse_verification_relationship(data.get("authentication", [])),
        assertion_method=_parse_verification_relationship(data.get("assertionMethod", [])),
    )


def _parse_verification_relationship(items: Any) -> list[str]:
    """Extract method IDs from a relationship array of references or objects."""
    if isinstance(items, (str, dict)):
        items = [items]
    result: list[str] = []
    for item in items:
        if isinstance(item, str):
            result.append(item)
        elif isinstance(item, dict) and "id" in item:
            result.append(item["id"])
    return result
