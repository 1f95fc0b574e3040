"""
Canonical statements.

Turns JSON-LD documents and proofs into ordered lists of URDNA2015
N-Quads statements, rewrites blank node labels so they survive a
fromRDF/frame round trip, and frames a document back out of statements.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from pyld import jsonld

from vc_disclosure.constants import BLANK_NODE_IRI_PREFIX

logger = logging.getLogger(__name__)

DocumentLoader = Callable[..., dict[str, Any]]

_BLANK_NODE = re.compile(r"(_:c14n[0-9]+)")
_BLANK_NODE_IRI = re.compile(r"<" + re.escape(BLANK_NODE_IRI_PREFIX) + r"(_:c14n[0-9]+)>")

# subject, predicate, object and optional graph of one canonical N-Quads line
_NQUAD = re.compile(
    r'^(?P<subject><[^>]*>|_:\S+)\s+'
    r'<(?P<predicate>[^>]*)>\s+'
    r'(?P<object><[^>]*>|_:\S+|"(?P<literal>(?:[^"\\]|\\.)*)"'
    r'(?:\^\^<(?P<datatype>[^>]*)>|@(?P<language>[A-Za-z0-9-]+))?)'
    r'(?:\s+(?P<graph><[^>]*>|_:\S+))?\s*\.\s*$'
)


@dataclass(frozen=True)
class Statement:
    """Parsed view of one canonical statement."""

    subject: str
    predicate: str
    object: str
    literal: str | None = None
    datatype: str | None = None
    language: str | None = None
    graph: str | None = None


def parse_statement(line: str) -> Statement | None:
    """Parse an N-Quads line, returning None if it is not a statement."""
    match = _NQUAD.match(line)
    if match is None:
        return None
    return Statement(
        subject=match["subject"],
        predicate=match["predicate"],
        object=match["object"],
        literal=match["literal"],
        datatype=match["datatype"],
        language=match["language"],
        graph=match["graph"],
    )


def canonicalize(document: dict[str, Any], document_loader: DocumentLoader) -> list[str]:
    """Canonicalize a JSON-LD document into ordered N-Quads statements.

    Args:
        document: The JSON-LD document (with its `@context`).
        document_loader: PyLD document loader used to resolve contexts.

    Returns:
        Sorted list of canonical statements without trailing newlines.
    """
    nquads = jsonld.normalize(
        document,
        {
            "algorithm": "URDNA2015",
            "format": "application/n-quads",
            "documentLoader": document_loader,
        },
    )
    return [line for line in nquads.split("\n") if line]


def canonicalize_proof(
    proof: dict[str, Any],
    context: Any,
    document_loader: DocumentLoader,
    proof_type: str | None = None,
) -> list[str]:
    """Canonicalize proof options.

    `nonce` and `proofValue` are never part of the signed proof options,
    so they are dropped before canonicalization. A proof carrying its own
    `@context` is expanded with it; `context` is only the fallback.
    """
    options = {k: v for k, v in proof.items() if k not in ("nonce", "proofValue")}
    options.setdefault("@context", context)
    if proof_type is not None:
        options["type"] = proof_type
    return canonicalize(options, document_loader)


def transform_blank_nodes(statements: Iterable[str]) -> list[str]:
    """Rewrite `_:c14nN` labels as `<urn:bnid:_:c14nN>` IRIs."""
    return [_BLANK_NODE.sub(r"<" + BLANK_NODE_IRI_PREFIX + r"\1>", s) for s in statements]


def restore_blank_nodes(statements: Iterable[str]) -> list[str]:
    """Undo `transform_blank_nodes`."""
    return [_BLANK_NODE_IRI.sub(r"\1", s) for s in statements]


def frame_document(
    statements: Iterable[str],
    reveal_frame: dict[str, Any],
    document_loader: DocumentLoader,
) -> dict[str, Any]:
    """Rebuild a document from statements and apply a JSON-LD frame.

    Args:
        statements: Canonical statements, normally blank-node transformed.
        reveal_frame: JSON-LD frame selecting what to disclose.
        document_loader: PyLD document loader used to resolve contexts.

    Returns:
        The framed (compacted) document.
    """
    expanded = jsonld.from_rdf(
        "\n".join(statements) + "\n",
        {"format": "application/n-quads"},
    )
    framed = jsonld.frame(expanded, reveal_frame, {"documentLoader": document_loader})
    logger.debug("Framed reveal document with keys %s", sorted(framed))
    return framed
