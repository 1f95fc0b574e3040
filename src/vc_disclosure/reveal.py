"""
Reveal index mapping.

Maps the statements of a framed reveal document back onto their positions
in the full list of signed statements.
"""

from __future__ import annotations

from typing import Any, Sequence


class RevealMismatchError(Exception):
    """Raised when requested disclosures are not among the signed statements."""


def map_reveal_indices(
    proof_statements: Sequence[str],
    document_statements: Sequence[str],
    reveal_statements: Sequence[str],
) -> list[int]:
    """Compute the revealed message indices.

    Proof statements come first in the signed message list and are always
    revealed. Each reveal statement is located in `document_statements`
    and offset by the number of proof statements.

    Args:
        proof_statements: Canonical proof option statements.
        document_statements: Blank-node transformed document statements.
        reveal_statements: Canonical statements of the framed reveal document.

    Returns:
        Revealed indices, proof segment first, then document statements in
        reveal order.

    Raises:
        RevealMismatchError: If a reveal statement was never signed.
    """
    offset = len(proof_statements)
    positions = {statement: i for i, statement in enumerate(document_statements)}

    mapped: list[int] = []
    missing: list[str] = []
    for statement in reveal_statements:
        position = positions.get(statement)
        if position is None:
            missing.append(statement)
        else:
            mapped.append(position + offset)

    if missing:
        raise RevealMismatchError(
            f"{len(missing)} statement(s) in the reveal document not found in "
            f"the signed document, first: {missing[0]}"
        )

    return list(range(offset)) + mapped


def _subjects(node: Any) -> list[dict[str, Any]]:
    if isinstance(node, dict):
        return [node]
    if isinstance(node, list):
        return [n for n in node if isinstance(n, dict)]
    return []


def _framed_root(framed: dict[str, Any]) -> dict[str, Any] | None:
    graph = framed.get("@graph")
    if graph is None:
        return framed if len(framed) > 1 or "@context" not in framed else None
    nodes = _subjects(graph)
    return nodes[0] if len(nodes) == 1 else None


def check_requested_fields(
    reveal_frame: dict[str, Any],
    framed: dict[str, Any],
) -> None:
    """Ensure every subject field the frame asks for made it into the result.

    Framing silently drops or nulls properties that are absent from the
    input, so an unsatisfiable request has to be caught here.

    Raises:
        RevealMismatchError: If the frame matched nothing or a requested
            credentialSubject field is missing from the framed document.
    """
    root = _framed_root(framed)
    if root is None:
        raise RevealMismatchError("Reveal document did not match the signed credential")

    requested = reveal_frame.get("credentialSubject")
    if not isinstance(requested, dict):
        return

    subjects = _subjects(root.get("credentialSubject"))
    if not subjects:
        raise RevealMismatchError("Reveal document did not match any credentialSubject")

    fields = [name for name in requested if not name.startswith("@") and name not in ("id", "type")]
    for name in fields:
        if all(subject.get(name) is None for subject in subjects):
            raise RevealMismatchError(
                f"Requested field '{name}' is not present in the signed credential"
            )
