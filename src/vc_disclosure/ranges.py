"""
Range predicate extraction.

A holder asks for a range proof instead of disclosure by putting the
sentinel `range-<min>-<max>` in place of a credentialSubject value in the
reveal document. Every signed integer literal is also carried as an extra
plaintext message after the canonical statements; range predicates point
at those extra messages.
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from pyld import jsonld

from vc_disclosure.constants import RANGE_SENTINEL_PREFIX, XSD_INTEGER_TYPES
from vc_disclosure.metadata import RangeTriple
from vc_disclosure.reveal import RevealMismatchError
from vc_disclosure.statements import DocumentLoader, parse_statement

_RANGE_SENTINEL = re.compile("^" + re.escape(RANGE_SENTINEL_PREFIX) + r"(\d+)-(\d+)$")


@dataclass(frozen=True)
class RangeField:
    """A credentialSubject field to be proven within bounds."""

    field_name: str
    predicate_iri: str
    min: int
    max: int


@dataclass(frozen=True)
class IntegerLiteral:
    """A signed integer literal and the statement it came from."""

    statement_index: int
    predicate_iri: str
    value: str


def parse_range_sentinel(value: Any) -> tuple[int, int] | None:
    """Return `(min, max)` for a `range-<min>-<max>` value, else None."""
    if not isinstance(value, str):
        return None
    match = _RANGE_SENTINEL.match(value)
    if match is None:
        return None
    low, high = int(match.group(1)), int(match.group(2))
    if low > high:
        raise ValueError(f"Invalid range sentinel {value!r}: minimum exceeds maximum")
    return low, high


def _predicate_iri(
    context: Any,
    subject_type: Any,
    field_name: str,
    document_loader: DocumentLoader,
) -> str:
    """Expand a term to its IRI as it would be used inside the subject."""
    probe: dict[str, Any] = {"@context": context, field_name: "0"}
    if subject_type:
        probe["type"] = subject_type
    expanded = jsonld.expand(probe, {"documentLoader": document_loader})
    for node in expanded:
        for key in node:
            if not key.startswith("@"):
                return key
    raise ValueError(f"Field '{field_name}' is not defined by the reveal document context")


def extract_range_fields(
    reveal_frame: dict[str, Any],
    document_loader: DocumentLoader,
) -> list[RangeField]:
    """Collect range-sentinel fields from the reveal document's subject.

    Args:
        reveal_frame: The holder's reveal document.
        document_loader: PyLD document loader used to expand field terms.

    Returns:
        RangeField entries in credentialSubject key order.
    """
    subject = reveal_frame.get("credentialSubject")
    if not isinstance(subject, dict):
        return []

    fields: list[RangeField] = []
    for name, value in subject.items():
        bounds = parse_range_sentinel(value)
        if bounds is None:
            continue
        iri = _predicate_iri(
            reveal_frame.get("@context"),
            subject.get("type"),
            name,
            document_loader,
        )
        fields.append(RangeField(field_name=name, predicate_iri=iri, min=bounds[0], max=bounds[1]))
    return fields


def strip_range_fields(reveal_frame: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of the reveal document without range sentinels."""
    stripped = copy.deepcopy(reveal_frame)
    subject = stripped.get("credentialSubject")
    if isinstance(subject, dict):
        for name in [n for n, v in subject.items() if parse_range_sentinel(v)]:
            del subject[name]
    return stripped


def drop_range_statements(
    statements: Iterable[str],
    range_fields: Sequence[RangeField],
) -> list[str]:
    """Remove statements carrying a range field's value.

    Framing embeds every property of a node unless the frame is explicit,
    so the values proven by range predicates have to be kept out of the
    framing input altogether.
    """
    hidden = {f.predicate_iri for f in range_fields}
    if not hidden:
        return list(statements)
    kept: list[str] = []
    for line in statements:
        statement = parse_statement(line)
        if statement is not None and statement.predicate in hidden:
            continue
        kept.append(line)
    return kept


def _is_canonical_integer(value: str) -> bool:
    try:
        return str(int(value, 10)) == value
    except ValueError:
        return False


def find_integer_literals(statements: Sequence[str]) -> list[IntegerLiteral]:
    """Find integer-typed literals, in statement order.

    Only values that survive an exact int round trip are kept, so decimals,
    padded numbers and dates never qualify.
    """
    found: list[IntegerLiteral] = []
    for index, line in enumerate(statements):
        statement = parse_statement(line)
        if statement is None or statement.literal is None:
            continue
        if statement.datatype not in XSD_INTEGER_TYPES:
            continue
        if _is_canonical_integer(statement.literal):
            found.append(IntegerLiteral(index, statement.predicate, statement.literal))
    return found


def assemble_messages(statements: Sequence[str]) -> list[str]:
    """Signed message list: statements followed by their integer values."""
    return list(statements) + [lit.value for lit in find_integer_literals(statements)]


def build_range_triples(
    statements: Sequence[str],
    range_fields: Sequence[RangeField],
) -> list[RangeTriple]:
    """Point each range field at its appended integer message.

    Args:
        statements: All signed statements, proof segment first.
        range_fields: Fields requested as range predicates.

    Returns:
        One RangeTriple per matching integer literal.

    Raises:
        RevealMismatchError: If a range field has no signed integer value.
    """
    by_iri = {f.predicate_iri: f for f in range_fields}
    matched: set[str] = set()
    triples: list[RangeTriple] = []

    for k, literal in enumerate(find_integer_literals(statements)):
        range_field = by_iri.get(literal.predicate_iri)
        if range_field is None:
            continue
        matched.add(range_field.predicate_iri)
        triples.append(RangeTriple(len(statements) + k, range_field.min, range_field.max))

    for range_field in range_fields:
        if range_field.predicate_iri not in matched:
            raise RevealMismatchError(
                f"Range field '{range_field.field_name}' has no signed integer value"
            )
    return triples
