"""Test helpers: a deterministic stand-in proof engine and shared documents."""

import hashlib
import hmac
import time

import base58

from vc_disclosure.constants import CREDENTIALS_CONTEXT_V1_URL, SECURITY_CONTEXT_BBS_URL

VOCAB_URL = "https://example.org/contexts/person/v1"
ISSUER = "did:example:489398593"
KEY_ID = ISSUER + "#key-1"
SECRET_KEY = bytes(range(32))
PUBLIC_KEY = bytes(range(1, 97))

CONTEXT = [CREDENTIALS_CONTEXT_V1_URL, SECURITY_CONTEXT_BBS_URL, VOCAB_URL]

VOCAB = {
    "@context": {
        "@version": 1.1,
        "ex": "https://example.org/vocab#",
        "xsd": "http://www.w3.org/2001/XMLSchema#",
        "PersonCard": "ex:PersonCard",
        "name": "ex:name",
        "age": {"@id": "ex:age", "@type": "xsd:int"},
        "ageLimit": {"@id": "ex:ageLimit", "@type": "xsd:int"},
        "eggs": {"@id": "ex:eggs", "@type": "xsd:int"},
        "height": {"@id": "ex:height", "@type": "xsd:decimal"},
        "birthDate": {"@id": "ex:birthDate", "@type": "xsd:dateTime"},
        "address": {"@id": "ex:address"},
        "locality": "ex:locality",
    }
}

CREDENTIAL = {
    "@context": CONTEXT,
    "id": "urn:uuid:8d4e4b4e-1b5a-4b51-9c1e-5c0f4d5f1a01",
    "type": ["VerifiableCredential"],
    "issuer": ISSUER,
    "issuanceDate": "2024-01-01T00:00:00Z",
    "credentialSubject": {
        "id": "did:example:2378465",
        "type": ["PersonCard"],
        "name": "Alice",
        "age": "23",
        "ageLimit": "99",
        "eggs": "50",
        "height": "12.3",
        "address": {"locality": "Berlin"},
    },
}


def controller_document(assertion_method=(KEY_ID,)):
    return {
        "@context": "https://w3id.org/security/v2",
        "id": ISSUER,
        "assertionMethod": list(assertion_method),
    }


def key_document(**extra):
    return {
        "id": KEY_ID,
        "type": "Bls12381G2Key2020",
        "controller": ISSUER,
        "publicKeyBase58": base58.b58encode(PUBLIC_KEY).decode(),
        **extra,
    }


class FakeBbsEngine:
    """HMAC based engine with the ProofEngine call shapes.

    Nothing here is zero-knowledge. Signatures bind every message; proofs
    bind the revealed index/message pairs, the nonce and the range
    constraints, so any tampering on the verifier side makes verification
    fail.
    """

    def __init__(self):
        self.calls = []

    @staticmethod
    def _digest(key, *parts):
        mac = hmac.new(bytes(key), digestmod=hashlib.sha256)
        for part in parts:
            mac.update(len(part).to_bytes(4, "big"))
            mac.update(part)
        return mac.digest()

    def _proof(self, public_key, nonce, pairs, ranges):
        parts = [b"proof", bytes(nonce)]
        for index, message in pairs:
            parts.append(str(index).encode())
            parts.append(message)
        for triple in ranges:
            parts.append(",".join(str(v) for v in triple).encode())
        return self._digest(public_key, *parts)

    def sign(self, secret_key, public_key, messages):
        if any(m[:1] != b"\x00" for m in messages):
            raise ValueError("messages must carry the zero byte prefix")
        self.calls.append(("sign", list(messages)))
        return self._digest(public_key, b"signature", *messages)

    def verify_signature(self, signature, public_key, messages):
        return hmac.compare_digest(signature, self._digest(public_key, b"signature", *messages))

    def create_proof(self, signature, public_key, messages, nonce, revealed, equivalences, ranges):
        self.calls.append(
            (
                "create_proof",
                {
                    "messages": list(messages),
                    "nonce": nonce,
                    "revealed": list(revealed),
                    "equivalences": list(equivalences),
                    "ranges": list(ranges),
                },
            )
        )
        if not self.verify_signature(signature, public_key, messages):
            raise ValueError("signature does not cover the supplied messages")
        for index, low, high in ranges:
            value = int(messages[index][1:].decode())
            if not low <= value <= high:
                raise ValueError(f"message {index} is outside [{low}, {high}]")
        pairs = [(i, messages[i]) for i in revealed]
        return self._proof(public_key, nonce, pairs, ranges)

    def verify_proof(self, proof, public_key, messages, nonce, revealed, equivalences, ranges):
        self.calls.append(("verify_proof", {"messages": list(messages), "revealed": list(revealed)}))
        if not isinstance(proof, bytes) or len(messages) != len(revealed):
            return False
        expected = self._proof(public_key, nonce, zip(revealed, messages), ranges)
        return hmac.compare_digest(proof, expected)


class SlowEngine(FakeBbsEngine):
    """Engine whose proof verification takes longer than any sane timeout."""

    def __init__(self, delay=2.0):
        super().__init__()
        self.delay = delay

    def verify_proof(self, *args):
        time.sleep(self.delay)
        return super().verify_proof(*args)
