"""Shared fixtures: resolver, fake engine and a signed credential."""

import copy

import pytest

from helpers import (
    CONTEXT,
    CREDENTIAL,
    ISSUER,
    KEY_ID,
    PUBLIC_KEY,
    SECRET_KEY,
    VOCAB,
    VOCAB_URL,
    FakeBbsEngine,
    controller_document,
    key_document,
)
from vc_disclosure import BbsBlsSignature2020, DocumentResolver


@pytest.fixture
def documents():
    return {
        VOCAB_URL: VOCAB,
        ISSUER: controller_document(),
        KEY_ID: key_document(),
    }


@pytest.fixture
def resolver(documents):
    return DocumentResolver(documents=documents)


@pytest.fixture
def engine():
    return FakeBbsEngine()


@pytest.fixture
def credential():
    return copy.deepcopy(CREDENTIAL)


@pytest.fixture
def signed_credential(credential, engine, resolver):
    suite = BbsBlsSignature2020(engine, resolver=resolver)
    return suite.sign(
        credential,
        SECRET_KEY,
        KEY_ID,
        public_key=PUBLIC_KEY,
        created="2024-01-01T00:00:00Z",
    )


@pytest.fixture
def reveal_document():
    """Reveal name and address, prove age within [18, 60]."""
    return {
        "@context": CONTEXT,
        "type": ["VerifiableCredential"],
        "credentialSubject": {
            "@explicit": True,
            "type": ["PersonCard"],
            "name": {},
            "address": {},
            "age": "range-18-60",
        },
    }
