"""JSON-LD, Linked Data Proof and BBS+ selective disclosure constants."""

CREDENTIALS_CONTEXT_V1_URL = "https://www.w3.org/2018/credentials/v1"
SECURITY_CONTEXT_BBS_URL = "https://w3id.org/security/bbs/v1"

SECURITY_VOCAB = "https://w3id.org/security#"
SECURITY_DOMAIN_URL = SECURITY_VOCAB + "domain"

XSD_VOCAB = "http://www.w3.org/2001/XMLSchema#"

# Literal datatypes whose plaintext value is appended to the message list
XSD_INTEGER_TYPES = frozenset(
    XSD_VOCAB + name
    for name in (
        "int",
        "integer",
        "long",
        "short",
        "byte",
        "nonNegativeInteger",
        "positiveInteger",
        "unsignedInt",
        "unsignedLong",
        "unsignedShort",
        "unsignedByte",
    )
)

BBS_SIGNATURE_TYPE = "BbsBlsSignature2020"
BBS_PROOF_TYPE = "BbsBlsSignatureProof2020"

SIGNATURE_TYPES = frozenset(
    {
        BBS_SIGNATURE_TYPE,
        "sec:" + BBS_SIGNATURE_TYPE,
        SECURITY_VOCAB + BBS_SIGNATURE_TYPE,
    }
)
PROOF_TYPES = frozenset(
    {
        BBS_PROOF_TYPE,
        "sec:" + BBS_PROOF_TYPE,
        SECURITY_VOCAB + BBS_PROOF_TYPE,
    }
)

BLANK_NODE_IRI_PREFIX = "urn:bnid:"
RANGE_SENTINEL_PREFIX = "range-"

NONCE_LENGTH = 50
