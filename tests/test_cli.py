"""Tests for the vc-disclose command line."""

import base64
import json

import base58
import pytest
from click.testing import CliRunner

from vc_disclosure.cli import main

from helpers import (
    CREDENTIAL,
    ISSUER,
    KEY_ID,
    PUBLIC_KEY,
    SECRET_KEY,
    VOCAB,
    VOCAB_URL,
    controller_document,
    key_document,
)

ENGINE = "helpers:FakeBbsEngine"


@pytest.fixture
def runner(monkeypatch):
    monkeypatch.delenv("VC_DISCLOSURE_ENGINE", raising=False)
    return CliRunner()


@pytest.fixture
def files(tmp_path, reveal_document):
    """Documents, key pair, credential and reveal document on disk."""
    paths = {
        "documents": tmp_path / "documents.json",
        "key_pair": tmp_path / "key.json",
        "credential": tmp_path / "credential.json",
        "reveal": tmp_path / "reveal.json",
    }
    paths["documents"].write_text(
        json.dumps({VOCAB_URL: VOCAB, ISSUER: controller_document(), KEY_ID: key_document()})
    )
    paths["key_pair"].write_text(
        json.dumps(
            {
                "id": KEY_ID,
                "publicKeyBase58": base58.b58encode(PUBLIC_KEY).decode(),
                "privateKeyBase58": base58.b58encode(SECRET_KEY).decode(),
            }
        )
    )
    paths["credential"].write_text(json.dumps(CREDENTIAL))
    paths["reveal"].write_text(json.dumps(reveal_document))
    return {name: str(path) for name, path in paths.items()}


def _base_args(files):
    return ["--engine", ENGINE, "--documents", files["documents"]]


def _sign_and_derive(runner, files, tmp_path):
    signed = str(tmp_path / "signed.json")
    derived = str(tmp_path / "derived.json")
    result = runner.invoke(
        main, _base_args(files) + ["sign", files["credential"], "--key-pair", files["key_pair"], "-o", signed]
    )
    assert result.exit_code == 0, result.output
    result = runner.invoke(main, _base_args(files) + ["derive", signed, files["reveal"], "-o", derived])
    assert result.exit_code == 0, result.output
    return signed, derived


class TestCommands:
    """Tests for sign, derive and verify."""

    def test_sign_derive_verify(self, runner, files, tmp_path):
        _, derived = _sign_and_derive(runner, files, tmp_path)

        document = json.loads((tmp_path / "derived.json").read_text())
        assert document["proof"]["type"] == "BbsBlsSignatureProof2020"
        assert "age" not in document["credentialSubject"]

        result = runner.invoke(main, _base_args(files) + ["verify", derived])
        assert result.exit_code == 0, result.output
        assert "VERIFIED" in result.output

    def test_verify_json_output(self, runner, files, tmp_path):
        _, derived = _sign_and_derive(runner, files, tmp_path)
        result = runner.invoke(main, _base_args(files) + ["verify", derived, "--json-output"])
        assert result.exit_code == 0, result.output
        assert '"verified": true' in result.output
        assert '"status": "verified"' in result.output

    def test_verify_stdin(self, runner, files, tmp_path):
        _, derived = _sign_and_derive(runner, files, tmp_path)
        result = runner.invoke(
            main, _base_args(files) + ["verify", "-"], input=(tmp_path / "derived.json").read_text()
        )
        assert result.exit_code == 0, result.output

    def test_verify_rejected(self, runner, files, tmp_path):
        _, derived = _sign_and_derive(runner, files, tmp_path)
        document = json.loads((tmp_path / "derived.json").read_text())
        document["credentialSubject"]["name"] = "Mallory"
        (tmp_path / "derived.json").write_text(json.dumps(document))

        result = runner.invoke(main, _base_args(files) + ["verify", derived, "--json-output"])
        assert result.exit_code == 1
        assert "engine_rejected" in result.output

    def test_derive_to_stdout(self, runner, files, tmp_path):
        signed, _ = _sign_and_derive(runner, files, tmp_path)
        result = runner.invoke(
            main, _base_args(files) + ["derive", signed, files["reveal"], "--nonce-hex", "00" * 50]
        )
        assert result.exit_code == 0, result.output
        assert base64.b64decode(json.loads(result.output)["proof"]["nonce"]) == bytes(50)

    def test_derive_unsatisfiable(self, runner, files, tmp_path):
        signed, _ = _sign_and_derive(runner, files, tmp_path)
        reveal = json.loads((tmp_path / "reveal.json").read_text())
        reveal["credentialSubject"]["birthDate"] = {}
        (tmp_path / "reveal.json").write_text(json.dumps(reveal))

        result = runner.invoke(main, _base_args(files) + ["derive", signed, files["reveal"]])
        assert result.exit_code == 2


class TestOptions:
    """Tests for engine and input handling."""

    def test_no_engine(self, runner, files):
        result = runner.invoke(main, ["--documents", files["documents"], "verify", files["credential"]])
        assert result.exit_code == 2
        assert "No proof engine configured" in result.output

    def test_engine_from_environment(self, runner, files, tmp_path):
        _, derived = _sign_and_derive(runner, files, tmp_path)
        result = runner.invoke(
            main,
            ["--documents", files["documents"], "verify", derived],
            env={"VC_DISCLOSURE_ENGINE": ENGINE},
        )
        assert result.exit_code == 0, result.output

    def test_bad_engine_path(self, runner, files):
        result = runner.invoke(main, ["--engine", "helpers", "verify", files["credential"]])
        assert result.exit_code == 2
        assert "module:attribute" in result.output

    def test_missing_file(self, runner, files):
        result = runner.invoke(main, _base_args(files) + ["verify", "does-not-exist.json"])
        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_invalid_json(self, runner, files, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json")
        result = runner.invoke(main, _base_args(files) + ["verify", str(bad)])
        assert result.exit_code == 2
