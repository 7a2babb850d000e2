"""Integration tests for the cocli command line."""

import json
from pathlib import Path
from typing import Any

import pytest

from pycorim import cbor_utils
from pycorim.cli import main
from pycorim.comid import Comid
from pycorim.corim import UnsignedCorim
from pycorim.cots import (
    TA_FORMAT_SPKI,
    ConciseTaStore,
    ConciseTaStores,
    EnvironmentGroup,
    TasAndCas,
    TrustAnchor,
)
from pycorim.jwk import generate_jwk, new_signer_from_jwk, public_jwk
from pycorim.meta import Meta
from pycorim.signed_corim import SignedCorim

CORIM_ID = "5c57e8f4-46cd-421b-91c9-08cf93e13cfc"

META_TEMPLATE = {
    "signer": {"name": "ACME Ltd signing key", "uri": "https://acme.example"},
    "validity": {"not-before": "2021-12-31T00:00:00Z", "not-after": "2025-12-31T00:00:00Z"},
}

COSWID = cbor_utils.encode({0: "com.acme.rrd2013-ce-sp1-v4-1-5-0", 1: "ACME Roadrunner"})

# Ed25519 SubjectPublicKeyInfo shape; contents are not parsed
SPKI = bytes.fromhex("302a300506032b6570032100") + bytes(32)

COTS = ConciseTaStores(
    [
        ConciseTaStore()
        .add_environment_group(EnvironmentGroup(named_ta_store="acme-roots"))
        .set_keys(TasAndCas().add_ta(TA_FORMAT_SPKI, SPKI))
    ]
).to_cbor()


def write_json(path: Path, obj: Any) -> Path:
    path.write_text(json.dumps(obj))
    return path


def run(capsys: pytest.CaptureFixture[str], *argv: Any) -> tuple[int, str, str]:
    code = main([str(a) for a in argv])
    captured = capsys.readouterr()
    return code, captured.out, captured.err


@pytest.fixture
def comid_file(work_dir: Path, psa_comid: Comid) -> Path:
    path = work_dir / "psa.cbor"
    path.write_bytes(psa_comid.to_cbor())
    return path


@pytest.fixture
def empty_comid_file(work_dir: Path) -> Path:
    path = work_dir / "empty.cbor"
    path.write_bytes(bytes.fromhex("a0"))
    return path


@pytest.fixture
def key_files(work_dir: Path, ec_jwk: dict[str, Any], ec_public_jwk: dict[str, Any]) -> tuple[Path, Path]:
    return (
        write_json(work_dir / "ec-p256.jwk", ec_jwk),
        write_json(work_dir / "ec-p256-pub.jwk", ec_public_jwk),
    )


@pytest.fixture
def signed_corim_file(work_dir: Path, psa_comid: Comid, meta: Meta, ec_jwk: dict[str, Any]) -> Path:
    """A signed CoRIM embedding a CoMID, a CoSWID and a CoTS, in that order."""
    signed = SignedCorim()
    signed.unsigned_corim = (
        UnsignedCorim().set_id(CORIM_ID).add_comid(psa_comid).add_coswid(COSWID).add_cots(COTS)
    )
    signed.meta = meta
    path = work_dir / "signed-corim.cbor"
    path.write_bytes(signed.sign(new_signer_from_jwk(ec_jwk)))
    return path


class TestComidCommands:
    """cocli comid create / validate / display."""

    @pytest.mark.integration
    def test_create(self, capsys, work_dir: Path, psa_template: dict[str, Any], psa_comid: Comid):
        tmpl = write_json(work_dir / "psa-refval.json", psa_template)
        out_dir = work_dir / "out"
        out_dir.mkdir()

        code, out, _ = run(capsys, "comid", "create", "-t", tmpl, "-o", out_dir)

        assert code == 0
        cbor_file = out_dir / "psa-refval.cbor"
        assert out.strip() == f'>> created "{cbor_file}" from "{tmpl}"'
        assert cbor_file.read_bytes() == psa_comid.to_cbor()

    @pytest.mark.integration
    def test_create_from_directory_with_failure(
        self, capsys, work_dir: Path, psa_template: dict[str, Any]
    ):
        tmpl_dir = work_dir / "templates"
        tmpl_dir.mkdir()
        write_json(tmpl_dir / "a-good.json", psa_template)
        bad = write_json(tmpl_dir / "b-bad.json", {"lang": "en"})
        (tmpl_dir / "ignored.txt").write_text("not a template")

        code, out, err = run(capsys, "comid", "create", "-T", tmpl_dir, "-o", work_dir)

        assert code == 1
        assert (work_dir / "a-good.cbor").exists()
        assert not (work_dir / "b-bad.cbor").exists()
        assert (
            f'>> creation failed for "{bad}": error validating template {bad}: '
            "tag-identity validation failed: empty tag-id"
        ) in out
        assert err.strip() == "Error: 1/2 creations(s) failed"

    @pytest.mark.integration
    def test_create_without_templates(self, capsys):
        code, _, err = run(capsys, "comid", "create")
        assert code == 1
        assert err.strip() == "Error: no templates supplied"

    @pytest.mark.integration
    def test_validate(self, capsys, comid_file: Path, empty_comid_file: Path):
        code, out, err = run(capsys, "comid", "validate", comid_file, empty_comid_file)

        assert code == 1
        lines = out.splitlines()
        assert lines[0] == f'[valid] "{comid_file}"'
        assert lines[1] == (
            f'[invalid] "{empty_comid_file}": error validating CoMID {empty_comid_file}: '
            "tag-identity validation failed: empty tag-id"
        )
        assert err.strip() == "Error: 1/2 validation(s) failed"

    @pytest.mark.integration
    def test_validate_directory(self, capsys, work_dir: Path, comid_file: Path):
        code, out, _ = run(capsys, "comid", "validate", "--dir", work_dir)
        assert code == 0
        assert out.strip() == f'[valid] "{comid_file}"'

    @pytest.mark.integration
    def test_display_empty_comid(self, capsys, empty_comid_file: Path):
        code, out, err = run(capsys, "comid", "display", empty_comid_file)

        assert code == 1
        assert out.strip() == (
            f'>> failed displaying "{empty_comid_file}": '
            "tag-identity validation failed: empty tag-id"
        )
        assert err.strip() == "Error: 1/1 display(s) failed"

    @pytest.mark.integration
    def test_display(self, capsys, comid_file: Path):
        code, out, _ = run(capsys, "comid", "display", comid_file)

        assert code == 0
        heading, body = out.split("\n", 1)
        assert heading == f">> [{comid_file}]"
        obj = json.loads(body)
        assert obj["tag-identity"]["id"] == "43bbe37f-2e61-4b33-aed3-53cff1428b16"

    @pytest.mark.integration
    def test_display_diag(self, capsys, comid_file: Path):
        code, out, _ = run(capsys, "comid", "display", "--diag", comid_file)
        assert code == 0
        assert "600(" in out
        assert "601(" in out

    @pytest.mark.integration
    def test_no_files(self, capsys, work_dir: Path):
        code, _, err = run(capsys, "comid", "validate", "--dir", work_dir)
        assert code == 1
        assert err.strip() == "Error: no files found"


class TestCorimCommands:
    """cocli corim create / sign / verify / display."""

    @pytest.mark.integration
    @pytest.mark.requires_crypto
    def test_create_sign_verify(
        self, capsys, work_dir: Path, comid_file: Path, key_files: tuple[Path, Path]
    ):
        tmpl = write_json(work_dir / "corim.json", {"corim-id": CORIM_ID})
        coswid_file = work_dir / "coswid.cbor"
        coswid_file.write_bytes(COSWID)
        unsigned = work_dir / "unsigned-corim.cbor"

        code, out, err = run(
            capsys, "corim", "create", "-t", tmpl, "-m", comid_file, "-s", coswid_file, "-o", unsigned
        )
        assert code == 0, err
        assert out.strip() == f'>> created "{unsigned}" from "{tmpl}"'
        corim = UnsignedCorim.from_cbor(unsigned.read_bytes())
        assert [tag for tag, _ in corim.iter_tags()] == [cbor_utils.COMID_TAG, cbor_utils.COSWID_TAG]

        private_key, public_key = key_files
        meta = write_json(work_dir / "meta.json", META_TEMPLATE)
        code, out, err = run(capsys, "corim", "sign", "-f", unsigned, "-k", private_key, "-m", meta)
        assert code == 0, err
        signed = work_dir / "signed-unsigned-corim.cbor"
        assert out.strip() == f'>> "{unsigned}" signed and saved to "{signed}"'

        code, out, err = run(capsys, "corim", "verify", "-f", signed, "-k", public_key)
        assert code == 0, err
        assert out.strip() == f'>> "{signed}" verified'

    @pytest.mark.integration
    def test_create_without_tags(self, capsys, work_dir: Path):
        tmpl = write_json(work_dir / "corim.json", {"corim-id": CORIM_ID})
        code, _, err = run(capsys, "corim", "create", "-t", tmpl)
        assert code == 1
        assert err.strip() == "Error: no CoMID, CoSWID or CoTS files found"

    @pytest.mark.integration
    def test_create_with_invalid_comid(self, capsys, work_dir: Path, empty_comid_file: Path):
        tmpl = write_json(work_dir / "corim.json", {"corim-id": CORIM_ID})
        code, _, err = run(capsys, "corim", "create", "-t", tmpl, "-m", empty_comid_file)
        assert code == 1
        assert err.strip() == (
            f"Error: error adding CoMID from {empty_comid_file}: "
            "tag-identity validation failed: empty tag-id"
        )

    @pytest.mark.integration
    def test_sign_missing_meta(self, capsys, work_dir: Path, key_files: tuple[Path, Path]):
        code, _, err = run(capsys, "corim", "sign", "-f", work_dir / "x.cbor", "-k", key_files[0])
        assert code == 1
        assert err.strip() == "Error: no CoRIM Meta supplied"

    @pytest.mark.integration
    @pytest.mark.requires_crypto
    def test_verify_wrong_key(self, capsys, work_dir: Path, signed_corim_file: Path):
        other = write_json(work_dir / "other.jwk", public_jwk(generate_jwk()))
        code, _, err = run(capsys, "corim", "verify", "-f", signed_corim_file, "-k", other)
        assert code == 1
        assert err.strip() == (
            f"Error: error verifying {signed_corim_file} with key {other}: verification failed"
        )

    @pytest.mark.integration
    def test_verify_not_signed(self, capsys, work_dir: Path, comid_file: Path, key_files: tuple[Path, Path]):
        code, _, err = run(capsys, "corim", "verify", "-f", comid_file, "-k", key_files[1])
        assert code == 1
        assert err.startswith(f"Error: error decoding signed CoRIM from {comid_file}: ")

    @pytest.mark.integration
    @pytest.mark.requires_crypto
    def test_display(self, capsys, signed_corim_file: Path):
        code, out, _ = run(capsys, "corim", "display", "-f", signed_corim_file)
        assert code == 0
        assert out.startswith("Meta:\n")
        assert '"name": "ACME Ltd signing key"' in out
        assert "Corim:\n" in out
        assert f'"corim-id": "{CORIM_ID}"' in out
        assert "Tags:" not in out

    @pytest.mark.integration
    @pytest.mark.requires_crypto
    def test_display_tags(self, capsys, signed_corim_file: Path):
        code, out, _ = run(capsys, "corim", "display", "-f", signed_corim_file, "--show-tags")
        assert code == 0
        assert "Tags:\n>> [ 0 ]\n" in out
        assert ">> [ 1 ]" in out
        assert ">> [ 2 ]" in out
        assert '"tag-identity"' in out

    @pytest.mark.integration
    @pytest.mark.requires_crypto
    def test_display_malformed_comid(self, capsys, work_dir: Path, meta: Meta, ec_jwk: dict[str, Any]):
        signed = SignedCorim()
        signed.unsigned_corim = UnsignedCorim().set_id(CORIM_ID).add_tag(
            cbor_utils.COMID_TAG_PREFIX + b"\xa0"
        )
        signed.meta = meta
        path = work_dir / "signed.cbor"
        path.write_bytes(signed.sign(new_signer_from_jwk(ec_jwk)))

        code, out, _ = run(capsys, "corim", "display", "-f", path, "-v")
        assert code == 0
        assert (
            ">> skipping malformed CoMID tag at index 0: "
            "tag-identity validation failed: empty tag-id"
        ) in out


class TestCorimExtract:
    """cocli corim extract."""

    @pytest.mark.integration
    @pytest.mark.requires_crypto
    def test_extract_three_tags(self, capsys, work_dir: Path, signed_corim_file: Path, psa_comid: Comid):
        out_dir = work_dir / "tags"
        out_dir.mkdir()

        code, out, err = run(capsys, "corim", "extract", "-f", signed_corim_file, "-o", out_dir)

        assert code == 0, err
        assert out == ""
        assert sorted(p.name for p in out_dir.iterdir()) == [
            "000000-comid.cbor",
            "000001-coswid.cbor",
            "000002-cots.cbor",
        ]
        assert (out_dir / "000000-comid.cbor").read_bytes() == psa_comid.to_cbor()
        assert (out_dir / "000001-coswid.cbor").read_bytes() == COSWID
        assert (out_dir / "000002-cots.cbor").read_bytes() == COTS

    @pytest.mark.integration
    @pytest.mark.requires_crypto
    def test_extract_to_missing_directory(self, capsys, work_dir: Path, signed_corim_file: Path):
        missing = work_dir / "missing"
        code, out, _ = run(capsys, "corim", "extract", "-f", signed_corim_file, "-o", missing)
        assert code == 0
        assert out.count(">> error saving tag at index") == 3

    @pytest.mark.integration
    def test_missing_file(self, capsys):
        code, _, err = run(capsys, "corim", "extract")
        assert code == 1
        assert err.strip() == "Error: no CoRIM supplied"


class TestCotsCommands:
    """cocli cots create / createCorim / sign / display."""

    @pytest.fixture
    def env_file(self, work_dir: Path) -> Path:
        return write_json(
            work_dir / "env.json", [{"environment": {"class": {"vendor": "ACME"}}}]
        )

    @pytest.fixture
    def spki_file(self, work_dir: Path) -> Path:
        path = work_dir / "acme.spki"
        path.write_bytes(SPKI)
        return path

    @pytest.mark.integration
    def test_create(self, capsys, work_dir: Path, env_file: Path, spki_file: Path):
        out_file = work_dir / "store.cbor"
        code, out, err = run(
            capsys, "cots", "create", "-e", env_file, "--tafile", spki_file,
            "--uuid-str", CORIM_ID, "-u", "eat", "-o", out_file,
        )

        assert code == 0, err
        assert out.strip() == f'>> created "{out_file}"'
        store = ConciseTaStore.from_cbor(out_file.read_bytes())
        store.valid()
        assert str(store.tag_identity.tag_id) == CORIM_ID
        assert store.environments[0].environment.class_.vendor == "ACME"
        assert store.keys.tas[0] == TrustAnchor(TA_FORMAT_SPKI, SPKI)
        assert store.purposes == ["eat"]

    @pytest.mark.integration
    @pytest.mark.parametrize(
        "extra, message",
        [
            ((), "no TA files or folders supplied"),
            (
                ("--uuid", "--id", "x"),
                "only one of --uuid, --uuid-str and --id can be used at the same time",
            ),
            (("--uuid-str", "not-a-uuid"), "--uuid-str does not contain a valid UUID"),
        ],
    )
    def test_create_bad_arguments(
        self, capsys, env_file: Path, extra: tuple[str, ...], message: str
    ):
        code, _, err = run(capsys, "cots", "create", "-e", env_file, *extra)
        assert code == 1
        assert err.strip() == f"Error: {message}"

    @pytest.mark.integration
    def test_create_without_environment(self, capsys, spki_file: Path):
        code, _, err = run(capsys, "cots", "create", "--tafile", spki_file)
        assert code == 1
        assert err.strip() == "Error: no environment template supplied"

    @pytest.mark.integration
    def test_create_unknown_ta_extension(self, capsys, work_dir: Path, env_file: Path):
        pem = work_dir / "acme.pem"
        pem.write_text("-----BEGIN PUBLIC KEY-----")
        code, _, err = run(capsys, "cots", "create", "-e", env_file, "--tafile", pem)
        assert code == 1
        assert err.strip() == "Error: no TA files found"

    @pytest.mark.integration
    def test_create_empty_environments(self, capsys, work_dir: Path, spki_file: Path):
        env = write_json(work_dir / "empty-env.json", [])
        code, _, err = run(
            capsys, "cots", "create", "-e", env, "--tafile", spki_file, "-o", work_dir / "x.cbor"
        )
        assert code == 1
        assert err.strip() == (
            "Error: error validating CoTS: invalid environmentGroups: empty EnvironmentGroups"
        )

    @pytest.mark.integration
    @pytest.mark.requires_crypto
    def test_create_corim_sign_display(
        self, capsys, work_dir: Path, env_file: Path, spki_file: Path, key_files: tuple[Path, Path]
    ):
        store_file = work_dir / "store.cbor"
        code, _, err = run(
            capsys, "cots", "create", "-e", env_file, "--tafile", spki_file, "-o", store_file
        )
        assert code == 0, err

        tmpl = write_json(work_dir / "corim.json", {"corim-id": CORIM_ID})
        unsigned = work_dir / "unsigned-cots.cbor"
        code, out, err = run(
            capsys, "cots", "createCorim", "-t", tmpl, "-c", store_file, "-o", unsigned
        )
        assert code == 0, err
        assert out.strip() == f'>> created "{unsigned}" from "{tmpl}"'
        corim = UnsignedCorim.from_cbor(unsigned.read_bytes())
        assert str(corim.id) != CORIM_ID
        [(tag, inner)] = list(corim.iter_tags())
        assert tag == cbor_utils.COTS_TAG
        assert ConciseTaStores.from_cbor(inner)[0] == ConciseTaStore.from_cbor(
            store_file.read_bytes()
        )

        meta = write_json(work_dir / "meta.json", META_TEMPLATE)
        code, out, err = run(
            capsys, "cots", "sign", "-f", unsigned, "-k", key_files[0], "-m", meta
        )
        assert code == 0, err
        signed = work_dir / "signed-unsigned-cots.cbor"
        assert out.strip() == f'>> "{unsigned}" signed and saved to "{signed}"'

        code, out, err = run(capsys, "cots", "display", "-f", signed, "-v")
        assert code == 0, err
        assert out.startswith("Meta:\n")
        assert "Cots:\n" in out
        assert "Tags:\n>> [ 0 ]\n" in out
        assert '"vendor": "ACME"' in out

    @pytest.mark.integration
    def test_create_corim_from_comid(self, capsys, work_dir: Path, psa_comid: Comid):
        tmpl = write_json(work_dir / "corim.json", {"corim-id": CORIM_ID})
        comid = work_dir / "tagged-comid.cbor"
        comid.write_bytes(cbor_utils.COMID_TAG_PREFIX + psa_comid.to_cbor())
        code, _, err = run(capsys, "cots", "createCorim", "-t", tmpl, "-c", comid)
        assert code == 1
        assert err.strip() == f"Error: error loading CoTS from {comid}: expecting CoTS, found tag 506"

    @pytest.mark.integration
    def test_create_corim_invalid_store(self, capsys, work_dir: Path):
        tmpl = write_json(work_dir / "corim.json", {"corim-id": CORIM_ID})
        bad = work_dir / "bad.cbor"
        bad.write_bytes(cbor_utils.encode([{2: []}]))
        code, _, err = run(capsys, "cots", "createCorim", "-t", tmpl, "-c", bad)
        assert code == 1
        assert err.strip() == (
            f"Error: error adding CoTS from {bad}: bad ConciseTaStore group at index 0: "
            "invalid environmentGroups: empty EnvironmentGroups"
        )

    @pytest.mark.integration
    def test_missing_file(self, capsys, work_dir: Path, key_files: tuple[Path, Path]):
        code, _, err = run(capsys, "cots", "sign", "-k", key_files[0])
        assert code == 1
        assert err.strip() == "Error: no CoTS supplied"
        code, _, err = run(capsys, "cots", "display")
        assert code == 1
        assert err.strip() == "Error: no CoTS supplied"

    @pytest.mark.integration
    @pytest.mark.requires_crypto
    def test_display_mixed_tags(self, capsys, signed_corim_file: Path):
        code, out, _ = run(capsys, "cots", "display", "-f", signed_corim_file, "-v")
        assert code == 0
        assert ">> unmatched CBOR tag: d901fa" in out
        assert ">> unmatched CBOR tag: d901f9" in out
        assert '>> [ 2 ]\n[\n  {\n    "environments"' in out
        assert '"namedtastore": "acme-roots"' in out


class TestTopLevel:
    """Global options."""

    @pytest.mark.integration
    def test_no_command_prints_help(self, capsys):
        code, out, _ = run(capsys)
        assert code == 0
        assert "usage: cocli" in out

    @pytest.mark.integration
    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert capsys.readouterr().out.startswith("cocli ")
