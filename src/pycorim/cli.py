"""Command-line interface for pycorim (``cocli``)."""

import argparse
import json
import logging
import os
import sys
import uuid
from collections.abc import Sequence
from typing import Callable, Optional

from . import __version__, cbor_utils, edn_utils, profiles
from .comid import Comid
from .cots import (
    TA_FORMAT_CERT,
    TA_FORMAT_SPKI,
    TA_FORMAT_TA,
    ConciseTaStore,
    ConciseTaStores,
    EatCWTClaim,
    EnvironmentGroups,
    TasAndCas,
    stores_from_cbor,
)
from .jwk import kid_from_jwk, new_signer_from_jwk, new_verifier_from_jwk
from .meta import Meta
from .signed_corim import SignedCorim

logger = logging.getLogger("pycorim.cli")

TAG_NAMES = {
    cbor_utils.COMID_TAG: "comid",
    cbor_utils.COSWID_TAG: "coswid",
    cbor_utils.COTS_TAG: "cots",
}


class CommandError(Exception):
    """A command failed; the message is reported to the user."""


def files_list(files: Optional[list[str]], dirs: Optional[list[str]], ext: str) -> list[str]:
    """Collect the given files plus every file with extension ext in dirs."""
    ret = [f for f in files or [] if f.endswith(ext)]
    for directory in dirs or []:
        try:
            entries = sorted(os.listdir(directory))
        except OSError as e:
            logger.debug("skipping directory %s: %s", directory, e)
            continue
        ret.extend(
            os.path.join(directory, name)
            for name in entries
            if name.endswith(ext) and os.path.isfile(os.path.join(directory, name))
        )
    return ret


def make_file_name(dirname: str, base: str, ext: str) -> str:
    stem = os.path.splitext(os.path.basename(base))[0]
    return os.path.join(dirname, stem + ext)


def _read(path: str, what: str) -> bytes:
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as e:
        raise CommandError(f"error loading {what} from {path}: {e}") from e


def _write(path: str, data: bytes, what: str) -> None:
    try:
        with open(path, "wb") as f:
            f.write(data)
    except OSError as e:
        raise CommandError(f"error saving {what} to file {path}: {e}") from e


def _batch(
    items: list[str],
    action: Callable[[str], None],
    failure: str,
    summary: str,
) -> None:
    """Run action on every item, reporting each failure and then a total."""
    if not items:
        raise CommandError("no files found")
    errs = 0
    for item in items:
        try:
            action(item)
        except (CommandError, ValueError, cbor_utils.CBORDecodeError) as e:
            logger.debug("failed on %s", item, exc_info=True)
            print(failure.format(item=item, err=e))
            errs += 1
    if errs:
        raise CommandError(f"{errs}/{len(items)} {summary} failed")


# comid


def comid_create(args: argparse.Namespace) -> None:
    if not args.template and not args.template_dir:
        raise CommandError("no templates supplied")

    def create(tmpl_file: str) -> None:
        data = _read(tmpl_file, "template")
        try:
            comid = Comid.from_json(data)
        except ValueError as e:
            raise CommandError(f"error decoding template from {tmpl_file}: {e}") from e
        try:
            comid.valid()
        except ValueError as e:
            raise CommandError(f"error validating template {tmpl_file}: {e}") from e
        cbor_file = make_file_name(args.output_dir, tmpl_file, ".cbor")
        _write(cbor_file, comid.to_cbor(), "CBOR file")
        print(f'>> created "{cbor_file}" from "{tmpl_file}"')

    _batch(
        files_list(args.template, args.template_dir, ".json"),
        create,
        '>> creation failed for "{item}": {err}',
        "creations(s)",
    )


def _load_comid(path: str) -> Comid:
    data = _read(path, "CoMID")
    try:
        return Comid.from_cbor(data)
    except (ValueError, cbor_utils.CBORDecodeError) as e:
        raise CommandError(f"error decoding CoMID from {path}: {e}") from e


def comid_validate(args: argparse.Namespace) -> None:
    if not args.file and not args.dir:
        raise CommandError("no files supplied")

    items = files_list(args.file, args.dir, ".cbor")
    if not items:
        raise CommandError("no files found")

    errs = 0
    for path in items:
        try:
            comid = _load_comid(path)
            try:
                comid.valid()
            except ValueError as e:
                raise CommandError(f"error validating CoMID {path}: {e}") from e
        except CommandError as e:
            print(f'[invalid] "{path}": {e}')
            errs += 1
            continue
        print(f'[valid] "{path}"')
    if errs:
        raise CommandError(f"{errs}/{len(items)} validation(s) failed")


def print_comid(data: bytes, heading: str, diag: bool = False) -> None:
    """Decode, validate and print a CoMID as JSON (or EDN)."""
    comid = Comid.from_cbor(data)
    text = comid.to_json(indent=2)
    print(heading)
    print(edn_utils.cbor_to_diag(data) if diag else text)


def comid_display(args: argparse.Namespace) -> None:
    if not args.file and not args.dir:
        raise CommandError("no files supplied")

    def display(path: str) -> None:
        print_comid(_read(path, "CoMID"), f">> [{path}]", args.diag)

    _batch(
        files_list(args.file, args.dir, ".cbor"),
        display,
        '>> failed displaying "{item}": {err}',
        "display(s)",
    )


# corim


def corim_create(args: argparse.Namespace) -> None:
    if not args.template:
        raise CommandError("no CoRIM template supplied")
    comid_files = files_list(args.comid, args.comid_dir, ".cbor")
    coswid_files = files_list(args.coswid, args.coswid_dir, ".cbor")
    cots_files = files_list(args.cots, args.cots_dir, ".cbor")
    if not comid_files and not coswid_files and not cots_files:
        raise CommandError("no CoMID, CoSWID or CoTS files found")

    data = _read(args.template, "template")
    try:
        corim = profiles.unmarshal_unsigned_corim_from_json(data)
    except ValueError as e:
        raise CommandError(f"error decoding template from {args.template}: {e}") from e

    profile = corim.get_profile()
    for path in comid_files:
        raw = _read(path, "CoMID")
        try:
            comid = profiles.unmarshal_comid_from_cbor(raw, profile)
            corim.add_comid(comid)
        except (ValueError, cbor_utils.CBORDecodeError) as e:
            raise CommandError(f"error adding CoMID from {path}: {e}") from e
    for path, add, what in [(p, corim.add_coswid, "CoSWID") for p in coswid_files] + [
        (p, corim.add_cots, "CoTS") for p in cots_files
    ]:
        raw = _read(path, what)
        try:
            cbor_utils.decode(raw)
        except cbor_utils.CBORDecodeError as e:
            raise CommandError(f"error loading {what} from {path}: {e}") from e
        add(raw)

    try:
        profiles.validate_unsigned_corim(corim)
    except ValueError as e:
        raise CommandError(f"error validating CoRIM: {e}") from e

    out = args.output or make_file_name("", args.template, ".cbor")
    _write(out, corim.to_cbor(), "CoRIM")
    print(f'>> created "{out}" from "{args.template}"')


def _sign(args: argparse.Namespace, missing: str) -> None:
    if not args.file:
        raise CommandError(missing)
    if not args.key:
        raise CommandError("no key supplied")
    if not args.meta:
        raise CommandError("no CoRIM Meta supplied")

    raw = _read(args.file, "unsigned CoRIM")
    try:
        corim = profiles.unmarshal_unsigned_corim_from_cbor(raw)
    except (ValueError, cbor_utils.CBORDecodeError) as e:
        raise CommandError(f"error decoding unsigned CoRIM from {args.file}: {e}") from e
    try:
        corim.valid()
    except ValueError as e:
        raise CommandError(f"error validating CoRIM: {e}") from e

    meta_data = _read(args.meta, "CoRIM Meta")
    try:
        meta = Meta.from_json(meta_data)
    except ValueError as e:
        raise CommandError(f"error decoding CoRIM Meta from {args.meta}: {e}") from e
    try:
        meta.valid()
    except ValueError as e:
        raise CommandError(f"error validating CoRIM Meta: {e}") from e

    key_data = _read(args.key, "signing key")
    try:
        signer = new_signer_from_jwk(key_data)
        kid = kid_from_jwk(key_data)
    except ValueError as e:
        raise CommandError(f"error loading signing key from {args.key}: {e}") from e

    signed = SignedCorim()
    signed.unsigned_corim = corim
    signed.meta = meta
    try:
        data = signed.sign(signer, kid)
    except ValueError as e:
        raise CommandError(f"error signing CoRIM: {e}") from e

    out = args.output or os.path.join(
        os.path.dirname(args.file), "signed-" + os.path.basename(args.file)
    )
    _write(out, data, "signed CoRIM")
    print(f'>> "{args.file}" signed and saved to "{out}"')


def corim_sign(args: argparse.Namespace) -> None:
    _sign(args, "no CoRIM supplied")


def _load_signed_corim(path: str, what: str = "signed CoRIM") -> SignedCorim:
    data = _read(path, what)
    try:
        return profiles.unmarshal_signed_corim_from_cbor(data)
    except ValueError as e:
        raise CommandError(f"error decoding {what} from {path}: {e}") from e


def corim_verify(args: argparse.Namespace) -> None:
    if not args.file:
        raise CommandError("no CoRIM supplied")
    if not args.key:
        raise CommandError("no key supplied")

    signed = _load_signed_corim(args.file)
    key_data = _read(args.key, "verifying key")
    try:
        verifier = new_verifier_from_jwk(key_data)
    except ValueError as e:
        raise CommandError(f"error loading verifying key from {args.key}: {e}") from e
    try:
        signed.verify(verifier)
    except ValueError as e:
        raise CommandError(f"error verifying {args.file} with key {args.key}: {e}") from e
    print(f'>> "{args.file}" verified')


def corim_display(args: argparse.Namespace) -> None:
    if not args.file:
        raise CommandError("no CoRIM supplied")

    signed = _load_signed_corim(args.file)
    print("Meta:")
    print(json.dumps(signed.meta.to_json_obj(), indent=2))
    print("Corim:")
    print(json.dumps(signed.unsigned_corim.to_json_obj(), indent=2))

    if not args.show_tags:
        return

    print("Tags:")
    for i, (tag, inner) in enumerate(signed.unsigned_corim.iter_tags()):
        heading = f">> [ {i} ]"
        if tag is None:
            print(f">> unmatched CBOR tag: {inner[:3].hex()}")
        elif tag == cbor_utils.COMID_TAG:
            try:
                print_comid(inner, heading)
            except (ValueError, cbor_utils.CBORDecodeError) as e:
                print(f">> skipping malformed CoMID tag at index {i}: {e}")
        elif tag == cbor_utils.COTS_TAG:
            try:
                print_cots(inner, heading)
            except (ValueError, cbor_utils.CBORDecodeError) as e:
                print(f">> skipping malformed CoTS tag at index {i}: {e}")
        else:
            try:
                cbor_utils.decode(inner)
            except (ValueError, cbor_utils.CBORDecodeError) as e:
                print(f">> skipping malformed CoSWID tag at index {i}: {e}")
                continue
            print(heading)
            print(edn_utils.cbor_to_diag(inner))


def corim_extract(args: argparse.Namespace) -> None:
    if not args.file:
        raise CommandError("no CoRIM supplied")

    signed = _load_signed_corim(args.file)
    for i, tag_bytes in enumerate(signed.unsigned_corim.tags):
        # at least the three tag bytes and one byte of content
        if len(tag_bytes) < 4:
            print(f">> skipping malformed tag at index {i}")
            continue
        tag, inner = cbor_utils.split_tag_prefix(tag_bytes)
        if tag is None:
            print(f">> unmatched CBOR tag: {tag_bytes[:3].hex()}")
            continue
        out = os.path.join(args.output_dir, f"{i:06d}-{TAG_NAMES[tag]}.cbor")
        try:
            _write(out, inner, f"tag at index {i}")
        except CommandError as e:
            print(f">> {e}")
            continue
        logger.debug("extracted %s", out)


# cots

TA_EXTENSIONS = ((".der", TA_FORMAT_CERT), (".ta", TA_FORMAT_TA), (".spki", TA_FORMAT_SPKI))


def print_cots(data: bytes, heading: str) -> None:
    """Decode, validate and print CoTS stores as JSON."""
    stores = ConciseTaStores.from_cbor(data)
    text = stores.to_json(indent=2)
    print(heading)
    print(text)


def _load_claims(path: str) -> EatCWTClaim:
    data = _read(path, "template")
    try:
        return EatCWTClaim.from_json(data)
    except ValueError as e:
        raise CommandError(f"error decoding template from {path}: {e}") from e


def _check_cots_create_args(args: argparse.Namespace) -> None:
    if not args.environment:
        raise CommandError("no environment template supplied")
    if sum(1 for x in (args.uuid, args.uuid_str, args.id) if x) > 1:
        raise CommandError("only one of --uuid, --uuid-str and --id can be used at the same time")
    if args.uuid_str:
        try:
            uuid.UUID(args.uuid_str)
        except ValueError as e:
            raise CommandError("--uuid-str does not contain a valid UUID") from e
    if not args.tafile and not args.tas:
        raise CommandError("no TA files or folders supplied")


def cots_create(args: argparse.Namespace) -> None:
    _check_cots_create_args(args)

    ta_files = [
        (path, fmt)
        for ext, fmt in TA_EXTENSIONS
        for path in files_list(args.tafile, args.tas, ext)
    ]
    if not ta_files:
        raise CommandError("no TA files found")
    ca_files = files_list(args.cafile, args.cas, ".der")

    store = ConciseTaStore()
    data = _read(args.environment, "template")
    groups = EnvironmentGroups()
    try:
        groups.load_json_obj(json.loads(data))
    except ValueError as e:
        raise CommandError(f"error decoding template from {args.environment}: {e}") from e
    store.environments = groups

    if args.language:
        store.set_language(args.language)

    if args.id:
        store.set_tag_identity(args.id, args.tag_version)
    elif args.uuid:
        store.set_tag_identity(uuid.uuid4(), args.tag_version)
    elif args.uuid_str:
        store.set_tag_identity(uuid.UUID(args.uuid_str), args.tag_version)

    if args.permclaims:
        store.add_perm_claims(_load_claims(args.permclaims))
    if args.exclclaims:
        store.add_excl_claims(_load_claims(args.exclclaims))
    for purpose in args.purpose or []:
        store.add_purpose(purpose)

    keys = TasAndCas()
    for path, fmt in ta_files:
        keys.add_ta(fmt, _read(path, "TA"))
    for path in ca_files:
        keys.add_ca_cert(_read(path, "CA"))
    store.set_keys(keys)

    try:
        store.valid()
    except ValueError as e:
        raise CommandError(f"error validating CoTS: {e}") from e

    out = args.output or make_file_name("", args.environment, ".cbor")
    _write(out, store.to_cbor(), "CoTS")
    print(f'>> created "{out}"')


def cots_create_corim(args: argparse.Namespace) -> None:
    if not args.template:
        raise CommandError("no CoRIM template supplied")
    if not args.cots:
        raise CommandError("no CoTS supplied")

    data = _read(args.template, "template")
    try:
        corim = profiles.unmarshal_unsigned_corim_from_json(data)
    except ValueError as e:
        raise CommandError(f"error decoding template from {args.template}: {e}") from e

    raw = _read(args.cots, "CoTS")
    try:
        stores = stores_from_cbor(raw)
    except (ValueError, cbor_utils.CBORDecodeError) as e:
        raise CommandError(f"error loading CoTS from {args.cots}: {e}") from e
    try:
        corim.add_cots(stores)
    except ValueError as e:
        raise CommandError(f"error adding CoTS from {args.cots}: {e}") from e

    corim.set_id(str(uuid.uuid4()))
    try:
        profiles.validate_unsigned_corim(corim)
    except ValueError as e:
        raise CommandError(f"error validating CoRIM: {e}") from e

    out = args.output or make_file_name("", args.template, ".cbor")
    _write(out, corim.to_cbor(), "CoRIM")
    print(f'>> created "{out}" from "{args.template}"')


def cots_display(args: argparse.Namespace) -> None:
    if not args.file:
        raise CommandError("no CoTS supplied")

    signed = _load_signed_corim(args.file, "signed CoTS")
    print("Meta:")
    print(json.dumps(signed.meta.to_json_obj(), indent=2))
    print("Cots:")
    print(json.dumps(signed.unsigned_corim.to_json_obj(), indent=2))

    if not args.show_tags:
        return

    print("Tags:")
    for i, tag_bytes in enumerate(signed.unsigned_corim.tags):
        if len(tag_bytes) < 4:
            print(f">> skipping malformed tag at index {i}")
            continue
        tag, inner = cbor_utils.split_tag_prefix(tag_bytes)
        if tag != cbor_utils.COTS_TAG:
            print(f">> unmatched CBOR tag: {tag_bytes[:3].hex()}")
            continue
        try:
            print_cots(inner, f">> [ {i} ]")
        except (ValueError, cbor_utils.CBORDecodeError) as e:
            print(f">> skipping malformed CoTS tag at index {i}: {e}")


def cots_sign(args: argparse.Namespace) -> None:
    _sign(args, "no CoTS supplied")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="cocli",
        description="create, sign, verify and inspect CoMIDs, CoTSs and CoRIMs",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="verbose diagnostics")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # comid
    comid_parser = subparsers.add_parser("comid", help="CoMID manipulation")
    comid_sub = comid_parser.add_subparsers(dest="subcommand")

    create = comid_sub.add_parser("create", help="create CoMIDs from JSON templates")
    create.add_argument("--template", "-t", action="append", help="a CoMID template file (JSON)")
    create.add_argument("--template-dir", "-T", action="append", help="a directory of CoMID templates")
    create.add_argument("--output-dir", "-o", default=".", help="directory for the CBOR files")
    create.set_defaults(func=comid_create)

    validate = comid_sub.add_parser("validate", help="validate CBOR-encoded CoMIDs")
    validate.add_argument("file", nargs="*", help="CoMID files (CBOR)")
    validate.add_argument("--dir", "-d", action="append", help="a directory of CoMIDs")
    validate.set_defaults(func=comid_validate)

    display = comid_sub.add_parser("display", help="display CBOR-encoded CoMIDs")
    display.add_argument("file", nargs="*", help="CoMID files (CBOR)")
    display.add_argument("--dir", "-d", action="append", help="a directory of CoMIDs")
    display.add_argument("--diag", action="store_true", help="print diagnostic notation")
    display.set_defaults(func=comid_display)

    # corim
    corim_parser = subparsers.add_parser("corim", help="CoRIM manipulation")
    corim_sub = corim_parser.add_subparsers(dest="subcommand")

    create = corim_sub.add_parser("create", help="create an unsigned CoRIM")
    create.add_argument("--template", "-t", help="a CoRIM template file (JSON)")
    create.add_argument("--comid", "-m", action="append", help="a CoMID file (CBOR)")
    create.add_argument("--comid-dir", "-M", action="append", help="a directory of CoMIDs")
    create.add_argument("--coswid", "-s", action="append", help="a CoSWID file (CBOR)")
    create.add_argument("--coswid-dir", "-S", action="append", help="a directory of CoSWIDs")
    create.add_argument("--cots", "-c", action="append", help="a CoTS file (CBOR)")
    create.add_argument("--cots-dir", "-C", action="append", help="a directory of CoTSs")
    create.add_argument("--output", "-o", help="name of the generated (unsigned) CoRIM file")
    create.set_defaults(func=corim_create)

    sign = corim_sub.add_parser("sign", help="sign an unsigned CoRIM")
    sign.add_argument("--file", "-f", help="an unsigned CoRIM file (CBOR)")
    sign.add_argument("--meta", "-m", help="CoRIM Meta file (JSON)")
    sign.add_argument("--key", "-k", help="signing key (JWK)")
    sign.add_argument("--output", "-o", help="name of the generated COSE Sign1 file")
    sign.set_defaults(func=corim_sign)

    verify = corim_sub.add_parser("verify", help="verify a signed CoRIM")
    verify.add_argument("--file", "-f", help="a signed CoRIM file (CBOR)")
    verify.add_argument("--key", "-k", help="verification key (JWK)")
    verify.set_defaults(func=corim_verify)

    display = corim_sub.add_parser("display", help="display a signed CoRIM")
    display.add_argument("--file", "-f", help="a signed CoRIM file (CBOR)")
    display.add_argument("--show-tags", "-v", action="store_true", help="display embedded tags")
    display.set_defaults(func=corim_display)

    extract = corim_sub.add_parser("extract", help="extract the tags of a signed CoRIM")
    extract.add_argument("--file", "-f", help="a signed CoRIM file (CBOR)")
    extract.add_argument("--output-dir", "-o", default=".", help="directory for the extracted tags")
    extract.set_defaults(func=corim_extract)

    # cots
    cots_parser = subparsers.add_parser("cots", help="CoTS manipulation")
    cots_sub = cots_parser.add_subparsers(dest="subcommand")

    create = cots_sub.add_parser("create", help="create a CBOR-encoded concise-ta-store-map")
    create.add_argument("--environment", "-e", help="an environment groups template file (JSON)")
    create.add_argument("--permclaims", "-p", help="a permitted claims template file (JSON)")
    create.add_argument("--exclclaims", "-x", help="an excluded claims template file (JSON)")
    create.add_argument("--purpose", "-u", action="append", help="a purpose (e.g. eat, corim)")
    create.add_argument("--tas", "-t", action="append", help="a directory of trust anchors")
    create.add_argument("--tafile", action="append", help="a trust anchor file (.der, .ta, .spki)")
    create.add_argument("--cas", "-c", action="append", help="a directory of DER-encoded CA certificates")
    create.add_argument("--cafile", action="append", help="a DER-encoded CA certificate file")
    create.add_argument("--id", help="a tag ID (exclusive with --uuid and --uuid-str)")
    create.add_argument("--uuid", action="store_true", help="use a random UUID as tag ID")
    create.add_argument("--uuid-str", help="a UUID to use as tag ID")
    create.add_argument("--tag-version", type=int, default=0, help="version of the tag identity")
    create.add_argument("--language", "-l", help="language tag")
    create.add_argument("--output", "-o", help="name of the generated (unsigned) CoTS file")
    create.set_defaults(func=cots_create)

    create_corim = cots_sub.add_parser("createCorim", help="create an unsigned CoRIM holding a CoTS")
    create_corim.add_argument("--template", "-t", help="a CoRIM template file (JSON)")
    create_corim.add_argument("--cots", "-c", help="a CoTS file (CBOR)")
    create_corim.add_argument("--output", "-o", help="name of the generated (unsigned) CoRIM file")
    create_corim.set_defaults(func=cots_create_corim)

    display = cots_sub.add_parser("display", help="display a signed CoTS")
    display.add_argument("--file", "-f", help="a signed CoTS file (CBOR)")
    display.add_argument("--show-tags", "-v", action="store_true", help="display embedded tags")
    display.set_defaults(func=cots_display)

    sign = cots_sub.add_parser("sign", help="sign an unsigned CoTS")
    sign.add_argument("--file", "-f", help="an unsigned CoTS file (CBOR)")
    sign.add_argument("--meta", "-m", help="CoRIM Meta file (JSON)")
    sign.add_argument("--key", "-k", help="signing key (JWK)")
    sign.add_argument("--output", "-o", help="name of the generated COSE Sign1 file")
    sign.set_defaults(func=cots_sign)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if not hasattr(args, "func"):
        parser.print_help()
        return 0

    try:
        args.func(args)
    except CommandError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
