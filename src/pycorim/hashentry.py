"""Hash entries and digest lists.

Algorithm identifiers come from the IANA Named Information Hash Algorithm
Registry. A hash entry is ``[alg-id, digest]`` in CBOR and
``"<alg-name>;<base64-digest>"`` in JSON.
"""

import hashlib
from typing import Any, Union

from . import cbor_utils
from .encoding import b64decode, b64encode

SHA256 = 1
SHA256_128 = 2
SHA256_120 = 3
SHA256_96 = 4
SHA256_64 = 5
SHA256_32 = 6
SHA384 = 7
SHA512 = 8
SHA3_224 = 9
SHA3_256 = 10
SHA3_384 = 11
SHA3_512 = 12

# algorithm id -> (name, digest size in bytes, hashlib constructor)
ALGORITHMS = {
    SHA256: ("sha-256", 32, "sha256"),
    SHA256_128: ("sha-256-128", 16, "sha256"),
    SHA256_120: ("sha-256-120", 15, "sha256"),
    SHA256_96: ("sha-256-96", 12, "sha256"),
    SHA256_64: ("sha-256-64", 8, "sha256"),
    SHA256_32: ("sha-256-32", 4, "sha256"),
    SHA384: ("sha-384", 48, "sha384"),
    SHA512: ("sha-512", 64, "sha512"),
    SHA3_224: ("sha3-224", 28, "sha3_224"),
    SHA3_256: ("sha3-256", 32, "sha3_256"),
    SHA3_384: ("sha3-384", 48, "sha3_384"),
    SHA3_512: ("sha3-512", 64, "sha3_512"),
}

ALGORITHM_IDS = {name: alg_id for alg_id, (name, _, _) in ALGORITHMS.items()}


def algorithm_name(alg_id: int) -> str:
    """Return the registry name for an algorithm id.

    Raises:
        ValueError: If the algorithm is unknown
    """
    if alg_id not in ALGORITHMS:
        raise ValueError(f"unknown hash algorithm {alg_id}")
    return ALGORITHMS[alg_id][0]


def algorithm_id(name: str) -> int:
    """Return the algorithm id for a registry name.

    Raises:
        ValueError: If the name is unknown
    """
    if name not in ALGORITHM_IDS:
        raise ValueError(f"unknown hash algorithm {name!r}")
    return ALGORITHM_IDS[name]


class HashEntry:
    """A digest value paired with the algorithm that produced it."""

    def __init__(self, alg_id: int = 0, digest: bytes = b""):
        self.alg_id = alg_id
        self.digest = bytes(digest)

    @classmethod
    def compute(cls, alg_id: int, data: bytes) -> "HashEntry":
        """Hash data with the given algorithm, truncating where required."""
        if alg_id not in ALGORITHMS:
            raise ValueError(f"unknown hash algorithm {alg_id}")
        _, size, constructor = ALGORITHMS[alg_id]
        return cls(alg_id, hashlib.new(constructor, data).digest()[:size])

    @classmethod
    def from_string(cls, text: str) -> "HashEntry":
        """Parse ``"<alg-name>;<base64>"``.

        Raises:
            ValueError: If the format, algorithm or base64 is invalid
        """
        if not isinstance(text, str):
            raise ValueError(f"expecting string, got {type(text).__name__}")
        sep = ";" if ";" in text else ":"
        name, found, value = text.partition(sep)
        if not found:
            raise ValueError(f"malformed hash entry {text!r}: expecting \"<alg>;<base64>\"")
        return cls(algorithm_id(name), b64decode(value))

    def valid(self) -> None:
        if self.alg_id not in ALGORITHMS:
            raise ValueError(f"unknown hash algorithm {self.alg_id}")
        want = ALGORITHMS[self.alg_id][1]
        if len(self.digest) != want:
            raise ValueError(
                f"length mismatch for hash algorithm {self.alg_id}: "
                f"want {want} bytes, got {len(self.digest)}"
            )

    def to_cbor_obj(self) -> list[Any]:
        return [self.alg_id, self.digest]

    def load_cbor_obj(self, obj: Any) -> None:
        if not isinstance(obj, list) or len(obj) != 2:
            raise ValueError("expecting hash entry array of two elements")
        alg_id, digest = obj
        if not cbor_utils.is_int(alg_id) or not isinstance(digest, bytes):
            raise ValueError("expecting hash entry [uint, bytes]")
        self.alg_id, self.digest = alg_id, digest

    @classmethod
    def from_cbor_obj(cls, obj: Any) -> "HashEntry":
        ret = cls()
        ret.load_cbor_obj(obj)
        return ret

    def to_json_obj(self) -> str:
        return str(self)

    def load_json_obj(self, obj: Any) -> None:
        parsed = HashEntry.from_string(obj)
        self.alg_id, self.digest = parsed.alg_id, parsed.digest

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HashEntry):
            return NotImplemented
        return self.alg_id == other.alg_id and self.digest == other.digest

    def __hash__(self) -> int:
        return hash((self.alg_id, self.digest))

    def __str__(self) -> str:
        name = ALGORITHMS[self.alg_id][0] if self.alg_id in ALGORITHMS else str(self.alg_id)
        return f"{name};{b64encode(self.digest)}"

    def __repr__(self) -> str:
        return f"HashEntry({self.alg_id}, {self.digest.hex()!r})"


class Digests(list):
    """Ordered sequence of hash entries."""

    def add(self, alg_id: int, digest: bytes) -> "Digests":
        self.append(HashEntry(alg_id, digest))
        return self

    def valid(self) -> None:
        if len(self) == 0:
            raise ValueError("empty digests")
        for i, entry in enumerate(self):
            try:
                entry.valid()
            except ValueError as e:
                raise ValueError(f"digest at index {i}: {e}") from e

    def matches(self, reference: "Digests") -> bool:
        """Tell whether every reference entry has an equal entry here."""
        return all(entry in self for entry in reference)

    def set_equal(self, other: "Digests") -> bool:
        return set(self) == set(other)

    def to_cbor_obj(self) -> list[Any]:
        return [entry.to_cbor_obj() for entry in self]

    def load_cbor_obj(self, obj: Any) -> None:
        if not isinstance(obj, list):
            raise ValueError(f"expecting digests array, got {type(obj).__name__}")
        self[:] = [HashEntry.from_cbor_obj(item) for item in obj]

    def to_json_obj(self) -> list[str]:
        return [str(entry) for entry in self]

    def load_json_obj(self, obj: Any) -> None:
        if not isinstance(obj, list):
            raise ValueError(f"expecting digests array, got {type(obj).__name__}")
        self[:] = [HashEntry.from_string(item) for item in obj]

    @classmethod
    def of(cls, *entries: Union[HashEntry, str]) -> "Digests":
        """Build a digest list from entries or their string forms."""
        return cls(
            entry if isinstance(entry, HashEntry) else HashEntry.from_string(entry)
            for entry in entries
        )
