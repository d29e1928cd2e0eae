"""Phar container writer and manifest reader.

Layout of an uncompressed, signed phar:

- stub, ending with ``__HALT_COMPILER(); ?>\\r\\n``
- manifest: length, entry count, API version, flags, alias, metadata, entries
- entry contents in manifest order
- signature: digest, algorithm flag, ``GBMB``

All integers are little-endian unsigned 32-bit values except the API version,
which is two bytes, most significant first.
"""

from dataclasses import dataclass
import enum
import hashlib
import logging
import pathlib
import re
import struct
import time
import zlib


class PharError(RuntimeError):
    """Raised on archive misuse or malformed archive bytes."""


class SignatureAlgorithm(enum.IntEnum):
    MD5 = 0x0001
    SHA1 = 0x0002
    SHA256 = 0x0003
    SHA512 = 0x0004

    @classmethod
    def from_name(cls, name: str) -> "SignatureAlgorithm":
        try:
            return cls[name.upper()]
        except KeyError as e:
            raise PharError(f"Unknown signature algorithm: {name!r}") from e

    def digest(self, data: bytes) -> bytes:
        return hashlib.new(self.name.lower(), data).digest()

    @property
    def digest_size(self) -> int:
        return hashlib.new(self.name.lower()).digest_size


class ArchiveState(enum.Enum):
    CREATED = "created"
    BUFFERING = "buffering"
    FINALIZED = "finalized"
    CLOSED = "closed"


PHAR_API_VERSION: bytes = b"\x11\x10"
PHAR_HDR_SIGNATURE: int = 0x00010000
PHAR_ENT_PERM_DEF_FILE: int = 0o666
SIGNATURE_MAGIC: bytes = b"GBMB"
HALT_TOKEN: bytes = b"__HALT_COMPILER();"
STUB_SUFFIX: bytes = b" ?>\r\n"

STUB_END_RE: re.Pattern[bytes] = re.compile(rb"__HALT_COMPILER\(\);(?: +\?>)?\r?\n")


@dataclass(frozen=True, slots=True)
class ArchiveEntry:
    """A file stored in the archive.

    :ivar path: Forward-slash path relative to the archive root.
    :ivar content: File bytes.
    """

    path: str
    content: bytes


@dataclass(frozen=True, slots=True)
class PharManifestEntry:
    """Parsed manifest record of one file.

    :ivar path: Stored file name.
    :ivar size: Uncompressed size.
    :ivar timestamp: Modification time in epoch seconds.
    :ivar timestamp_offset: Byte offset of the timestamp field.
    :ivar compressed_size: Stored size.
    :ivar crc32: CRC32 of the uncompressed content.
    :ivar flags: Per-file flags (permission bits and compression).
    :ivar data_offset: Byte offset of the stored content.
    """

    path: str
    size: int
    timestamp: int
    timestamp_offset: int
    compressed_size: int
    crc32: int
    flags: int
    data_offset: int


@dataclass(frozen=True, slots=True)
class PharManifest:
    """Parsed archive manifest.

    :ivar stub: Stub bytes including the halt marker line.
    :ivar alias: Archive alias.
    :ivar flags: Global flags.
    :ivar entries: File records in manifest order.
    :ivar data_end: Offset where file contents end (start of the signature).
    """

    stub: bytes
    alias: str
    flags: int
    entries: tuple[PharManifestEntry, ...]
    data_end: int


def _u32(value: int) -> bytes:
    return struct.pack("<I", value & 0xFFFFFFFF)


def _sized(value: bytes) -> bytes:
    return _u32(len(value)) + value


def _read_u32(data: bytes, pos: int) -> int:
    if pos + 4 > len(data):
        raise PharError(f"Truncated phar: expected 4 bytes at offset {pos}")
    return struct.unpack_from("<I", data, pos)[0]


class PharArchive:
    """Builds a phar file on disk.

    Entries added while buffering are kept in memory and written by
    :meth:`stop_buffering`. Entries added afterwards are written immediately.
    """

    def __init__(
        self,
        path: pathlib.Path,
        *,
        alias: str,
        signature: SignatureAlgorithm = SignatureAlgorithm.SHA1,
        logger: logging.Logger | None = None,
    ) -> None:
        self.path: pathlib.Path = path
        self.alias: str = alias
        self.signature: SignatureAlgorithm = signature
        self.state: ArchiveState = ArchiveState.CREATED
        self._entries: dict[str, ArchiveEntry] = {}
        self._timestamps: dict[str, int] = {}
        self._stub: bytes = b"<?php " + HALT_TOKEN
        self._logger: logging.Logger = logger if logger is not None else logging.getLogger("phar_compiler")

    @property
    def entries(self) -> list[ArchiveEntry]:
        return list(self._entries.values())

    def start_buffering(self) -> None:
        if self.state is not ArchiveState.CREATED:
            raise PharError(f"Cannot start buffering in state {self.state.value}")
        self.state = ArchiveState.BUFFERING

    def stop_buffering(self) -> None:
        if self.state is not ArchiveState.BUFFERING:
            raise PharError(f"Cannot stop buffering in state {self.state.value}")
        self.state = ArchiveState.FINALIZED
        self._flush()

    def set_stub(self, stub: str | bytes) -> None:
        """Set the bootstrap stub.

        :param stub: Stub source; must end with ``__HALT_COMPILER();``.
        :raises PharError: If the halt marker is missing.
        """

        self._require_open()
        raw: bytes = stub.encode("utf-8") if isinstance(stub, str) else stub
        raw = raw.rstrip()
        if raw.endswith(b"?>") is True:
            raw = raw[:-2].rstrip()
        if raw.endswith(HALT_TOKEN) is False:
            raise PharError("Illegal stub: it must end with __HALT_COMPILER();")
        self._stub = raw
        if self.state is ArchiveState.FINALIZED:
            self._flush()

    def add_from_string(self, path: str, content: bytes) -> None:
        """Add (or replace) a file.

        :param path: Forward-slash path inside the archive.
        :param content: File bytes.
        :raises PharError: If the archive is closed or the path is invalid.
        """

        self._require_open()
        if path == "" or path.startswith("/") is True or "\\" in path:
            raise PharError(f"Invalid archive path: {path!r}")

        self._entries.pop(path, None)
        self._entries[path] = ArchiveEntry(path=path, content=content)
        self._timestamps[path] = int(time.time())
        if self._logger.isEnabledFor(logging.DEBUG) is True:
            self._logger.debug(f"phar-compiler: + {path} ({len(content)} bytes)")
        if self.state is ArchiveState.FINALIZED:
            self._flush()

    def close(self) -> None:
        """Release the archive; it can no longer be modified."""

        if self.state is ArchiveState.CREATED or self.state is ArchiveState.BUFFERING:
            self._flush()
        self.state = ArchiveState.CLOSED

    def __enter__(self) -> "PharArchive":
        return self

    def __exit__(self, *exc: object) -> None:
        if self.state is not ArchiveState.CLOSED:
            self.close()

    def _require_open(self) -> None:
        if self.state is ArchiveState.CLOSED:
            raise PharError(f"Archive {self.path} is closed")

    def _flush(self) -> None:
        self.path.write_bytes(self.to_bytes())

    def to_bytes(self) -> bytes:
        """Serialize the archive."""

        records: list[bytes] = []
        for entry in self._entries.values():
            records.append(
                _sized(entry.path.encode("utf-8"))
                + _u32(len(entry.content))
                + _u32(self._timestamps[entry.path])
                + _u32(len(entry.content))
                + _u32(zlib.crc32(entry.content))
                + _u32(PHAR_ENT_PERM_DEF_FILE)
                + _u32(0)
            )

        manifest: bytes = (
            _u32(len(self._entries))
            + PHAR_API_VERSION
            + _u32(PHAR_HDR_SIGNATURE)
            + _sized(self.alias.encode("utf-8"))
            + _u32(0)
            + b"".join(records)
        )

        blob: bytes = self._stub + STUB_SUFFIX + _sized(manifest)
        blob += b"".join(e.content for e in self._entries.values())
        return blob + sign(blob, self.signature)


def sign(blob: bytes, algorithm: SignatureAlgorithm) -> bytes:
    """Build the signature trailer for ``blob``."""

    return algorithm.digest(blob) + _u32(int(algorithm)) + SIGNATURE_MAGIC


def read_manifest(data: bytes) -> PharManifest:
    """Parse the manifest of a phar.

    :param data: Archive bytes.
    :returns: Parsed manifest.
    :raises PharError: If the bytes are not a well-formed phar.
    """

    m = STUB_END_RE.search(data)
    if m is None:
        raise PharError("Could not detect the stub's end in the phar")

    pos: int = m.end()
    stub: bytes = data[0:pos]
    manifest_end: int = pos + 4 + _read_u32(data, pos)
    pos += 4
    num_files: int = _read_u32(data, pos)
    pos += 4
    # API version
    pos += 2
    flags: int = _read_u32(data, pos)
    pos += 4
    alias_len: int = _read_u32(data, pos)
    alias: str = data[pos + 4 : pos + 4 + alias_len].decode("utf-8", "replace")
    pos += 4 + alias_len
    pos += 4 + _read_u32(data, pos)

    raw: list[tuple[str, int, int, int, int, int, int]] = []
    while pos < manifest_end:
        name_len: int = _read_u32(data, pos)
        name: str = data[pos + 4 : pos + 4 + name_len].decode("utf-8", "replace")
        pos += 4 + name_len
        size: int = _read_u32(data, pos)
        ts_offset: int = pos + 4
        timestamp: int = _read_u32(data, ts_offset)
        compressed: int = _read_u32(data, pos + 8)
        crc: int = _read_u32(data, pos + 12)
        entry_flags: int = _read_u32(data, pos + 16)
        pos += 20
        pos += 4 + _read_u32(data, pos)
        raw.append((name, size, timestamp, ts_offset, compressed, crc, entry_flags))

    if len(raw) != num_files or pos != manifest_end:
        raise PharError("All files were not processed, something must have gone wrong")

    entries: list[PharManifestEntry] = []
    offset: int = manifest_end
    for name, size, timestamp, ts_offset, compressed, crc, entry_flags in raw:
        entries.append(
            PharManifestEntry(
                path=name,
                size=size,
                timestamp=timestamp,
                timestamp_offset=ts_offset,
                compressed_size=compressed,
                crc32=crc,
                flags=entry_flags,
                data_offset=offset,
            )
        )
        offset += compressed

    if offset > len(data):
        raise PharError(f"Truncated phar: contents end at {offset}, file is {len(data)} bytes")

    return PharManifest(
        stub=stub,
        alias=alias,
        flags=flags,
        entries=tuple(entries),
        data_end=offset,
    )


def read_entries(data: bytes) -> list[ArchiveEntry]:
    """Read every stored file of an uncompressed phar.

    :param data: Archive bytes.
    :returns: Entries in manifest order.
    :raises PharError: If the archive is malformed or a CRC does not match.
    """

    manifest: PharManifest = read_manifest(data)
    out: list[ArchiveEntry] = []
    for e in manifest.entries:
        content: bytes = data[e.data_offset : e.data_offset + e.compressed_size]
        if zlib.crc32(content) != e.crc32:
            raise PharError(f"CRC32 mismatch for {e.path}")
        out.append(ArchiveEntry(path=e.path, content=content))
    return out


def verify_signature(data: bytes) -> SignatureAlgorithm:
    """Check the signature trailer of a phar.

    :param data: Archive bytes.
    :returns: The algorithm the archive is signed with.
    :raises PharError: If the signature is missing or does not match.
    """

    if data.endswith(SIGNATURE_MAGIC) is False or len(data) < 8:
        raise PharError("Phar has no signature")
    flag: int = _read_u32(data, len(data) - 8)
    try:
        algorithm: SignatureAlgorithm = SignatureAlgorithm(flag)
    except ValueError as e:
        raise PharError(f"Unsupported signature flag: {flag:#x}") from e

    sig_start: int = len(data) - 8 - algorithm.digest_size
    if sig_start < 0 or algorithm.digest(data[0:sig_start]) != data[sig_start : len(data) - 8]:
        raise PharError(f"Phar {algorithm.name} signature is broken")
    return algorithm
