"""Reproducible phar timestamps.

Phar manifests record the time each file was added. Rewriting all of them to
the commit date and re-signing makes two builds of the same commit produce
identical bytes.
"""

import datetime
import pathlib
import struct

from phar_compiler.phar import PharError, PharManifest, SignatureAlgorithm, read_manifest, sign


class PharTimestamps:
    """Rewrites the timestamps of a finished phar.

    :ivar contents: Archive bytes, updated in place.
    """

    def __init__(self, contents: bytes) -> None:
        self.contents: bytearray = bytearray(contents)

    @classmethod
    def from_path(cls, path: pathlib.Path) -> "PharTimestamps":
        return cls(path.read_bytes())

    def update_timestamps(self, timestamp: datetime.datetime | int) -> None:
        """Set every manifest entry's timestamp.

        :param timestamp: Aware datetime or epoch seconds.
        :raises PharError: If the manifest cannot be walked.
        """

        if isinstance(timestamp, datetime.datetime):
            if timestamp.tzinfo is None:
                raise PharError("Naive datetimes are ambiguous; pass a timezone aware value.")
            timestamp = int(timestamp.timestamp())

        manifest: PharManifest = read_manifest(bytes(self.contents))
        packed: bytes = struct.pack("<I", timestamp & 0xFFFFFFFF)
        for entry in manifest.entries:
            self.contents[entry.timestamp_offset : entry.timestamp_offset + 4] = packed

    def save(self, path: pathlib.Path, algorithm: SignatureAlgorithm) -> int:
        """Re-sign the archive and write it.

        :param path: Destination file.
        :param algorithm: Signature algorithm.
        :returns: Number of bytes written.
        """

        data_end: int = read_manifest(bytes(self.contents)).data_end
        body: bytes = bytes(self.contents[0:data_end])
        self.contents = bytearray(body + sign(body, algorithm))
        return path.write_bytes(bytes(self.contents))
