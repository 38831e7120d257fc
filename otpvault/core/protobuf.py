"""
protobuf.py — Minimal protobuf wire-format reader for migration payloads.

Only the two message shapes found in an `otpauth-migration://` export are
understood:

    MigrationPayload { repeated OtpParameters otp_parameters = 1; ... }
    OtpParameters {
        bytes  secret    = 1;
        string name      = 2;
        string issuer    = 3;
        enum   algorithm = 4;   // 1 SHA1, 2 SHA256, 3 SHA512
        enum   digits    = 5;   // 1 six, 2 eight
        enum   type      = 6;   // 1 HOTP, 2 TOTP
        uint64 counter   = 7;
    }

Every other field is skipped according to its wire type. Decoding never
raises past decode_migration_payload(): whatever was parsed before the first
malformed byte is returned.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from otpvault.core.errors import MalformedPayload

logger = logging.getLogger(__name__)

# wire types
VARINT = 0
FIXED64 = 1
LENGTH_DELIMITED = 2
FIXED32 = 5

MAX_VARINT_BYTES = 10
_U64_MASK = 0xFFFFFFFFFFFFFFFF


@dataclass(frozen=True)
class MigrationRecord:
    """One OtpParameters message, enum values still raw integers."""

    secret: bytes
    name: str = ""
    issuer: str = ""
    algorithm: int = 0
    digits: int = 0
    type: int = 0
    counter: int = 0


class WireReader:
    """Sequential reader over a protobuf-encoded byte string."""

    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.data)

    def read_varint(self) -> int:
        """Little-endian base-128 varint, at most 10 bytes, as an unsigned 64-bit int."""
        result = 0
        for i in range(MAX_VARINT_BYTES):
            if self.pos >= len(self.data):
                raise MalformedPayload("truncated varint")
            byte = self.data[self.pos]
            self.pos += 1
            result |= (byte & 0x7F) << (7 * i)
            if not byte & 0x80:
                return result & _U64_MASK
        raise MalformedPayload("varint longer than 10 bytes")

    def read_tag(self) -> Tuple[int, int]:
        """Return (field_number, wire_type)."""
        value = self.read_varint()
        return value >> 3, value & 0x07

    def read_length_delimited(self) -> bytes:
        length = self.read_varint()
        end = self.pos + length
        if end > len(self.data):
            raise MalformedPayload(f"length {length} runs past end of data")
        value = self.data[self.pos:end]
        self.pos = end
        return value

    def skip_field(self, wire_type: int) -> None:
        """
        Advance past one field value.

        Fixed-size skips may move past the end of the data; the next
        at_end() check then stops the walk.

        Raises:
            MalformedPayload: unknown wire type (3, 4, 6, 7), nothing after
                it can be trusted
        """
        if wire_type == VARINT:
            self.read_varint()
        elif wire_type == FIXED64:
            self.pos += 8
        elif wire_type == LENGTH_DELIMITED:
            self.pos += self.read_varint()
        elif wire_type == FIXED32:
            self.pos += 4
        else:
            self.pos = len(self.data)
            raise MalformedPayload(f"unsupported wire type {wire_type}")


def _text(value: bytes) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return ""


def parse_otp_parameters(data: bytes) -> Optional[MigrationRecord]:
    """
    Parse one nested OtpParameters message.

    Returns None when no non-empty secret was found. If the message is cut
    short, the fields read so far still count.
    """
    reader = WireReader(data)
    fields = {}
    secret = b""

    try:
        while not reader.at_end():
            field_number, wire_type = reader.read_tag()
            if field_number in (1, 2, 3) and wire_type == LENGTH_DELIMITED:
                value = reader.read_length_delimited()
                if field_number == 1:
                    secret = value
                else:
                    fields["name" if field_number == 2 else "issuer"] = _text(value)
            elif field_number in (4, 5, 6, 7) and wire_type == VARINT:
                value = reader.read_varint()
                key = ("algorithm", "digits", "type", "counter")[field_number - 4]
                fields[key] = value
            else:
                reader.skip_field(wire_type)
    except MalformedPayload as exc:
        logger.debug("account message truncated at byte %d: %s", reader.pos, exc)

    if not secret:
        return None
    return MigrationRecord(secret=secret, **fields)


def decode_migration_payload(data: bytes) -> List[MigrationRecord]:
    """
    Decode a MigrationPayload into its account records.

    Arguments:
        data: raw bytes (already base64-decoded from the URI)

    Returns:
        list of MigrationRecord, possibly empty; records without a secret are
        dropped and a malformed tail only shortens the list
    """
    reader = WireReader(data)
    records = []

    try:
        while not reader.at_end():
            field_number, wire_type = reader.read_tag()
            if field_number == 1 and wire_type == LENGTH_DELIMITED:
                record = parse_otp_parameters(reader.read_length_delimited())
                if record is not None:
                    records.append(record)
                else:
                    logger.debug("skipping account message without secret")
            else:
                reader.skip_field(wire_type)
    except MalformedPayload as exc:
        logger.debug("migration payload truncated after %d record(s): %s", len(records), exc)

    return records
