"""Wire-level constants for the Lua-on-Arduino serial protocol."""

from __future__ import annotations

from enum import StrEnum
from typing import Final

from construct import Float32b, Float64b, Int32sb, Int32ub, Int64sb  # type: ignore

# SLIP framing (RFC 1055)
SLIP_END: Final[int] = 0xC0
SLIP_ESC: Final[int] = 0xDB
SLIP_ESC_END: Final[int] = 0xDC
SLIP_ESC_ESC: Final[int] = 0xDD

# COBS framing
COBS_DELIMITER: Final[bytes] = bytes([0])

# Request correlation
MESSAGE_ID_MIN: Final[int] = 0
MESSAGE_ID_MAX: Final[int] = 65535

# OSC message layout
OSC_ALIGNMENT: Final[int] = 4
OSC_ADDRESS_PREFIX: Final[str] = "/"
OSC_TYPETAG_PREFIX: Final[str] = ","
INT32_MIN: Final[int] = -(2**31)
INT32_MAX: Final[int] = 2**31 - 1
INT64_MIN: Final[int] = -(2**63)
INT64_MAX: Final[int] = 2**63 - 1

INT32_STRUCT: Final = Int32sb
INT64_STRUCT: Final = Int64sb
FLOAT32_STRUCT: Final = Float32b
FLOAT64_STRUCT: Final = Float64b
BLOB_SIZE_STRUCT: Final = Int32ub


class TypeTag(StrEnum):
    INT32 = "i"
    INT64 = "h"
    FLOAT32 = "f"
    FLOAT64 = "d"
    STRING = "s"
    BLOB = "b"
    TRUE = "T"
    FALSE = "F"
    NIL = "N"


class Address(StrEnum):
    """Addresses and address patterns reserved by the protocol."""

    RESPONSE = "/response/:outcome"
    RAW_RESPONSE = "/raw/response/:outcome"
    RAW_ANY = "/raw/**"
    LOG = "/log/:level"
    RAW_LOG = "/raw/log/:level"
    RAW_DATA = "/raw-data"

    READ_FILE = "/read-file"
    WRITE_FILE = "/write-file"
    DELETE_FILE = "/delete-file"
    CREATE_DIR = "/create-dir"
    DELETE_DIR = "/delete-dir"
    LIST_DIR = "/list-dir"


class Outcome(StrEnum):
    SUCCESS = "success"


__all__ = [
    "Address",
    "BLOB_SIZE_STRUCT",
    "COBS_DELIMITER",
    "FLOAT32_STRUCT",
    "FLOAT64_STRUCT",
    "INT32_MAX",
    "INT32_MIN",
    "INT32_STRUCT",
    "INT64_MAX",
    "INT64_MIN",
    "INT64_STRUCT",
    "MESSAGE_ID_MAX",
    "MESSAGE_ID_MIN",
    "OSC_ADDRESS_PREFIX",
    "OSC_ALIGNMENT",
    "OSC_TYPETAG_PREFIX",
    "Outcome",
    "SLIP_END",
    "SLIP_ESC",
    "SLIP_ESC_END",
    "SLIP_ESC_ESC",
    "TypeTag",
]
