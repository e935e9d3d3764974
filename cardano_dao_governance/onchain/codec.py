"""
Decoding of UTxO datums and byte preserving datum updates.

Validators compare continuing datums field by field against the spent one, so an update must
keep the original encoding of every untouched field. DatumRecord keeps the raw bytes of each
field and only re-encodes the field that changes.
"""
import io
from dataclasses import dataclass
from typing import Generic, List, Optional, Tuple, Type, TypeVar, Union

import cbor2
import pycardano
from pycardano import IndefiniteList, PlutusData, RawCBOR, RawPlutusData
from pycardano.exception import DeserializeException, InvalidDataException
from pycardano.serialization import default_encoder

T = TypeVar("T", bound=PlutusData)

_INDEFINITE_ARRAY = 0xFF


@dataclass(frozen=True)
class DatumRecord:
    """
    Constructor datum split into its header and the raw encoding of each field
    """

    header: bytes
    fields: Tuple[bytes, ...]
    indefinite: bool

    @classmethod
    def from_cbor(cls, raw: bytes) -> "DatumRecord":
        header_end, indefinite, count = _read_constructor_header(raw)
        stream = io.BytesIO(raw)
        stream.seek(header_end)
        decoder = cbor2.CBORDecoder(stream)
        fields = []
        while True:
            position = stream.tell()
            if indefinite:
                if position >= len(raw):
                    raise ValueError("Unterminated constructor fields")
                if raw[position] == _INDEFINITE_ARRAY:
                    stream.seek(position + 1)
                    break
            elif len(fields) == count:
                break
            decoder.decode()
            fields.append(raw[position : stream.tell()])
        if stream.tell() != len(raw):
            raise ValueError("Trailing bytes after datum")
        return cls(header=raw[:header_end], fields=tuple(fields), indefinite=indefinite)

    def to_cbor(self) -> bytes:
        return self.header + b"".join(self.fields) + (b"\xff" if self.indefinite else b"")

    def field(self, index: int) -> bytes:
        return self.fields[index]

    def with_field(self, index: int, value) -> "DatumRecord":
        """
        New record in which only the field at index is replaced by the encoding of value
        """
        if not 0 <= index < len(self.fields):
            raise IndexError(f"Datum has no field {index}")
        fields = list(self.fields)
        fields[index] = encode_plutus(value)
        return DatumRecord(self.header, tuple(fields), self.indefinite)


def _read_argument(raw: bytes, position: int) -> Tuple[int, int]:
    """
    Returns the argument of the CBOR head at position and the position after the head
    """
    additional = raw[position] & 0x1F
    if additional < 24:
        return additional, position + 1
    if additional > 27:
        raise ValueError(f"Unexpected CBOR head {raw[position]:#x}")
    size = 1 << (additional - 24)
    end = position + 1 + size
    if end > len(raw):
        raise ValueError("Truncated CBOR head")
    return int.from_bytes(raw[position + 1 : end], "big"), end


def _read_constructor_header(raw: bytes) -> Tuple[int, bool, int]:
    if not raw:
        raise ValueError("Empty datum")
    if raw[0] >> 5 != 6:
        raise ValueError("Datum is not a tagged constructor")
    tag, position = _read_argument(raw, 0)
    if not (121 <= tag <= 127 or 1280 <= tag <= 1400):
        raise ValueError(f"Unsupported constructor tag {tag}")
    if position >= len(raw) or raw[position] >> 5 != 4:
        raise ValueError("Constructor fields are not an array")
    if raw[position] == 0x9F:
        return position + 1, True, -1
    count, position = _read_argument(raw, position)
    return position, False, count


def constructor_id(tag: int) -> int:
    if 121 <= tag <= 127:
        return tag - 121
    return tag - 1280 + 7


def _plutus_shape(value):
    if isinstance(value, PlutusData):
        return value
    if isinstance(value, (list, tuple)):
        items = [_plutus_shape(v) for v in value]
        return IndefiniteList(items) if items else []
    if isinstance(value, dict):
        return {_plutus_shape(k): _plutus_shape(v) for k, v in value.items()}
    return value


def encode_plutus(value) -> bytes:
    """
    Plutus encoding of a datum, a field or a primitive (int, bytes, list, dict)
    """
    if isinstance(value, PlutusData):
        return value.to_cbor()
    if isinstance(value, RawCBOR):
        return value.cbor
    if isinstance(value, RawPlutusData):
        return value.to_cbor()
    return cbor2.dumps(_plutus_shape(value), default=default_encoder)


def rebuild_with_field(original: bytes, field_index: int, new_value) -> bytes:
    return DatumRecord.from_cbor(original).with_field(field_index, new_value).to_cbor()


@dataclass(frozen=True)
class Decoded(Generic[T]):
    value: T
    raw: bytes

    @property
    def record(self) -> DatumRecord:
        return DatumRecord.from_cbor(self.raw)


@dataclass(frozen=True)
class Malformed:
    """
    The bytes are not valid CBOR plutus data
    """

    reason: str


@dataclass(frozen=True)
class WrongShape:
    """
    Valid plutus data of a different kind than expected
    """

    reason: str


DecodeResult = Union[Decoded, Malformed, WrongShape]


def datum_cbor(output: pycardano.TransactionOutput) -> Optional[bytes]:
    """
    Raw bytes of the inline datum of an output, None if it has none
    """
    datum = output.datum
    if datum is None:
        return None
    if isinstance(datum, RawCBOR):
        return datum.cbor
    if isinstance(datum, (PlutusData, RawPlutusData)):
        return datum.to_cbor()
    if isinstance(datum, bytes):
        return datum
    return cbor2.dumps(datum, default=default_encoder)


def decode(datum_type: Type[T], raw: Optional[bytes]) -> DecodeResult:
    if raw is None:
        return WrongShape("Output carries no inline datum")
    if raw[:1] == b"\xff":
        return Malformed("Invalid CBOR: break code outside of an indefinite item")
    try:
        primitive = cbor2.loads(raw)
    except (cbor2.CBORDecodeError, ValueError, EOFError) as e:
        return Malformed(f"Invalid CBOR: {e}")
    if not isinstance(primitive, cbor2.CBORTag):
        return WrongShape("Datum is not a constructor")
    try:
        _read_constructor_header(raw)
    except ValueError as e:
        return WrongShape(str(e))
    try:
        DatumRecord.from_cbor(raw)
    except (cbor2.CBORDecodeError, ValueError, EOFError) as e:
        return Malformed(f"Invalid CBOR: {e}")
    if constructor_id(primitive.tag) != datum_type.CONSTR_ID:
        return WrongShape(
            f"Constructor {constructor_id(primitive.tag)} is not {datum_type.__name__}"
        )
    try:
        value = datum_type.from_primitive(primitive)
        value.validate()
    except (
        DeserializeException,
        InvalidDataException,
        TypeError,
        ValueError,
        KeyError,
        IndexError,
    ) as e:
        return WrongShape(f"Fields do not match {datum_type.__name__}: {e}")
    return Decoded(value, raw)


def decode_output(datum_type: Type[T], output: pycardano.TransactionOutput):
    return decode(datum_type, datum_cbor(output))


def fields_of(raw: bytes) -> List[bytes]:
    return list(DatumRecord.from_cbor(raw).fields)
