"""Whole-document format conversion.

Every conversion goes through a JSON-compatible value: the input document is
decoded into it, then encoded in the target format. Tabular formats map to
and from an array of flat objects.

Text formats (JSON, NDJSON, CSV, YAML, TOML) are always available. Binary
formats load their library on first use and need the ``formats`` extra:
Parquet (pyarrow), Avro (fastavro), MessagePack (msgpack), CBOR (cbor2).
"""

import csv
import importlib
import io
import json
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml
import yaml

from fluxmux.common import DecodeError, UnsupportedFormatError, get_logger

logger = get_logger(__name__)


class CodecFormat(str, Enum):
    JSON = "json"
    NDJSON = "ndjson"
    CSV = "csv"
    YAML = "yaml"
    TOML = "toml"
    PARQUET = "parquet"
    AVRO = "avro"
    MSGPACK = "msgpack"
    CBOR = "cbor"

    @classmethod
    def from_ext(cls, ext: str) -> Optional["CodecFormat"]:
        """Map a file extension or format name (``yml``, ``.json``) to a format."""
        name = ext.lower().lstrip(".")
        if name == "yml":
            name = "yaml"
        try:
            return cls(name)
        except ValueError:
            return None

    @classmethod
    def parse(cls, name: str) -> "CodecFormat":
        fmt = cls.from_ext(name)
        if fmt is None:
            raise UnsupportedFormatError(f"Unknown format: {name!r}", format=name)
        return fmt

    @property
    def is_binary(self) -> bool:
        return self in BINARY_FORMATS


BINARY_FORMATS = frozenset({CodecFormat.PARQUET, CodecFormat.AVRO, CodecFormat.MSGPACK, CodecFormat.CBOR})

# Binary format -> importable module providing it
_BINARY_MODULES = {
    CodecFormat.PARQUET: "pyarrow.parquet",
    CodecFormat.AVRO: "fastavro",
    CodecFormat.MSGPACK: "msgpack",
    CodecFormat.CBOR: "cbor2",
}

# Library errors raised for malformed binary documents
_BINARY_DECODE_ERRORS = (ValueError, TypeError, EOFError, KeyError)


def _require_text_format(fmt: CodecFormat) -> None:
    if fmt.is_binary:
        raise UnsupportedFormatError(
            f"Format {fmt.value!r} is binary; use decode_bytes/encode_bytes", format=fmt.value
        )


def _load_codec(fmt: CodecFormat):
    module_name = _BINARY_MODULES[fmt]
    try:
        return importlib.import_module(module_name)
    except ImportError as e:
        raise UnsupportedFormatError(
            f"{fmt.value} support requires {module_name.split('.')[0]}; install fluxmux[formats]",
            format=fmt.value,
        ) from e


def _csv_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def _json_compatible(value: Any) -> Any:
    """Normalize values binary decoders produce into JSON-compatible ones."""
    if isinstance(value, dict):
        return {str(k): _json_compatible(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_compatible(v) for v in value]
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def decode_text(text: str, fmt: CodecFormat) -> Any:
    """Decode a text document into a JSON-compatible value.

    Raises:
        DecodeError: If the document is malformed for ``fmt``
        UnsupportedFormatError: For binary formats
    """
    _require_text_format(fmt)
    try:
        if fmt is CodecFormat.JSON:
            return json.loads(text)
        if fmt is CodecFormat.NDJSON:
            return [json.loads(line) for line in text.splitlines() if line.strip()]
        if fmt is CodecFormat.YAML:
            return yaml.safe_load(text)
        if fmt is CodecFormat.TOML:
            return toml.loads(text)
        # CSV: header row gives the keys, every cell stays a string
        return [dict(row) for row in csv.DictReader(io.StringIO(text))]
    except (ValueError, yaml.YAMLError, toml.TomlDecodeError, csv.Error) as e:
        raise DecodeError(f"Invalid {fmt.value} document: {e}", format=fmt.value) from e


def _rows(value: Any, fmt: CodecFormat) -> List[Any]:
    if not isinstance(value, list):
        raise DecodeError(f"Expected an array for {fmt.value} export", format=fmt.value)
    return value


def _object_rows(value: Any, fmt: CodecFormat) -> List[Dict[str, Any]]:
    rows = _rows(value, fmt)
    if not rows:
        raise DecodeError(f"No rows found for {fmt.value} export", format=fmt.value)
    if not all(isinstance(row, dict) for row in rows):
        raise DecodeError(f"Expected object rows for {fmt.value} export", format=fmt.value)
    return rows


def encode_value(value: Any, fmt: CodecFormat) -> str:
    """Encode a JSON-compatible value as a text document.

    Raises:
        DecodeError: If the value's shape cannot be represented in ``fmt``
        UnsupportedFormatError: For binary formats
    """
    _require_text_format(fmt)

    if fmt is CodecFormat.JSON:
        return json.dumps(value, indent=2, ensure_ascii=False)

    if fmt is CodecFormat.NDJSON:
        rows = _rows(value, fmt)
        return "".join(json.dumps(row, ensure_ascii=False) + "\n" for row in rows)

    if fmt is CodecFormat.YAML:
        return yaml.safe_dump(value, sort_keys=False, allow_unicode=True)

    if fmt is CodecFormat.TOML:
        if not isinstance(value, dict):
            raise DecodeError("TOML export requires an object at the top level", format=fmt.value)
        return toml.dumps(value)

    rows = _object_rows(value, fmt)
    # Columns come from the first row; later rows contribute only those keys
    headers = list(rows[0].keys())
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_csv_cell(row.get(h)) for h in headers])
    return out.getvalue()


def _string_columns(rows: List[Dict[str, Any]]) -> Dict[str, List[Optional[str]]]:
    """First-row columns as nullable strings, the tabular binary export shape."""
    headers = list(rows[0].keys())
    return {
        h: [None if row.get(h) is None else _csv_cell(row.get(h)) for row in rows]
        for h in headers
    }


def decode_bytes(data: bytes, fmt: CodecFormat) -> Any:
    """Decode a document of any supported format into a JSON-compatible value.

    Parquet and Avro documents decode to an array of row objects.

    Raises:
        DecodeError: If the document is malformed for ``fmt``
        UnsupportedFormatError: If the format's library is not installed
    """
    if not fmt.is_binary:
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Invalid {fmt.value} document: not UTF-8", format=fmt.value) from e
        return decode_text(text, fmt)

    codec = _load_codec(fmt)
    try:
        if fmt is CodecFormat.MSGPACK:
            value = codec.unpackb(data, raw=False)
        elif fmt is CodecFormat.CBOR:
            value = codec.loads(data)
        elif fmt is CodecFormat.AVRO:
            value = list(codec.reader(io.BytesIO(data)))
        else:
            value = codec.read_table(io.BytesIO(data)).to_pylist()
    except _BINARY_DECODE_ERRORS as e:
        raise DecodeError(f"Invalid {fmt.value} document: {e}", format=fmt.value) from e
    return _json_compatible(value)


def encode_bytes(value: Any, fmt: CodecFormat) -> bytes:
    """Encode a JSON-compatible value in any supported format.

    Parquet and Avro take an array of objects and write every first-row
    column as a nullable string, like CSV.

    Raises:
        DecodeError: If the value's shape cannot be represented in ``fmt``
        UnsupportedFormatError: If the format's library is not installed
    """
    if not fmt.is_binary:
        return encode_value(value, fmt).encode("utf-8")

    if fmt is CodecFormat.MSGPACK:
        return _load_codec(fmt).packb(value, use_bin_type=True)
    if fmt is CodecFormat.CBOR:
        return _load_codec(fmt).dumps(value)

    rows = _object_rows(value, fmt)
    columns = _string_columns(rows)
    out = io.BytesIO()

    if fmt is CodecFormat.AVRO:
        fastavro = _load_codec(fmt)
        schema = fastavro.parse_schema({
            "type": "record",
            "name": "row",
            "fields": [{"name": name, "type": ["null", "string"]} for name in columns],
        })
        records = [
            {name: cells[i] for name, cells in columns.items()}
            for i in range(len(rows))
        ]
        fastavro.writer(out, schema, records)
        return out.getvalue()

    parquet = _load_codec(fmt)
    pyarrow = importlib.import_module("pyarrow")
    table = pyarrow.table({name: pyarrow.array(cells, type=pyarrow.string()) for name, cells in columns.items()})
    parquet.write_table(table, out)
    return out.getvalue()


def convert_text(data: str, from_fmt: CodecFormat, to_fmt: CodecFormat) -> str:
    return encode_value(decode_text(data, from_fmt), to_fmt)


def convert_bytes(data: bytes, from_fmt: CodecFormat, to_fmt: CodecFormat) -> bytes:
    return encode_bytes(decode_bytes(data, from_fmt), to_fmt)


def convert(
    input_path: str | Path,
    output_path: str | Path,
    from_fmt: Optional[CodecFormat] = None,
    to_fmt: Optional[CodecFormat] = None,
) -> None:
    """Convert a file from one format to another.

    Formats not given are inferred from the file extensions.

    Raises:
        UnsupportedFormatError: If a format is unknown, cannot be inferred, or
            its library is not installed
        DecodeError: If the input is malformed or the value cannot be
            written in the target format
    """
    input_path, output_path = Path(input_path), Path(output_path)
    src = from_fmt or CodecFormat.from_ext(input_path.suffix)
    dst = to_fmt or CodecFormat.from_ext(output_path.suffix)
    if src is None or dst is None:
        raise UnsupportedFormatError(
            "Cannot infer format from file extension; pass it explicitly",
            input=str(input_path), output=str(output_path),
        )

    output = convert_bytes(input_path.read_bytes(), src, dst)
    output_path.write_bytes(output)

    details: Dict[str, Any] = {
        "input": str(input_path), "output": str(output_path), "from": src.value, "to": dst.value,
        "bytes": len(output),
    }
    logger.info(f"Converted: {details!r}")
