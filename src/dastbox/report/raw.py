"""Read raw scanner output from disk."""

from pathlib import Path

from dastbox.errors import ParseError


def load_raw_output(path: Path) -> str:
    """Read a scanner report file; ParseError when it cannot be read."""
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ParseError(f"Cannot read scanner output {path}: {exc}") from exc
    return decode_output(data, source=str(path))


def decode_output(data: bytes, source: str = "scanner output") -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(f"{source} is not valid UTF-8: {exc}") from exc
