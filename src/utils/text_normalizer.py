"""Text normalization applied to every extracted document before chunking.

Two concerns live here:

1. **Canonical text** -- NFKC Unicode normalization, carriage-return and
   control-character removal (newline and tab survive), and collapsing of
   blank-line runs so that the chunker's paragraph separator (``"\\n\\n"``)
   is meaningful.  Case is preserved: embeddings are case-sensitive and
   lowercasing hurts proper-noun recall.

2. **Encoding detection** -- raw bytes from text-like files are decoded
   with the charset chardet detects, so Shift_JIS / cp1252 files do not
   turn into mojibake.
"""

import re
import unicodedata

import chardet

# Cc (control) characters other than \n and \t, plus zero-width marks
# that survive NFKC.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f\u200b\ufeff]")
_BLANK_RUNS = re.compile(r"\n{3,}")


def normalize_text(text: str) -> str:
    """Return *text* in canonical form for chunking and embedding.

    Args:
        text: Raw extracted text.

    Returns:
        NFKC-normalized text without ``\\r`` or control characters, with
        runs of three or more newlines collapsed to two, stripped of
        leading/trailing whitespace.
    """
    if not isinstance(text, str):
        text = str(text)

    normalized = unicodedata.normalize("NFKC", text)
    normalized = normalized.replace("\r", "")
    normalized = _CONTROL_CHARS.sub("", normalized)
    normalized = _BLANK_RUNS.sub("\n\n", normalized)
    return normalized.strip()


def decode_bytes(raw: bytes) -> str:
    """Decode *raw* using the detected charset, falling back to UTF-8.

    Undecodable bytes are replaced rather than raised: a handful of broken
    characters should not cost the user an entire document.
    """
    if not raw:
        return ""
    if raw.startswith(b"\xef\xbb\xbf"):
        return raw[3:].decode("utf-8", errors="replace")

    detected = chardet.detect(raw)
    encoding = detected.get("encoding") or "utf-8"
    try:
        return raw.decode(encoding, errors="replace")
    except LookupError:
        # chardet can report codec names Python does not ship.
        return raw.decode("utf-8", errors="replace")
