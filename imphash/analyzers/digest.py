"""
Import Digest Builder
======================

Derives the three fields of an :class:`ImpHashResult` from a canonical
import string:

1. ``ImpHash``   -- MD5 of the canonical string's bytes, lowercase hex.
2. ``ImpString`` -- the canonical string right-padded with spaces to at
   least 4096 bytes.  Longer strings are left untouched.
3. ``ImpFuzzy``  -- ssdeep (context-triggered piecewise hash) of the padded
   string.  Padding gives ssdeep enough input to choose a stable block
   size, so near-identical import sets produce comparable digests.

The exact digest is authoritative.  If ssdeep is not installed, or fails,
``ImpFuzzy`` is empty and a warning is logged; the other two fields are
still returned.

References:
    - Mandiant. (2014). Tracking Malware with Import Hashing.
    - Kornblum, J. (2006). Identifying almost identical files using
      context triggered piecewise hashing. Digital Investigation, 3, 91-97.
    - JPCERT/CC. (2016). impfuzzy: Classifying malware with fuzzy hashing
      of import tables.
"""

from __future__ import annotations

import hashlib

from shared.logger import PhantomLogger

from imphash.core.models import ImpHashResult

# ---------------------------------------------------------------------------
# Optional ssdeep import
# ---------------------------------------------------------------------------
_SSDEEP_AVAILABLE: bool = False
try:
    import ssdeep
    _SSDEEP_AVAILABLE = True
except ImportError:
    ssdeep = None  # type: ignore[assignment]

PAD_LENGTH: int = 4096
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


def pad_canonical(raw: bytes, length: int = PAD_LENGTH) -> bytes:
    """Append spaces until *raw* is at least *length* bytes long."""
    if len(raw) >= length:
        return raw
    return raw + b" " * (length - len(raw))


class DigestBuilder:
    """Build :class:`ImpHashResult` records from canonical strings.

    Args:
        fuzzy: Compute the ssdeep digest.  When ``False`` ``ImpFuzzy`` is
               always empty.
        logger: Logger for fuzzy-hash degradation warnings.
    """

    def __init__(self, fuzzy: bool = True, logger: PhantomLogger | None = None) -> None:
        self._fuzzy = fuzzy
        self._logger = logger or PhantomLogger("imphash.digest")
        if fuzzy and not _SSDEEP_AVAILABLE:
            self._logger.warning("ssdeep is not installed; ImpFuzzy will be empty")

    @property
    def fuzzy_available(self) -> bool:
        return self._fuzzy and _SSDEEP_AVAILABLE

    def build(self, canonical: str) -> ImpHashResult:
        """Digest a canonical import string.

        Args:
            canonical: Comma-joined canonical import string (may be empty).

        Returns:
            The immutable fingerprint record.
        """
        raw = canonical.encode(_ENCODING, _ERRORS)
        imp_hash = hashlib.md5(raw).hexdigest()
        padded = pad_canonical(raw)
        return ImpHashResult(
            imp_hash=imp_hash,
            imp_fuzzy=self.fuzzy_digest(padded),
            imp_string=padded.decode(_ENCODING, _ERRORS),
        )

    def fuzzy_digest(self, padded: bytes) -> str:
        """ssdeep digest of *padded*, or ``""`` when it cannot be computed."""
        if not self.fuzzy_available:
            return ""
        try:
            return ssdeep.hash(padded)
        except Exception as exc:
            self._logger.warning("Fuzzy hash failed: %s", exc, reason=type(exc).__name__)
            return ""

    def compare(self, left: str, right: str) -> int:
        """ssdeep similarity score of two fuzzy digests, in [0, 100].

        Empty digests score 0, as does an unavailable ssdeep.
        """
        if not (left and right) or not _SSDEEP_AVAILABLE:
            return 0
        try:
            return int(ssdeep.compare(left, right))
        except Exception as exc:
            self._logger.warning("Fuzzy compare failed: %s", exc, reason=type(exc).__name__)
            return 0
