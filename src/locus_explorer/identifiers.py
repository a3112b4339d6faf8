"""Identifier normalization.

Record identifiers follow the grammar ``<prefix>.<digits>[.<digits>][.<suffix>]``
(for example ``MSTRG.9923.1.p1``). The locus root is ``<prefix>.<digits>`` and
the isoform ordinal is the optional second digit run. Identifiers that do not
match the grammar form their own singleton locus.

Every function here is total: it never raises and always returns a string.
"""

import re
from pathlib import PurePosixPath
from typing import Any

# <prefix>.<digits>
ROOT_PATTERN = re.compile(r'^([^.]+\.\d+)')

# <prefix>.<digits>.<digits>
ISOFORM_PATTERN = re.compile(r'^[^.]+\.\d+\.(\d+)')

LEADING_ALPHA_PATTERN = re.compile(r'^[A-Za-z]+')

DEFAULT_ISOFORM = "1"
UNKNOWN_SPECIES = "unknown"

FILE_EXTENSIONS = (
    '.json', '.fa', '.fasta', '.faa', '.fna', '.ffn', '.txt', '.tsv', '.csv', '.gz'
)

# Dataset markers trailing the species tag in a source filename
FILENAME_MARKERS = [
    re.compile(r'_proteins$', re.IGNORECASE),
    re.compile(r'_nucleotides(-cds)?(_.*)?$', re.IGNORECASE),
    re.compile(r'_annotations(_part\d+)?$', re.IGNORECASE),
]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def root_id_of(identifier: Any) -> str:
    """Get the locus root of an identifier.

    >>> root_id_of("MSTRG.9923.1.p1")
    'MSTRG.9923'
    >>> root_id_of("simpleid")
    'simpleid'
    """
    text = _as_text(identifier)
    match = ROOT_PATTERN.match(text)
    return match.group(1) if match else text


def isoform_of(identifier: Any) -> str:
    """Get the isoform ordinal following the root, defaulting to "1"."""
    match = ISOFORM_PATTERN.match(_as_text(identifier))
    return match.group(1) if match else DEFAULT_ISOFORM


def isoform_rank(identifier: Any) -> tuple:
    """Ordering key placing isoforms numerically, then by identifier."""
    text = _as_text(identifier)
    return (int(isoform_of(text)), text)


def looks_like_filename(value: Any) -> bool:
    text = _as_text(value).strip()
    if '/' in text or '\\' in text:
        return True
    return text.lower().endswith(FILE_EXTENSIONS)


def species_from_filename(filename: Any) -> str:
    """Derive the species tag from a source filename.

    Drops any directory part, file extensions and a trailing dataset marker
    such as ``_proteins``, then lower-cases the remainder.
    """
    text = _as_text(filename).strip().replace('\\', '/')
    name = PurePosixPath(text).name if text else ""

    # Strip stacked extensions (e.g. .fa.gz)
    while name.lower().endswith(FILE_EXTENSIONS):
        name = name[:name.rfind('.')]

    for marker in FILENAME_MARKERS:
        name = marker.sub('', name)

    name = name.strip().lower()
    return name or UNKNOWN_SPECIES


def species_from_id(identifier: Any) -> str:
    """Derive the species tag from a bare record identifier."""
    text = _as_text(identifier).strip()

    if '_' in text:
        for token in text.split('_'):
            if len(token) >= 3 and not token.isdigit():
                return token.lower()

    match = LEADING_ALPHA_PATTERN.match(text)
    if match:
        return match.group(0).lower()

    return UNKNOWN_SPECIES


def species_of(value: Any) -> str:
    """Derive a species tag from either a source filename or an identifier."""
    if looks_like_filename(value):
        return species_from_filename(value)
    return species_from_id(value)
