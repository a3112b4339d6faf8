"""Merge per-identifier fragments from many loaded files into canonical entries."""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .error_handler import ErrorHandler, ErrorType, get_error_handler
from .file_loader import is_available
from .identifiers import isoform_of, root_id_of, species_of
from .logging_config import get_logger
from .models import AnnotationFragment, CanonicalEntry, RawHeader, SequenceFragment

logger = get_logger('merger')

# Fields under which array-shaped files carry each record's identifier
ID_FIELDS = ('id', 'protein_id', 'transcript_id', 'sequence_id', 'gene_id', 'query')

FALLBACK_PREFIX = "Locus"


class FileKind(IntEnum):
    PROTEIN = 1
    NUCLEOTIDE = 2
    ANNOTATION = 3
    OTHER = 4


class LabelSource(IntEnum):
    """Display label specificity, lower is better."""
    DEFINITION = 0
    KO = 1
    GENE = 2
    SEQUENCE_DESCRIPTION = 3
    IDENTIFIER = 4
    PLACEHOLDER = 5


@dataclass
class MergeResult:
    """Outcome of merging one batch."""
    created: List[CanonicalEntry] = field(default_factory=list)
    updated: List[CanonicalEntry] = field(default_factory=list)
    dropped: int = 0


def classify_file(filename: str) -> FileKind:
    """Classify a data file by its name."""
    name = filename.lower()
    if 'nucleotide' in name:
        return FileKind.NUCLEOTIDE
    if 'annotation' in name:
        return FileKind.ANNOTATION
    if 'protein' in name:
        return FileKind.PROTEIN
    return FileKind.OTHER


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value.strip() if isinstance(value, str) else str(value)


def _number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) not in (None, ""):
            return raw[key]
    return None


def record_id(record: Any) -> str:
    """Identifier carried by an array-shaped record."""
    if not isinstance(record, Mapping):
        return ""
    return _text(_first(record, *ID_FIELDS))


def normalize_sequence(raw: Any) -> Optional[SequenceFragment]:
    """Build a sequence fragment from a file value, tolerating odd shapes."""
    if isinstance(raw, str):
        return SequenceFragment(sequence=raw.strip())
    if not isinstance(raw, Mapping):
        return None
    return SequenceFragment(
        sequence=_text(_first(raw, 'sequence', 'seq')),
        description=_text(_first(raw, 'description', 'desc', 'header'))
    )


def normalize_annotation(raw: Any, source_file: str = "") -> Optional[AnnotationFragment]:
    """Build an annotation fragment; absent fields default to empty or zero."""
    if isinstance(raw, str):
        if not raw.strip():
            return None
        return AnnotationFragment(definition=raw.strip(), feature="locus", source_file=source_file)
    if not isinstance(raw, Mapping):
        return None
    return AnnotationFragment(
        database=_text(_first(raw, 'database', 'db', 'source')),
        feature=_text(_first(raw, 'feature', 'feature_name', 'name')),
        feature_id=_text(_first(raw, 'feature_id', 'featureId', 'accession')),
        evalue=_text(_first(raw, 'evalue', 'e_value', 'E-value')),
        score=_number(raw.get('score')),
        definition=_text(_first(raw, 'definition', 'Definition')),
        ko=_text(_first(raw, 'KO', 'ko')),
        gene=_text(raw.get('gene')),
        description=_text(raw.get('description')),
        threshold=_number(raw.get('threshold')),
        source_file=source_file
    )


def choose_label(entry: CanonicalEntry) -> Tuple[str, LabelSource]:
    """Pick the best available display label for an entry. Never fails."""
    for annotation in entry.annotations:
        if annotation.definition:
            return annotation.definition, LabelSource.DEFINITION

    for annotation in entry.annotations:
        if annotation.ko:
            return f"KO: {annotation.ko}", LabelSource.KO

    for annotation in entry.annotations:
        if annotation.gene:
            return annotation.gene, LabelSource.GENE
        if annotation.description:
            return annotation.description, LabelSource.GENE

    for description in (entry.protein_description, entry.nucleotide_description):
        if description:
            return description, LabelSource.SEQUENCE_DESCRIPTION

    if entry.id.startswith(FALLBACK_PREFIX):
        return entry.id, LabelSource.PLACEHOLDER
    return entry.id, LabelSource.IDENTIFIER


class RecordMerger:
    """Reconciles sequence and annotation fragments per identifier."""

    def __init__(self, error_handler: Optional[ErrorHandler] = None):
        self.error_handler = error_handler or get_error_handler()
        # filename -> id -> raw record, built once per file
        self._indexes: Dict[str, Dict[str, Any]] = {}

    def _index(self, filename: str, data: Any, kind: FileKind) -> Dict[str, Any]:
        """Index a loaded file by identifier, accepting mapping or array shapes."""
        if filename in self._indexes:
            return self._indexes[filename]

        if isinstance(data, Mapping):
            index = dict(data)
        elif isinstance(data, list):
            index = {}
            skipped = 0
            for record in data:
                key = record_id(record)
                if not key:
                    skipped += 1
                    continue
                if key in index:
                    if kind != FileKind.ANNOTATION:
                        # First sequence record wins
                        logger.debug(f"{filename}: duplicate record for {key} ignored")
                        continue
                    existing = index[key]
                    index[key] = (existing if isinstance(existing, list) else [existing]) + [record]
                else:
                    index[key] = record
            if skipped:
                logger.warning(f"{filename}: {skipped} records without an identifier skipped")
        else:
            logger.warning(f"{filename}: unexpected top-level {type(data).__name__}, ignored")
            index = {}

        self._indexes[filename] = index
        return index

    def merge(self,
              headers: Iterable[RawHeader],
              loaded_files: Mapping[str, Any],
              existing: Optional[Mapping[str, CanonicalEntry]] = None) -> MergeResult:
        """
        Merge a batch of headers with the files loaded for it.

        Args:
            headers: Headers of the batch
            loaded_files: filename -> parsed JSON or UNAVAILABLE
            existing: Entries already in the index, extended in place

        Returns:
            MergeResult with created and updated entries
        """
        existing = existing or {}
        result = MergeResult()
        seen: Dict[str, CanonicalEntry] = {}

        available = []
        for name, data in loaded_files.items():
            if is_available(data):
                kind = classify_file(name)
                available.append((name, kind, self._index(name, data, kind)))

        for header in headers:
            entry_id = _text(getattr(header, 'id', None))
            if not entry_id:
                result.dropped += 1
                self.error_handler.record(
                    ErrorType.MALFORMED_RECORD,
                    "header without identifier dropped",
                    operation="merge",
                    filename=getattr(header, 'source_file', None) or None
                )
                continue

            if entry_id in seen:
                continue

            entry = existing.get(entry_id)
            is_new = entry is None
            if is_new:
                entry = CanonicalEntry(
                    id=entry_id,
                    root_id=root_id_of(entry_id),
                    isoform=isoform_of(entry_id),
                    species=species_of(header.source_file) if header.source_file else species_of(entry_id),
                    source_file=header.source_file
                )

            changed = self._apply_files(entry, available)
            entry.label, _ = choose_label(entry)
            seen[entry_id] = entry

            if is_new:
                result.created.append(entry)
            elif changed:
                result.updated.append(entry)

        logger.debug(
            f"Merged batch: {len(result.created)} created, "
            f"{len(result.updated)} updated, {result.dropped} dropped"
        )
        return result

    def _apply_files(self, entry: CanonicalEntry, available: List[Tuple[str, FileKind, Dict[str, Any]]]) -> bool:
        """Apply every not-yet-merged file to an entry. Returns True on change."""
        changed = False

        for filename, kind, index in available:
            if filename in entry.merged_files:
                continue

            if kind in (FileKind.PROTEIN, FileKind.NUCLEOTIDE):
                fragment = normalize_sequence(index.get(entry.id))
                if fragment is None:
                    continue
                entry.merged_files.add(filename)
                if kind == FileKind.PROTEIN and not entry.protein:
                    entry.protein = fragment.sequence
                    entry.protein_description = fragment.description
                    changed = True
                elif kind == FileKind.NUCLEOTIDE and not entry.nucleotide:
                    entry.nucleotide = fragment.sequence
                    entry.nucleotide_description = fragment.description
                    changed = True

            elif kind == FileKind.ANNOTATION:
                fragments = self._annotations_for(entry, filename, index)
                if fragments:
                    entry.merged_files.add(filename)
                    entry.annotations.extend(fragments)
                    changed = True

        return changed

    def _annotations_for(self, entry: CanonicalEntry, filename: str, index: Dict[str, Any]) -> List[AnnotationFragment]:
        raw_values = []

        value = index.get(entry.id)
        if isinstance(value, list):
            raw_values.extend(value)
        elif value is not None:
            raw_values.append(value)

        # Locus-level definitions are keyed by root and given as plain strings
        if entry.root_id != entry.id and isinstance(index.get(entry.root_id), str):
            raw_values.append(index[entry.root_id])

        fragments = []
        for raw in raw_values:
            fragment = normalize_annotation(raw, filename)
            if fragment is None:
                logger.debug(f"{filename}: unusable annotation for {entry.id} skipped")
                continue
            fragments.append(fragment)
        return fragments
