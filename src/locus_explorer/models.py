"""Data models for the locus index."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set


class LoadState(Enum):
    """Per-filename load status. FAILED is terminal for the session."""
    NOT_STARTED = "not-started"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass(frozen=True)
class RawHeader:
    """One sequence entity from the master header list."""
    id: str
    source_file: str = ""


@dataclass
class SequenceFragment:
    """Sequence data for one identifier from one file."""
    sequence: str = ""
    description: str = ""


@dataclass
class AnnotationFragment:
    """Functional annotation for one identifier from one file."""
    database: str = ""
    feature: str = ""
    feature_id: str = ""
    evalue: str = ""
    score: float = 0
    definition: str = ""
    ko: str = ""
    gene: str = ""
    description: str = ""
    threshold: float = 0
    source_file: str = ""


@dataclass
class CanonicalEntry:
    """Fully merged record for one identifier."""
    
    id: str
    root_id: str
    isoform: str
    species: str
    source_file: str = ""
    protein: str = ""
    nucleotide: str = ""
    protein_description: str = ""
    nucleotide_description: str = ""
    annotations: List[AnnotationFragment] = field(default_factory=list)
    label: str = ""
    merged_files: Set[str] = field(default_factory=set)
    
    @property
    def has_data(self) -> bool:
        """False when the entry carries neither sequence nor annotation."""
        return bool(self.protein or self.nucleotide or self.annotations)
    
    @property
    def databases(self) -> Set[str]:
        return {a.database for a in self.annotations if a.database}
    
    @property
    def definition(self) -> Optional[str]:
        """First concrete annotation definition, if any."""
        for annotation in self.annotations:
            if annotation.definition.strip():
                return annotation.definition.strip()
        return None
    
    def sequence(self, sequence_type: str = "protein") -> str:
        """Get the protein or nucleotide sequence."""
        if sequence_type == "protein":
            return self.protein
        if sequence_type == "nucleotide":
            return self.nucleotide
        raise ValueError(f"Unknown sequence type: {sequence_type}")


@dataclass
class LocusGroup:
    """All isoforms sharing a root identifier."""
    
    root_id: str
    display_name: str
    isoforms: List[CanonicalEntry] = field(default_factory=list)
    total_isoforms: int = 0
    species: Set[str] = field(default_factory=set)
    databases: Set[str] = field(default_factory=set)
    # Ordering key of the isoform that supplied display_name
    name_rank: tuple = ()
    has_definition: bool = False
