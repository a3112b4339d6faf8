"""Map species tags to the data files that hold their records."""

from typing import Iterable, List

from .identifiers import species_of

HEADERS_FILE = "all_protein_headers.json"
SPECIES_DATABASE_FILE = "species_database.json"

# Annotation files shared by every species
SHARED_ANNOTATION_FILES = ("annotations.json", "locus__annotations.json")

# Known species tags and the file prefixes their datasets are published under
SPECIES_PREFIXES = {
    "sisalana": "LGE02",
    "lge02": "LGE02",
    "h11648": "LGE03",
    "lge03": "LGE03",
    "fourcroydes": "AFR",
    "afr": "AFR",
    "tequilana": "Tequilana_MX",
    "jgi791": "Tequilana_JGI791",
    "deserti": "Agave_deserti",
    "americana": "Agave_americana",
    "filamentosa": "Yucca_filamentosa",
    "officinalis": "Asparagus_officinalis",
    "thaliana": "TAIR10",
}


def prefix_for(species: str) -> str:
    """Get the file prefix for a species tag; unmapped tags are their own prefix."""
    tag = (species or "").strip()
    return SPECIES_PREFIXES.get(tag.lower(), tag)


def protein_file(prefix: str) -> str:
    return f"{prefix}_proteins.json"


def nucleotide_file(prefix: str) -> str:
    return f"{prefix}_nucleotides-cds_{prefix}.json"


def annotation_shards(prefix: str, shards: int = 17) -> List[str]:
    return [f"{prefix}_annotations_part{i}.json" for i in range(1, shards + 1)]


def files_for_species(species: str, shards: int = 17, include_nucleotides: bool = True) -> List[str]:
    """Candidate files for one species: sequences first, then annotation shards."""
    prefix = prefix_for(species)
    files = [protein_file(prefix)]
    if include_nucleotides:
        files.append(nucleotide_file(prefix))
    files.extend(annotation_shards(prefix, shards))
    return files


def files_for_batch(headers: Iterable, shards: int = 17, include_nucleotides: bool = True,
                    include_shared: bool = True) -> List[str]:
    """
    Resolve the files relevant to a batch of headers.

    Args:
        headers: RawHeader-like objects with ``id`` and ``source_file``
        shards: Number of annotation shard files per species
        include_nucleotides: Include the nucleotide CDS file
        include_shared: Include the species-independent annotation files

    Returns:
        Ordered, de-duplicated list of filenames
    """
    files: List[str] = []

    for header in headers:
        source = getattr(header, 'source_file', "") or ""
        species = species_of(source) if source else species_of(getattr(header, 'id', ""))

        # Headers may name the exact JSON file their record lives in
        if source.lower().endswith('.json'):
            files.append(source)

        files.extend(files_for_species(species, shards, include_nucleotides))

    if include_shared:
        files.extend(SHARED_ANNOTATION_FILES)

    return list(dict.fromkeys(files))
