"""Export of locus groups as tables, JSON and FASTA."""

import io
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Sequence, Union

import pandas as pd
from Bio import SeqIO
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

from .models import CanonicalEntry, LocusGroup

NO_DATA = "no data available"


class OutputFormatter:
    """Formats locus groups for files and the terminal."""

    COLUMNS = [
        "Root ID",
        "Display Name",
        "Isoforms",
        "Isoform IDs",
        "Species",
        "Databases",
        "KO Terms",
        "Has Sequence"
    ]

    def __init__(self, excel_compatible: bool = True):
        """
        Initialize the formatter.

        Args:
            excel_compatible: Use UTF-8 BOM on tabular output
        """
        self.excel_compatible = excel_compatible
        self.start_time = datetime.now()

    def format_group(self, group: LocusGroup) -> Dict[str, Any]:
        """Flatten one group into a table row."""
        kos = []
        for isoform in group.isoforms:
            for annotation in isoform.annotations:
                if annotation.ko and annotation.ko not in kos:
                    kos.append(annotation.ko)

        return {
            'Root ID': group.root_id,
            'Display Name': group.display_name,
            'Isoforms': group.total_isoforms,
            'Isoform IDs': '; '.join(isoform.id for isoform in group.isoforms),
            'Species': '; '.join(sorted(group.species)),
            'Databases': '; '.join(sorted(group.databases)),
            'KO Terms': '; '.join(kos),
            'Has Sequence': any(i.protein or i.nucleotide for i in group.isoforms)
        }

    def to_dataframe(self, groups: Sequence[LocusGroup]) -> pd.DataFrame:
        rows = [self.format_group(group) for group in groups]
        return pd.DataFrame(rows, columns=self.COLUMNS)

    def format_results(self,
                       groups: Sequence[LocusGroup],
                       output_path: Union[str, Path],
                       format: str = 'tsv',
                       sequence_type: str = 'protein') -> int:
        """
        Write groups to a file.

        Args:
            groups: Groups to write
            output_path: Path to output file
            format: 'tsv', 'csv', 'json' or 'fasta'
            sequence_type: Sequence written by the FASTA format

        Returns:
            Number of groups (or FASTA records) written
        """
        path = Path(output_path)

        if format == 'tsv':
            self._write_table(groups, path, sep='\t')
        elif format == 'csv':
            self._write_table(groups, path, sep=',')
        elif format == 'json':
            self._write_json(groups, path)
        elif format == 'fasta':
            return self._write_fasta(groups, path, sequence_type)
        else:
            raise ValueError(f"Unsupported format: {format}")

        return len(groups)

    def _write_table(self, groups: Sequence[LocusGroup], path: Path, sep: str) -> None:
        encoding = 'utf-8-sig' if self.excel_compatible else 'utf-8'
        self.to_dataframe(groups).to_csv(path, sep=sep, index=False, encoding=encoding)

    def _write_json(self, groups: Sequence[LocusGroup], path: Path) -> None:
        output = {
            'metadata': {
                'generated': datetime.now().isoformat(),
                'total_groups': len(groups),
            },
            'groups': [self.group_to_dict(group) for group in groups]
        }

        with open(path, 'w', encoding='utf-8') as f:
            json.dump(output, f, indent=2, ensure_ascii=False)

    def group_to_dict(self, group: LocusGroup) -> Dict[str, Any]:
        return {
            'root_id': group.root_id,
            'display_name': group.display_name,
            'total_isoforms': group.total_isoforms,
            'species': sorted(group.species),
            'databases': sorted(group.databases),
            'isoforms': [self.entry_to_dict(entry) for entry in group.isoforms]
        }

    @staticmethod
    def entry_to_dict(entry: CanonicalEntry) -> Dict[str, Any]:
        return {
            'id': entry.id,
            'isoform': entry.isoform,
            'species': entry.species,
            'source_file': entry.source_file,
            'label': entry.label,
            'protein': entry.protein,
            'nucleotide': entry.nucleotide,
            'annotations': [
                {
                    'database': a.database,
                    'feature': a.feature,
                    'feature_id': a.feature_id,
                    'evalue': a.evalue,
                    'score': a.score,
                    'definition': a.definition,
                    'KO': a.ko,
                }
                for a in entry.annotations
            ]
        }

    def fasta_records(self, groups: Sequence[LocusGroup], sequence_type: str = 'protein') -> List[SeqRecord]:
        """One SeqRecord per isoform carrying a sequence of the requested type."""
        records = []
        for group in groups:
            for entry in group.isoforms:
                sequence = entry.sequence(sequence_type)
                if not sequence:
                    continue
                records.append(SeqRecord(
                    Seq(sequence),
                    id=entry.id,
                    description=f"{entry.label} [locus={group.root_id}] [species={entry.species}]"
                ))
        return records

    def _write_fasta(self, groups: Sequence[LocusGroup], path: Path, sequence_type: str) -> int:
        records = self.fasta_records(groups, sequence_type)
        with open(path, 'w', encoding='utf-8') as handle:
            return SeqIO.write(records, handle, 'fasta')

    def entry_fasta(self, entry: CanonicalEntry, sequence_type: str = 'protein') -> str:
        """FASTA text for a single isoform, or an empty string when it has none."""
        sequence = entry.sequence(sequence_type)
        if not sequence:
            return ""
        handle = io.StringIO()
        SeqIO.write(SeqRecord(Seq(sequence), id=entry.id, description=entry.label), handle, 'fasta')
        return handle.getvalue()

    def describe_group(self, group: LocusGroup, sequence_type: str = 'protein') -> List[str]:
        """Human readable lines for one group."""
        species = ', '.join(sorted(group.species))
        lines = [f"{group.root_id}  {group.display_name}  ({group.total_isoforms} isoforms; {species})"]

        for entry in group.isoforms:
            if not entry.has_data:
                lines.append(f"  {entry.id}: {NO_DATA}")
                continue

            sequence = entry.sequence(sequence_type)
            length = f"{len(sequence)} {'aa' if sequence_type == 'protein' else 'nt'}" if sequence else f"no {sequence_type} sequence"
            kos = ', '.join(a.ko for a in entry.annotations if a.ko)
            detail = f"  {entry.id}: {length}"
            if kos:
                detail += f"; KO {kos}"
            lines.append(detail)

        return lines

    def get_statistics(self, groups: Sequence[LocusGroup]) -> Dict[str, Any]:
        """Summary counts over a group collection."""
        isoforms = sum(group.total_isoforms for group in groups)
        with_data = sum(1 for g in groups for i in g.isoforms if i.has_data)

        return {
            'groups': len(groups),
            'isoforms': isoforms,
            'isoforms_with_data': with_data,
            'isoforms_without_data': isoforms - with_data,
            'duration': str(datetime.now() - self.start_time)
        }
