"""Cluster canonical entries into locus groups by root identifier."""

from collections.abc import Mapping
from typing import Dict, Iterable, Iterator, List, Optional

from .identifiers import isoform_rank
from .logging_config import get_logger
from .merger import LabelSource, choose_label
from .models import CanonicalEntry, LocusGroup

logger = get_logger('grouper')


class EntryView(Mapping):
    """Identifier lookup over the grouper arena without copying it."""

    def __init__(self, grouper: "LocusGrouper"):
        self._grouper = grouper

    def __getitem__(self, entry_id: str) -> CanonicalEntry:
        entry = self._grouper.get_entry(entry_id)
        if entry is None:
            raise KeyError(entry_id)
        return entry

    def __iter__(self) -> Iterator[str]:
        return iter(self._grouper._entry_index)

    def __len__(self) -> int:
        return self._grouper.entry_count


def _name_rank(entry: CanonicalEntry) -> tuple:
    label, source = choose_label(entry)
    return (int(source),) + isoform_rank(entry.id), label


class LocusGrouper:
    """Append-only index of entries and the locus groups built over them.

    Entries live in an arena list; groups reference entries, never copies,
    and are found through a root id -> group position map. Groups are kept
    in creation order; ``groups()`` returns them sorted by isoform count.

    The display name of a group is the label of the member whose
    (label specificity, isoform ordinal, id) key is lowest, so a concrete
    annotation definition always beats KO, gene or sequence descriptions,
    synthetic placeholder labels lose to everything, and the result does not
    depend on the order entries arrive in.
    """

    def __init__(self):
        self._entries: List[CanonicalEntry] = []
        self._entry_index: Dict[str, int] = {}
        self._groups: List[LocusGroup] = []
        self._group_index: Dict[str, int] = {}
        self._sorted: List[LocusGroup] = []
        self._dirty = False

    def __len__(self) -> int:
        return len(self._groups)

    @property
    def entry_count(self) -> int:
        return len(self._entries)

    def entries(self) -> "EntryView":
        """Read-only identifier -> entry view of the arena."""
        return EntryView(self)

    def get_entry(self, entry_id: str) -> Optional[CanonicalEntry]:
        position = self._entry_index.get(entry_id)
        return self._entries[position] if position is not None else None

    def get_group(self, root_id: str) -> Optional[LocusGroup]:
        position = self._group_index.get(root_id)
        return self._groups[position] if position is not None else None

    def add(self, entry: CanonicalEntry) -> LocusGroup:
        """Place a new entry into its group, creating the group if needed."""
        if entry.id in self._entry_index:
            logger.debug(f"Entry {entry.id} already indexed, refreshing")
            return self.refresh(entry)

        self._entry_index[entry.id] = len(self._entries)
        self._entries.append(entry)

        group = self.get_group(entry.root_id)
        if group is None:
            rank, label = _name_rank(entry)
            group = LocusGroup(
                root_id=entry.root_id,
                display_name=label,
                name_rank=rank,
                has_definition=rank[0] == LabelSource.DEFINITION
            )
            self._group_index[entry.root_id] = len(self._groups)
            self._groups.append(group)
        else:
            self._consider_label(group, entry)

        group.isoforms.append(entry)
        self._dirty = True
        group.total_isoforms = len(group.isoforms)
        group.species.add(entry.species)
        group.databases.update(entry.databases)
        return group

    def add_all(self, entries: Iterable[CanonicalEntry]) -> int:
        added = 0
        for entry in entries:
            self.add(entry)
            added += 1
        self.resort()
        return added

    def refresh(self, entry: CanonicalEntry) -> LocusGroup:
        """Re-aggregate after an indexed entry gained annotations."""
        group = self.get_group(entry.root_id)
        group.species.add(entry.species)
        group.databases.update(entry.databases)
        self._consider_label(group, entry)
        return group

    def _consider_label(self, group: LocusGroup, entry: CanonicalEntry):
        rank, label = _name_rank(entry)

        # Once a definition is in place only another definition competes
        if group.has_definition and rank[0] != LabelSource.DEFINITION:
            return

        if rank < group.name_rank or (group.name_rank and group.name_rank[1:] == rank[1:]):
            if label != group.display_name:
                logger.debug(f"Group {group.root_id} label: {group.display_name!r} -> {label!r}")
            group.display_name = label
            group.name_rank = rank
            group.has_definition = rank[0] == LabelSource.DEFINITION

    def resort(self) -> List[LocusGroup]:
        """Sort by isoform count descending; ties keep creation order."""
        self._sorted = sorted(self._groups, key=lambda g: -g.total_isoforms)
        self._dirty = False
        return self._sorted

    def groups(self) -> List[LocusGroup]:
        if self._dirty:
            self.resort()
        return list(self._sorted)
