"""
Pure helpers that turn a selection group snapshot and the operator's
desired selection into a change set.

    build_conflict_index  variant id -> option of the same group holding it
    find_link_violations  variants held by more than one option of a group
    compute_diff          to_link / to_unlink / moves for the option under edit

Nothing here performs I/O. Results depend only on the arguments and keep
the iteration order of their inputs.
"""

from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterable, List, Mapping

from .entities import OptionData
from .exceptions import InvariantViolationDetected

Id = Hashable


def _ordered_ids(ids, argument):
    if isinstance(ids, (str, bytes)) or not isinstance(ids, Iterable):
        raise TypeError(f"{argument} must be an iterable of ids, got {type(ids).__name__}")
    return list(dict.fromkeys(ids))


def find_link_violations(options: Iterable[OptionData]) -> Dict[Id, List[Id]]:
    """
    Return {variant_id: [option_id, ...]} for every variant linked to more
    than one of ``options``. Empty when the group is consistent.
    """
    holders: Dict[Id, List[Id]] = {}
    for option in options:
        for variant_id in option.linked_variant_ids:
            holders.setdefault(variant_id, []).append(option.id)
    return {
        variant_id: option_ids
        for variant_id, option_ids in holders.items()
        if len(option_ids) > 1
    }


def build_conflict_index(
    options: Iterable[OptionData],
    current_option_id: Id,
    strict: bool = False,
) -> Dict[Id, OptionData]:
    """
    Map each variant linked to another option of the group to that option.

    The option under edit is skipped. When a variant is held by two other
    options the later one wins, unless ``strict`` is set, in which case
    InvariantViolationDetected is raised instead.
    """
    options = list(options)
    others = [option for option in options if option.id != current_option_id]

    if strict:
        violations = find_link_violations(others)
        if violations:
            group_id = others[0].group_id if others else None
            raise InvariantViolationDetected(group_id, violations)

    index: Dict[Id, OptionData] = {}
    for option in others:
        for variant_id in option.linked_variant_ids:
            index[variant_id] = option
    return index


@dataclass(frozen=True)
class LinkDiff:
    """Change set for one option. ``moves`` is keyed by source option id."""
    to_link: List[Id] = field(default_factory=list)
    to_unlink: List[Id] = field(default_factory=list)
    moves: Dict[Id, List[Id]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.to_link and not self.to_unlink

    @property
    def moved_variant_ids(self) -> List[Id]:
        return [variant_id for ids in self.moves.values() for variant_id in ids]

    @property
    def added_variant_ids(self) -> List[Id]:
        moved = set(self.moved_variant_ids)
        return [variant_id for variant_id in self.to_link if variant_id not in moved]

    def summary(self, selected_count=None) -> Dict[str, int]:
        data = {
            'to_link': len(self.to_link),
            'to_move': len(self.moved_variant_ids),
            'to_unlink': len(self.to_unlink),
        }
        if selected_count is not None:
            data['selected'] = selected_count
        return data


def compute_diff(
    initial_linked: Iterable[Id],
    desired: Iterable[Id],
    conflict_index: Mapping[Id, OptionData],
) -> LinkDiff:
    """
    Compare the option's current links with the desired selection.

    to_link    desired minus initial, in desired order
    to_unlink  initial minus desired, in initial order
    moves      ids of to_link currently held by another option, grouped by
               that option; they stay in to_link as well

    Variants held by other options that are not in ``desired`` are left
    alone.
    """
    initial = _ordered_ids(initial_linked, 'initial_linked')
    wanted = _ordered_ids(desired, 'desired')
    initial_set = set(initial)
    wanted_set = set(wanted)

    to_link = [variant_id for variant_id in wanted if variant_id not in initial_set]
    to_unlink = [variant_id for variant_id in initial if variant_id not in wanted_set]

    moves: Dict[Id, List[Id]] = {}
    for variant_id in to_link:
        source = conflict_index.get(variant_id)
        if source is not None:
            moves.setdefault(source.id, []).append(variant_id)

    return LinkDiff(to_link=to_link, to_unlink=to_unlink, moves=moves)
