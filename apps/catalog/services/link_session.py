"""
Interactive session for linking variants to one option of a selection group.

The session keeps an immutable snapshot of the group (every option with its
linked variants) and a working selection for the option under edit. Toggles
only touch the working selection; the snapshot changes only when it is
reloaded from the backend.

    LOADING -> READY -> SUBMITTING -> READY | FAILED
    LOADING -> FAILED (fetch error)

A session FAILED by a phase error keeps its selection and may submit again.
One FAILED by a fetch error accepts only load() or reload().
"""

import enum
import logging
from dataclasses import dataclass
from typing import Dict, Hashable, Iterable, List, Optional

from .entities import OptionData, SelectionGroupData, VariantData
from .exceptions import (
    FetchFailure,
    InvariantViolationDetected,
    LinkBackendError,
    SessionStateError,
)
from .link_diff import LinkDiff, build_conflict_index, compute_diff, find_link_violations
from .link_reconciler import LinkReconciler, ReconciliationResult

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    LOADING = 'loading'
    READY = 'ready'
    SUBMITTING = 'submitting'
    FAILED = 'failed'


class LinkStatus(enum.Enum):
    LINKED = 'linked'
    LINKED_OTHER = 'linked_other'
    UNLINKED = 'unlinked'


class ChangeKind(enum.Enum):
    ADD = 'add'
    MOVE = 'move'
    REMOVE = 'remove'


@dataclass(frozen=True)
class VariantRow:
    """One line of the variant picker."""
    variant: VariantData
    selected: bool
    status: LinkStatus
    other_option: Optional[OptionData]
    change: Optional[ChangeKind]


class VariantLinkSession:
    """
    Editing session scoped to (product_id, group_id, option_id).

    Call load() before anything else. submit() computes the diff once,
    hands it to the reconciler and reloads the snapshot on success.
    """

    def __init__(self, backend, product_id, group_id, option_id, reconciler=None):
        self.backend = backend
        self.product_id = product_id
        self.group_id = group_id
        self.option_id = option_id
        self.reconciler = reconciler or LinkReconciler(backend, product_id)

        self.state = SessionState.LOADING
        self.snapshot: Optional[SelectionGroupData] = None
        self.variants: List[VariantData] = []
        self.conflict_index: Dict[Hashable, OptionData] = {}
        self.violation: Optional[InvariantViolationDetected] = None
        self.search = ''
        self.last_result: Optional[ReconciliationResult] = None
        self.fetch_error: Optional[FetchFailure] = None
        self._desired: Dict[Hashable, None] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self):
        """Fetch the group and the product variants, resetting the selection."""
        self._fetch(keep_selection=False)
        return self

    def reload(self, keep_selection=True):
        """
        Re-read the authoritative state. With ``keep_selection`` the working
        selection survives, so a failed submit can be re-diffed and retried.
        """
        self._require(SessionState.READY, SessionState.FAILED)
        self._fetch(keep_selection=keep_selection)
        return self

    def _fetch(self, keep_selection):
        self.state = SessionState.LOADING
        try:
            group = self.backend.fetch_group_detail(self.product_id, self.group_id)
            variants = self.backend.fetch_all_variants(self.product_id)
        except LinkBackendError as e:
            logger.warning(
                "Could not load group %s of product %s: %s",
                self.group_id, self.product_id, e
            )
            self.state = SessionState.FAILED
            self.fetch_error = FetchFailure(self.product_id, self.group_id, cause=e)
            raise self.fetch_error from e

        option = group.get_option(self.option_id)
        if option is None:
            self.state = SessionState.FAILED
            self.fetch_error = FetchFailure(
                self.product_id, self.group_id,
                cause=f"option {self.option_id} is not part of the group"
            )
            raise self.fetch_error

        self.snapshot = group
        self.variants = list(variants)
        self.conflict_index = build_conflict_index(group.options, self.option_id)
        self.fetch_error = None

        violations = find_link_violations(group.options)
        if violations:
            self.violation = InvariantViolationDetected(group.id, violations)
            logger.warning("%s", self.violation)
        else:
            self.violation = None

        if not keep_selection:
            self._desired = dict.fromkeys(self._initial_ids)
        self.state = SessionState.READY

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def option(self) -> Optional[OptionData]:
        if self.snapshot is None:
            return None
        return self.snapshot.get_option(self.option_id)

    @property
    def _initial_ids(self) -> List[Hashable]:
        option = self.option
        if option is None:
            return []
        linked = option.linked_variant_ids
        ordered = [variant.id for variant in self.variants if variant.id in linked]
        known = set(ordered)
        return ordered + [vid for vid in linked if vid not in known]

    @property
    def desired(self) -> List[Hashable]:
        return list(self._desired)

    @property
    def visible_variants(self) -> List[VariantData]:
        return [variant for variant in self.variants if variant.matches(self.search)]

    @property
    def diff(self) -> LinkDiff:
        return compute_diff(self._initial_ids, self._desired, self.conflict_index)

    @property
    def has_changes(self) -> bool:
        return self.snapshot is not None and not self.diff.is_empty

    def is_selected(self, variant_id) -> bool:
        return variant_id in self._desired

    def other_option_for(self, variant_id) -> Optional[OptionData]:
        return self.conflict_index.get(variant_id)

    def summary(self) -> Dict[str, int]:
        return self.diff.summary(selected_count=len(self._desired))

    def rows(self) -> List[VariantRow]:
        initial = set(self._initial_ids)
        rows = []
        for variant in self.visible_variants:
            selected = variant.id in self._desired
            other = self.other_option_for(variant.id)
            if selected:
                status = LinkStatus.LINKED
            elif other is not None:
                status = LinkStatus.LINKED_OTHER
            else:
                status = LinkStatus.UNLINKED

            change = None
            if selected and variant.id not in initial:
                change = ChangeKind.MOVE if other is not None else ChangeKind.ADD
            elif not selected and variant.id in initial:
                change = ChangeKind.REMOVE

            rows.append(VariantRow(variant, selected, status, other, change))
        return rows

    def select_all_state(self) -> str:
        """'all', 'some' or 'none' of the visible variants free to link."""
        available = [
            variant for variant in self.visible_variants
            if self.other_option_for(variant.id) is None
        ]
        chosen = [variant for variant in available if variant.id in self._desired]
        if available and len(chosen) == len(available):
            return 'all'
        if chosen:
            return 'some'
        return 'none'

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def _require(self, *states):
        if self.state not in states:
            allowed = ', '.join(state.value for state in states)
            raise SessionStateError(
                f"Session is {self.state.value}; expected one of: {allowed}"
            )

    def _require_editable(self):
        self._require(SessionState.READY, SessionState.FAILED)
        if self.fetch_error is not None:
            raise SessionStateError(
                f"Group state could not be loaded ({self.fetch_error}); reload before editing"
            )

    def set_search(self, text):
        self.search = text or ''

    def toggle(self, variant_id):
        self._require_editable()
        if variant_id in self._desired:
            del self._desired[variant_id]
        else:
            self._desired[variant_id] = None

    def select_all_unlinked(self):
        """Select every visible variant not linked to another option."""
        self._require_editable()
        for variant in self.visible_variants:
            if self.other_option_for(variant.id) is None:
                self._desired.setdefault(variant.id, None)

    def deselect_all_visible(self):
        self._require_editable()
        for variant in self.visible_variants:
            self._desired.pop(variant.id, None)

    def replace_selection(self, variant_ids: Iterable):
        self._require_editable()
        self._desired = dict.fromkeys(variant_ids)

    def cancel(self):
        """Drop the working selection and go back to the snapshot."""
        if self.state == SessionState.SUBMITTING:
            raise SessionStateError('Cannot cancel while a submission is in flight')
        self._desired = dict.fromkeys(self._initial_ids)
        self.search = ''

    # ------------------------------------------------------------------
    # Submitting
    # ------------------------------------------------------------------

    def submit(self) -> ReconciliationResult:
        self._require_editable()
        if self.snapshot is None:
            raise SessionStateError('Session has no snapshot; call load() first')

        diff = self.diff
        if diff.is_empty:
            self.last_result = ReconciliationResult()
            self.state = SessionState.READY
            return self.last_result

        if self.violation is not None:
            touched = set(diff.to_link) | set(diff.to_unlink)
            tangled = [vid for vid in self.violation.violations if vid in touched]
            if tangled:
                raise InvariantViolationDetected(
                    self.snapshot.id,
                    {vid: self.violation.violations[vid] for vid in tangled},
                )

        self.state = SessionState.SUBMITTING
        try:
            result = self.reconciler.apply(
                self.group_id,
                self.option_id,
                diff,
                on_success=lambda: self._fetch(keep_selection=False),
            )
        except Exception:
            # the reload after a successful apply failed; writes stay applied
            self.state = SessionState.FAILED
            raise

        self.last_result = result
        if result.ok:
            logger.info(
                "Session for option %s submitted: %s",
                self.option_id, diff.summary()
            )
            self.state = SessionState.READY
        else:
            self.state = SessionState.FAILED
        return result
