"""
Applies a LinkDiff to a link backend in three ordered phases.

    1. unlink_source  remove moved variants from the options that hold them
    2. link_target    link every to_link variant to the option under edit
    3. unlink_target  remove to_unlink variants from the option under edit

Phase 1 always finishes before phase 2 starts, so a variant is never linked
to two options of a group at the same time. The first failing call stops the
apply; completed phases are reported and left in place. Any error raised by a
backend call, a dropped connection included, becomes the PhaseFailure of the
result.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Hashable, List, Optional

from .exceptions import LinkBackendError, PhaseFailure
from .link_diff import LinkDiff

logger = logging.getLogger(__name__)


class Phase(enum.Enum):
    UNLINK_SOURCE = 'unlink_source'
    LINK_TARGET = 'link_target'
    UNLINK_TARGET = 'unlink_target'


@dataclass
class ReconciliationResult:
    succeeded_phases: List[Phase] = field(default_factory=list)
    failed_phase: Optional[Phase] = None
    error: Optional[PhaseFailure] = None

    @property
    def ok(self) -> bool:
        return self.failed_phase is None

    @property
    def partially_applied(self) -> bool:
        return not self.ok and bool(self.succeeded_phases)

    @property
    def message(self) -> str:
        if self.ok:
            if not self.succeeded_phases:
                return 'Nenhuma alteração a aplicar.'
            return 'Vínculos das variantes atualizados.'

        variants = ', '.join(str(v) for v in self.error.variant_ids)
        failed = (
            f"a etapa '{self.failed_phase.value}' na opção {self.error.option_id} "
            f"(variantes {variants})"
        )
        if Phase.UNLINK_SOURCE in self.succeeded_phases:
            return (
                f"Algumas variantes foram removidas da opção anterior, mas {failed} falhou. "
                "Recarregue e tente novamente para concluir a alteração."
            )
        if self.partially_applied:
            done = ', '.join(phase.value for phase in self.succeeded_phases)
            return f"As etapas {done} foram aplicadas, mas {failed} falhou. Recarregue e tente novamente."
        return f"Nada foi alterado: {failed} falhou."

    def as_dict(self):
        return {
            'ok': self.ok,
            'succeeded_phases': [phase.value for phase in self.succeeded_phases],
            'failed_phase': self.failed_phase.value if self.failed_phase else None,
            'error': {
                'option_id': self.error.option_id,
                'variant_ids': list(self.error.variant_ids),
                'detail': str(self.error.cause) if self.error.cause else str(self.error),
            } if self.error else None,
            'message': self.message,
        }


class LinkReconciler:
    """Runs the apply phases for one product against a link backend."""

    def __init__(self, backend, product_id):
        self.backend = backend
        self.product_id = product_id

    def _plan(self, current_option_id, diff: LinkDiff):
        steps = []
        if diff.moves:
            steps.append((
                Phase.UNLINK_SOURCE,
                [(source_id, list(ids), self.backend.unlink_variants)
                 for source_id, ids in diff.moves.items() if ids],
            ))
        if diff.to_link:
            steps.append((
                Phase.LINK_TARGET,
                [(current_option_id, list(diff.to_link), self.backend.link_variants)],
            ))
        if diff.to_unlink:
            steps.append((
                Phase.UNLINK_TARGET,
                [(current_option_id, list(diff.to_unlink), self.backend.unlink_variants)],
            ))
        return steps

    def apply(
        self,
        group_id: Hashable,
        current_option_id: Hashable,
        diff: LinkDiff,
        on_success: Optional[Callable[[], None]] = None,
    ) -> ReconciliationResult:
        result = ReconciliationResult()

        if diff.is_empty:
            logger.debug("Nothing to reconcile for option %s", current_option_id)
            return result

        logger.info(
            "Reconciling option %s in group %s: +%d -%d moves from %s",
            current_option_id, group_id, len(diff.to_link), len(diff.to_unlink),
            list(diff.moves)
        )

        for phase, calls in self._plan(current_option_id, diff):
            for option_id, variant_ids, call in calls:
                try:
                    call(self.product_id, group_id, option_id, variant_ids)
                except Exception as e:
                    if isinstance(e, LinkBackendError):
                        logger.warning(
                            "Phase %s failed for option %s, variants %s: %s",
                            phase.value, option_id, variant_ids, e
                        )
                    else:
                        logger.exception(
                            "Phase %s raised unexpectedly for option %s, variants %s",
                            phase.value, option_id, variant_ids
                        )
                    result.failed_phase = phase
                    result.error = PhaseFailure(phase, option_id, variant_ids, cause=e)
                    return result
            result.succeeded_phases.append(phase)

        logger.info(
            "Option %s reconciled (%s)",
            current_option_id, ', '.join(p.value for p in result.succeeded_phases)
        )
        if on_success is not None:
            on_success()
        return result
