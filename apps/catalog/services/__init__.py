from .entities import OptionData, SelectionGroupData, VariantData
from .exceptions import (
    CatalogServiceError,
    FetchFailure,
    InvariantViolationDetected,
    LinkBackendError,
    LinkConflictError,
    NotFoundError,
    PhaseFailure,
    SessionStateError,
)
from .link_diff import LinkDiff, build_conflict_index, compute_diff, find_link_violations
from .link_reconciler import LinkReconciler, Phase, ReconciliationResult
from .link_session import SessionState, VariantLinkSession
from .link_backend import OrmLinkBackend
from .selection_navigation import SelectionNavigationService

__all__ = [
    'OptionData',
    'SelectionGroupData',
    'VariantData',
    'CatalogServiceError',
    'FetchFailure',
    'InvariantViolationDetected',
    'LinkBackendError',
    'LinkConflictError',
    'NotFoundError',
    'PhaseFailure',
    'SessionStateError',
    'LinkDiff',
    'build_conflict_index',
    'compute_diff',
    'find_link_violations',
    'LinkReconciler',
    'Phase',
    'ReconciliationResult',
    'SessionState',
    'VariantLinkSession',
    'OrmLinkBackend',
    'SelectionNavigationService',
]
