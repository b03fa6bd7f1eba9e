"""
Errors raised by the variant link services.

FetchFailure, PhaseFailure and InvariantViolationDetected are the runtime
conditions an operator can see; LinkBackendError and its subclasses are what
a link backend raises from its remote calls.
"""


class CatalogServiceError(Exception):
    """Base class for catalog service errors."""


class LinkBackendError(CatalogServiceError):
    """A link backend call could not be completed."""


class NotFoundError(LinkBackendError):
    """Product, group, option or variant does not exist (or is not owned)."""


class LinkConflictError(LinkBackendError):
    """Linking would put a variant on two options of the same group."""

    def __init__(self, message, variant_ids=()):
        super().__init__(message)
        self.variant_ids = list(variant_ids)


class SessionStateError(CatalogServiceError):
    """Operation not allowed in the current session state."""


class FetchFailure(CatalogServiceError):
    """The authoritative group state could not be loaded."""

    def __init__(self, product_id, group_id, cause=None):
        self.product_id = product_id
        self.group_id = group_id
        self.cause = cause
        message = f"Could not load selection group {group_id} of product {product_id}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class PhaseFailure(CatalogServiceError):
    """One phase of a reconciliation failed on its remote call."""

    def __init__(self, phase, option_id, variant_ids, cause=None):
        self.phase = phase
        self.option_id = option_id
        self.variant_ids = list(variant_ids)
        self.cause = cause
        message = (
            f"Phase '{phase.value}' failed for option {option_id} "
            f"(variants {self.variant_ids})"
        )
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class InvariantViolationDetected(CatalogServiceError):
    """
    A variant is linked to more than one option of the same group.

    ``violations`` maps each offending variant id to the ids of every
    option holding it, in group order.
    """

    def __init__(self, group_id, violations):
        self.group_id = group_id
        self.violations = dict(violations)
        details = ', '.join(
            f"{variant_id} -> {option_ids}"
            for variant_id, option_ids in self.violations.items()
        )
        super().__init__(
            f"Selection group {group_id} has variants linked to several options: {details}"
        )

    @property
    def variant_ids(self):
        return list(self.violations)
