"""
Typed Exception Hierarchy for the Commerce Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A conversion can fail because the caller asked for something that does not
exist, because the document is not ready yet, because the work was already
done, or because the input data is broken.  Callers must be able to tell these
apart without parsing message strings:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (document id, current status,
     expected status) so a response can be built without string matching

Example - WRONG way to handle errors:
    try:
        orchestrator.convert_quotation_to_order(...)
    except Exception as e:
        if "already" in str(e):  # FRAGILE - message might change
            ...

Example - RIGHT way:
    try:
        orchestrator.convert_quotation_to_order(...)
    except AlreadyConvertedError as e:
        return {"code": e.code, "successor_id": e.successor_id}
    except InvalidStateError as e:
        return {"code": e.code, "actual": e.actual, "expected": e.expected}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CommerceKernelError (base)
    |
    +-- DocumentError
    |   +-- DocumentNotFoundError
    |
    +-- ConversionError
    |   +-- InvalidStateError
    |   |   +-- InvalidTransitionError
    |   +-- AlreadyConvertedError
    |   +-- StorageConflictError
    |   +-- ConversionNotPermittedError
    |
    +-- CalculationError
    |   +-- InvalidLineItemError
    |
    +-- IntegrationError
        +-- DownstreamSyncFailedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Document        | NOT_FOUND                   | Unknown id, tenant mismatch, wrong stage
----------------|-----------------------------|-----------------------------------------
Conversion      | INVALID_STATE               | Source status not eligible for the rule
                | INVALID_TRANSITION          | Lifecycle move not allowed (backward, skip)
                | ALREADY_CONVERTED           | Source already has a successor
                | STORAGE_CONFLICT            | Unique constraint raced, no successor found
                | CONVERSION_NOT_PERMITTED    | Capability check refused the actor
----------------|-----------------------------|-----------------------------------------
Calculation     | INVALID_LINE_ITEM           | Bad quantity, price or discount
----------------|-----------------------------|-----------------------------------------
Integration     | DOWNSTREAM_SYNC_FAILED      | Inventory notification failed (logged only)

===============================================================================
PROPAGATION
===============================================================================

NOT_FOUND, INVALID_STATE, INVALID_LINE_ITEM and ALREADY_CONVERTED are caller
or data errors and are never retried.  STORAGE_CONFLICT raised by a racing
insert is translated to ALREADY_CONVERTED once the successor is visible.
DOWNSTREAM_SYNC_FAILED is recorded in the log and never unwinds a committed
conversion.
"""

from collections.abc import Iterable


class CommerceKernelError(Exception):
    """
    Base exception for all commerce kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "COMMERCE_KERNEL_ERROR"


# Document-related exceptions


class DocumentError(CommerceKernelError):
    """Base exception for document lookup errors."""

    code: str = "DOCUMENT_ERROR"


class DocumentNotFoundError(DocumentError):
    """Document does not exist for the tenant (or is not of the expected kind)."""

    code: str = "NOT_FOUND"

    def __init__(self, document_id: str, tenant_id: str, stage: str | None = None):
        self.document_id = document_id
        self.tenant_id = tenant_id
        self.stage = stage
        what = f"{stage} {document_id}" if stage else f"Document {document_id}"
        super().__init__(f"{what} not found for tenant {tenant_id}")


# Conversion-related exceptions


class ConversionError(CommerceKernelError):
    """Base exception for conversion and lifecycle errors."""

    code: str = "CONVERSION_ERROR"


class InvalidStateError(ConversionError):
    """Document status does not satisfy the precondition of the operation."""

    code: str = "INVALID_STATE"

    def __init__(
        self,
        document_id: str,
        actual: str,
        expected: Iterable[str],
    ):
        self.document_id = document_id
        self.actual = actual
        self.expected = tuple(expected)
        super().__init__(
            f"Document {document_id} is '{actual}', "
            f"expected one of: {', '.join(self.expected)}"
        )


class InvalidTransitionError(InvalidStateError):
    """Requested status change is not a legal forward move."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        document_id: str,
        actual: str,
        requested: str,
        expected: Iterable[str],
    ):
        self.requested = requested
        super().__init__(document_id, actual, expected)
        self.args = (
            f"Document {document_id} cannot move from '{actual}' to "
            f"'{requested}'; allowed: {', '.join(self.expected) or 'none'}",
        )


class AlreadyConvertedError(ConversionError):
    """Source document already has a successor (idempotency guard)."""

    code: str = "ALREADY_CONVERTED"

    def __init__(
        self,
        document_id: str,
        status: str,
        successor_id: str | None = None,
    ):
        self.document_id = document_id
        self.status = status
        self.successor_id = successor_id
        suffix = f" as {successor_id}" if successor_id else ""
        super().__init__(
            f"Document {document_id} (status '{status}') was already converted{suffix}"
        )


class StorageConflictError(ConversionError):
    """Unique constraint violated on write and no successor could be found."""

    code: str = "STORAGE_CONFLICT"

    def __init__(self, document_id: str, constraint: str):
        self.document_id = document_id
        self.constraint = constraint
        super().__init__(
            f"Storage conflict on {constraint} while converting {document_id}"
        )


class ConversionNotPermittedError(ConversionError):
    """Injected capability check refused the conversion."""

    code: str = "CONVERSION_NOT_PERMITTED"

    def __init__(self, document_id: str, actor_id: str):
        self.document_id = document_id
        self.actor_id = actor_id
        super().__init__(
            f"Actor {actor_id} is not permitted to convert document {document_id}"
        )


# Calculation-related exceptions


class CalculationError(CommerceKernelError):
    """Base exception for amount calculation errors."""

    code: str = "CALCULATION_ERROR"


class InvalidLineItemError(CalculationError):
    """A line item violates the input constraints of the tax calculation."""

    code: str = "INVALID_LINE_ITEM"

    def __init__(
        self,
        reason: str,
        line_index: int | None = None,
        product_id: str | None = None,
    ):
        self.reason = reason
        self.line_index = line_index
        self.product_id = product_id
        if line_index is None:
            super().__init__(f"Invalid line items: {reason}")
        else:
            super().__init__(
                f"Invalid line item #{line_index} ({product_id}): {reason}"
            )


# Integration-related exceptions


class IntegrationError(CommerceKernelError):
    """Base exception for downstream collaborator errors."""

    code: str = "INTEGRATION_ERROR"


class DownstreamSyncFailedError(IntegrationError):
    """
    Inventory notification failed or timed out.

    Non-fatal: the conversion is already committed.  Raised only to be logged.
    """

    code: str = "DOWNSTREAM_SYNC_FAILED"

    def __init__(self, document_id: str, collaborator: str, reason: str):
        self.document_id = document_id
        self.collaborator = collaborator
        self.reason = reason
        super().__init__(
            f"{collaborator} notification for {document_id} failed: {reason}"
        )
