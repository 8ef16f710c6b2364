# gst_invoicing/core/errors.py
"""
Exceptions raised by the invoicing core.

Messages are written for the caller: they name the offending business field
("seller state", "GST rate") and never leak ORM column names.
"""


class InvoicingError(Exception):
    """Base class for all invoicing failures."""

    retryable = False


class InvoiceValidationError(InvoicingError):
    """Raised before numbering or rendering when an input is unusable."""
    pass


class InvoiceNumberConflictError(InvoicingError):
    """Raised when an invoice number could not be committed.

    The allocation left no trace; the caller should retry the whole
    request and must not invent a number of its own.
    """

    retryable = True


class RenderResourceError(InvoicingError):
    """Raised when a font or other rendering resource is unavailable."""
    pass


class InvoiceConsistencyError(InvoicingError):
    """Raised when invoice totals disagree with their own line items."""
    pass
