"""
Cache keys a client should refetch after a mutation.
Mutating endpoints return them in an `invalidates` field instead of asking
clients to reload everything.
"""

DOCUMENTS = "documents"
INVOICES = "invoices"
REVIEW_QUEUE = "review_queue"
DASHBOARD_STATS = "dashboard_stats"


def document_key(doc_id) -> str:
    return f"document:{doc_id}"


def invoice_key(invoice_id) -> str:
    return f"invoice:{invoice_id}"


def for_document(doc_id, invoice_id=None, *, status_changed: bool = True) -> list[str]:
    """Keys touched by a change to one document (and its invoice)."""
    keys = [DOCUMENTS, document_key(doc_id)]
    if invoice_id is not None:
        keys += [INVOICES, invoice_key(invoice_id)]
    if status_changed:
        keys += [REVIEW_QUEUE, DASHBOARD_STATS]
    return keys
