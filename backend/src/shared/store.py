"""
Document store interface consumed by the lease manager and completion handlers.

Filters are `(field, op, value)` triples with op in `==` / `!=`. Dotted
field names address nested map attributes (e.g. `proverb.text`).
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple

Filter = Tuple[str, str, Any]

EQ = '=='
NE = '!='


class DocumentStore:
    """
    Minimal document database contract.

    Implementations give per-field last-writer-wins updates and an atomic
    numeric increment. No cross-document transactions are offered.
    """

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Return documents (each with its `id`) matching every filter."""
        raise NotImplementedError

    def get_by_id(self, collection: str, doc_id: str) -> Dict[str, Any]:
        """Return the document or raise DocumentNotFoundError."""
        raise NotImplementedError

    def update_fields(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """
        Write only the named fields of an existing document.
        A None value clears the field. Raises DocumentNotFoundError.
        """
        raise NotImplementedError

    def create_document(self, collection: str, fields: Dict[str, Any]) -> str:
        """Store a new document and return its generated id."""
        raise NotImplementedError

    def delete_document(self, collection: str, doc_id: str) -> None:
        raise NotImplementedError

    def increment_field(self, collection: str, doc_id: str, field_path: str, delta: int = 1) -> None:
        """
        Atomically add `delta` to a numeric field, creating the document,
        the parent map and the field as needed.
        """
        raise NotImplementedError


def get_path(document: Dict[str, Any], field_path: str) -> Any:
    value = document
    for part in field_path.split('.'):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value
