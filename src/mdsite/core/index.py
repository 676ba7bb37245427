"""Content model: the per-build document collection and its derived tag/date indices"""

from types import MappingProxyType
from typing import Iterator, Mapping

from mdsite.core.errors import ContentModelFrozen, DuplicateId
from mdsite.core.models import Document


def date_order(doc: Document) -> tuple[int, str]:
    """Sort key: published_at descending, then id ascending."""
    return (-doc.published_at.toordinal(), doc.id)


def build_tag_index(docs: list[Document]) -> dict[str, tuple[str, ...]]:
    """Map each tag to its document ids in date order; docs must already be date-sorted."""
    index: dict[str, list[str]] = {}
    for doc in docs:
        for tag in doc.metadata.tags:
            index.setdefault(tag, []).append(doc.id)
    return {tag: tuple(ids) for tag, ids in sorted(index.items())}


class ContentModel:
    """Build context holding every parsed Document.

    Lifecycle is create -> add() -> freeze() -> discard. After freeze() the model
    is read-only and safe to share across render threads without locking.
    """

    def __init__(self):
        self._docs: dict[str, Document] = {}
        self._frozen = False
        self._by_date: tuple[Document, ...] | None = None
        self._tag_index: Mapping[str, tuple[str, ...]] | None = None

    def add(self, doc: Document) -> None:
        if self._frozen:
            raise ContentModelFrozen(f"cannot add '{doc.id}': content model is frozen")
        if doc.id in self._docs:
            raise DuplicateId(doc.id, doc.source_path, existing_path=self._docs[doc.id].source_path)
        self._docs[doc.id] = doc

    def freeze(self) -> None:
        """Build barrier: compute the date order and tag index once; no more add() calls."""
        if self._frozen:
            return
        self._by_date = tuple(sorted(self._docs.values(), key=date_order))
        self._tag_index = MappingProxyType(build_tag_index(list(self._by_date)))
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, doc_id: str) -> Document | None:
        return self._docs.get(doc_id)

    def __len__(self) -> int:
        return len(self._docs)

    def __iter__(self) -> Iterator[Document]:
        """Iterate in insertion (discovery) order."""
        return iter(list(self._docs.values()))

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._docs

    def by_date(self) -> tuple[Document, ...]:
        if self._by_date is not None:
            return self._by_date
        return tuple(sorted(self._docs.values(), key=date_order))

    @property
    def tag_index(self) -> Mapping[str, tuple[str, ...]]:
        if self._tag_index is not None:
            return self._tag_index
        return MappingProxyType(build_tag_index(list(self.by_date())))

    def tags(self) -> list[str]:
        return list(self.tag_index)

    def by_tag(self, tag: str) -> tuple[Document, ...]:
        return tuple(self._docs[i] for i in self.tag_index.get(tag, ()))

    def related(self, doc: Document, limit: int = 5) -> tuple[Document, ...]:
        """Other documents sharing a tag with doc: most shared tags first, then date order."""
        index = self.tag_index
        shared: dict[str, int] = {}
        for tag in doc.metadata.tags:
            for other_id in index.get(tag, ()):
                if other_id != doc.id:
                    shared[other_id] = shared.get(other_id, 0) + 1
        ranked = sorted(shared, key=lambda i: (-shared[i], date_order(self._docs[i])))
        return tuple(self._docs[i] for i in ranked[:limit])
