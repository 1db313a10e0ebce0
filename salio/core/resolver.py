"""Resolve a free-text search term into instance display names."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from typing import NamedTuple

from salio.core.inventory import Snapshot

logger = logging.getLogger(__name__)


class Posting(NamedTuple):
    """A document matched by a fuzzy query.

    Attributes
    ----------
    doc : int
        Index of the matched document in the indexed list
    score : int
        Number of unmatched characters inside the matched span; lower is a
        tighter match
    """

    doc: int
    score: int


class FuzzyIndex:
    """Character-position index supporting in-order subsequence queries.

    A document matches a query when every query character appears in the
    document in the same order, not necessarily contiguously. Matching is
    case-insensitive.

    Parameters
    ----------
    documents : Iterable[str]
        Documents to index, addressed by position in query results
    """

    def __init__(self, documents: Iterable[str]) -> None:
        self.documents = list(documents)
        self._postings: dict[str, list[tuple[int, int]]] = defaultdict(list)

        for doc, text in enumerate(self.documents):
            for pos, char in enumerate(text.lower()):
                self._postings[char].append((doc, pos))

    def query(self, term: str) -> list[Posting]:
        """Find documents containing ``term`` as a subsequence.

        Parameters
        ----------
        term : str
            Search term

        Returns
        -------
        list[Posting]
            One posting per matching document, best score first
        """
        if not term:
            return []

        term = term.lower()

        # doc -> (start of match, position of last matched character)
        spans: dict[int, tuple[int, int]] = {}
        for doc, pos in self._postings.get(term[0], ()):
            spans.setdefault(doc, (pos, pos))

        for char in term[1:]:
            advanced: dict[int, tuple[int, int]] = {}
            for doc, pos in self._postings.get(char, ()):
                span = spans.get(doc)
                if span is None or doc in advanced:
                    continue
                if pos > span[1]:
                    advanced[doc] = (span[0], pos)
            spans = advanced
            if not spans:
                return []

        postings = [
            Posting(doc, (end - start + 1) - len(term))
            for doc, (start, end) in spans.items()
        ]
        postings.sort(key=lambda p: (p.score, p.doc))
        return postings


def searchable_names(snapshot: Snapshot) -> list[str]:
    """List display names eligible as jump targets.

    Bastions and unnamed instances are excluded. Order follows the snapshot.
    """
    return [i.name for i in snapshot if i.name and not i.is_bastion]


def resolve_instance_names(query: str, snapshot: Snapshot) -> set[str]:
    """Map a search term to canonical instance names.

    An exact display-name match wins and skips fuzzy search entirely.
    Otherwise every name matched by the fuzzy index is returned.

    Parameters
    ----------
    query : str
        Search term typed by the operator
    snapshot : Snapshot
        Inventory to search

    Returns
    -------
    set[str]
        Matching display names, empty when nothing matches
    """
    if not query:
        return set()

    names = searchable_names(snapshot)

    if query in names:
        duplicates = names.count(query)
        if duplicates > 1:
            logger.warning(
                "%s instances are named %s, pick one from the list", duplicates, query
            )
        return {query}

    index = FuzzyIndex(names)
    resolved = {names[posting.doc] for posting in index.query(query)}

    logger.debug("Resolved %r to %s instance names", query, len(resolved))
    return resolved
