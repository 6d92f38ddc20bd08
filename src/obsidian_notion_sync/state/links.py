"""Wiki-link registry: registration, resolution, and repair.

Every ``[[target]]`` reference extracted from a note is stored as a
``links`` row keyed by ``(source_path, target_name)``.  A note's rows are
replaced wholesale each time it is re-parsed, so stale references never
linger.

Resolution maps a target name to the remote page id of a tracked
document, trying in order:

1. **Path match** -- targets containing ``/`` are looked up as a
   vault path (with or without ``.md``).
2. **Name match** -- the tracked path equals the name, ends with
   ``/<name>.md``, or equals ``<name>.md``.  First hit in path order wins.
3. **Fuzzy match** (opt-in) -- the best ``FuzzyMatcher`` candidate among
   documents with a remote id, accepted at ``FUZZY`` or better.

Only documents that already have a remote id can be targets.  References
to documents created later in the same batch stay unresolved until a
bulk pass (``resolve_all`` / ``resolve_all_with_fuzzy``) runs after the
batch completes.
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Iterable

from obsidian_notion_sync.errors import PersistenceError
from obsidian_notion_sync.state.db import StateStore
from obsidian_notion_sync.state.fuzzy import FuzzyMatcher
from obsidian_notion_sync.state.models import (
    LinkEntry,
    LinkStats,
    LinkSuggestion,
    MatchResult,
    MatchScore,
    ReconcileSettings,
    RepairResult,
    ResolveResult,
)

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIX = ".md"

_LINK_COLUMNS = (
    "id, source_path, target_name, target_path, notion_page_id, resolved"
)


class LinkRegistry:
    """Map wiki-link targets to remote page ids.

    Args:
        store: Shared state store (``links`` and ``sync_state`` tables).
        matcher: Fuzzy matcher; defaults to one built from *settings*.
        settings: Reconciliation settings (fuzzy enablement and
            threshold).
    """

    def __init__(
        self,
        store: StateStore,
        matcher: FuzzyMatcher | None = None,
        settings: ReconcileSettings | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or ReconcileSettings()
        self.matcher = matcher or FuzzyMatcher(self.settings.max_distance)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_link(self, source_path: str, target_name: str) -> None:
        """Record one reference; an existing identical pair is a no-op."""
        self.store.execute(
            "INSERT OR IGNORE INTO links (source_path, target_name, resolved) "
            "VALUES (?, ?, 0)",
            (source_path, target_name),
        )

    def register_links(
        self, source_path: str, target_names: Iterable[str]
    ) -> None:
        """Record several references from one note in a single transaction."""
        with self.store.transaction():
            for target in target_names:
                self.register_link(source_path, target)

    def clear_links_from(self, source_path: str) -> None:
        self.store.execute(
            "DELETE FROM links WHERE source_path = ?", (source_path,)
        )

    def replace_links(
        self, source_path: str, target_names: Iterable[str]
    ) -> None:
        """Replace all references from *source_path* atomically.

        This is the re-parse cycle: either the full new set is stored or,
        on failure, the previous set is left untouched.
        """
        targets = list(target_names)
        with self.store.transaction():
            self.clear_links_from(source_path)
            for target in targets:
                self.register_link(source_path, target)
        logger.debug("Registered %d links from %s", len(targets), source_path)

    def update_source_path(self, old_path: str, new_path: str) -> None:
        """Rebind references from a renamed note to its new path."""
        self.store.execute(
            "UPDATE OR REPLACE links SET source_path = ? WHERE source_path = ?",
            (new_path, old_path),
        )

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, target: str) -> str | None:
        """Return the remote page id for *target*, or ``None``.

        Heading and block anchors are ignored.
        """
        name = normalize_target(target)
        if not name:
            return None

        if "/" in name:
            row = self.store.query_one(
                "SELECT notion_page_id FROM sync_state "
                "WHERE obsidian_path IN (?, ?) AND notion_page_id != '' "
                "ORDER BY obsidian_path LIMIT 1",
                (name + MARKDOWN_SUFFIX, name),
            )
            if row is not None:
                return row[0]

        suffix = f"/{name}{MARKDOWN_SUFFIX}"
        row = self.store.query_one(
            """
            SELECT notion_page_id FROM sync_state
            WHERE (
                obsidian_path = ?
                OR substr(obsidian_path, -length(?)) = ?
                OR obsidian_path = ?
            )
            AND notion_page_id != ''
            ORDER BY obsidian_path
            LIMIT 1
            """,
            (name, suffix, suffix, name + MARKDOWN_SUFFIX),
        )
        if row is None:
            return None
        return row[0]

    def lookup_path(self, page_id: str) -> str | None:
        """Return the vault path tracked for a remote page id."""
        row = self.store.query_one(
            "SELECT obsidian_path FROM sync_state WHERE notion_page_id = ? "
            "ORDER BY obsidian_path LIMIT 1",
            (page_id,),
        )
        if row is None:
            return None
        return row[0]

    def resolve_extended(
        self, target: str, enable_fuzzy: bool | None = None
    ) -> ResolveResult:
        """Resolve *target* keeping its heading / block anchors.

        Args:
            target: Raw reference, e.g. ``"Page#Heading^block-id"``.
            enable_fuzzy: Fall back to fuzzy matching when exact
                resolution fails.  ``None`` uses the registry settings.
        """
        if enable_fuzzy is None:
            enable_fuzzy = self.settings.fuzzy
        page, heading, block_ref = parse_target(target)

        page_id = self.resolve(page)
        if page_id is not None:
            return ResolveResult(
                page_id=page_id,
                path=self.lookup_path(page_id) or "",
                heading=heading,
                block_ref=block_ref,
                found=True,
            )

        if enable_fuzzy:
            match = self._best_fuzzy_match(page, self._synced_candidates())
            if match is not None:
                return ResolveResult(
                    page_id=match.page_id,
                    path=match.path,
                    heading=heading,
                    block_ref=block_ref,
                    found=True,
                    fuzzy_match=True,
                    distance=match.distance,
                )

        return ResolveResult(heading=heading, block_ref=block_ref)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_unresolved_links(self) -> list[LinkEntry]:
        return self._query_links("WHERE resolved = 0")

    def get_links_from(self, source_path: str) -> list[LinkEntry]:
        return self._query_links("WHERE source_path = ?", (source_path,))

    def get_backlinks(self, target_path: str) -> list[LinkEntry]:
        """Return references pointing at *target_path* (by path or name)."""
        name = posixpath.basename(target_path.removesuffix(MARKDOWN_SUFFIX))
        return self._query_links(
            "WHERE target_path = ? OR target_name = ?", (target_path, name)
        )

    def get_stats(self) -> LinkStats:
        """Return resolution counts and unresolved counts per source."""
        total = self.store.query_one("SELECT COUNT(*) FROM links")[0]
        resolved = self.store.query_one(
            "SELECT COUNT(*) FROM links WHERE resolved = 1"
        )[0]
        rows = self.store.query_all(
            """
            SELECT source_path, COUNT(*) AS cnt
            FROM links
            WHERE resolved = 0
            GROUP BY source_path
            ORDER BY cnt DESC, source_path
            """
        )
        return LinkStats(
            total=total,
            resolved=resolved,
            unresolved=total - resolved,
            by_source={row["source_path"]: row["cnt"] for row in rows},
        )

    # ------------------------------------------------------------------
    # Bulk passes
    # ------------------------------------------------------------------

    def resolve_all(self) -> int:
        """Resolve every unresolved reference by exact match only.

        Returns:
            Number of references newly resolved.
        """
        count = 0
        for link in self.get_unresolved_links():
            page_id = self.resolve(link.target_name)
            if page_id is None:
                continue
            path = self.lookup_path(page_id) or ""
            self._mark_resolved(link, path, page_id)
            count += 1
        logger.info("Resolved %d links", count)
        return count

    def resolve_all_with_fuzzy(
        self, enable_fuzzy: bool = True
    ) -> tuple[int, int]:
        """Resolve unresolved references, exact first, then fuzzy.

        Returns:
            Tuple of (exact_count, fuzzy_count).
        """
        unresolved = self.get_unresolved_links()
        candidates = self._synced_candidates() if enable_fuzzy else []

        exact = fuzzy = 0
        for link in unresolved:
            page, _, _ = parse_target(link.target_name)

            page_id = self.resolve(page)
            if page_id is not None:
                self._mark_resolved(
                    link, self.lookup_path(page_id) or "", page_id
                )
                exact += 1
                continue

            if not candidates:
                continue
            match = self._best_fuzzy_match(page, candidates)
            if match is not None:
                self._mark_resolved(link, match.path, match.page_id)
                fuzzy += 1

        logger.info("Resolved %d links exactly, %d fuzzily", exact, fuzzy)
        return exact, fuzzy

    def repair_links(self, dry_run: bool = True) -> list[RepairResult]:
        """Repair unresolved references with their best fuzzy match.

        Args:
            dry_run: Report what would change without writing.

        Returns:
            One result per reference that has a usable match.  A failed
            write is reported on its result rather than raised.
        """
        candidates = self._synced_candidates()
        results: list[RepairResult] = []

        for link in self.get_unresolved_links():
            page, _, _ = parse_target(link.target_name)
            match = self._best_fuzzy_match(page, candidates)
            if match is None:
                continue

            was_repaired = False
            error = None
            if not dry_run:
                try:
                    self._mark_resolved(link, match.path, match.page_id)
                    was_repaired = True
                except PersistenceError as exc:
                    logger.warning(
                        "Failed to repair link %s -> %s: %s",
                        link.source_path,
                        link.target_name,
                        exc,
                    )
                    error = str(exc)

            results.append(
                RepairResult(
                    source_path=link.source_path,
                    target_name=link.target_name,
                    matched_path=match.path,
                    matched_id=match.page_id,
                    score=match.score,
                    distance=match.distance,
                    was_repaired=was_repaired,
                    error=error,
                )
            )

        return results

    def get_suggestions_for_unresolved(
        self, max_suggestions: int = 3
    ) -> list[LinkSuggestion]:
        """Return ranked candidates for each unresolved reference.

        References without any candidate are omitted.  Nothing is written.
        """
        candidates = self._synced_candidates()
        if not candidates:
            return []

        suggestions: list[LinkSuggestion] = []
        for link in self.get_unresolved_links():
            page, _, _ = parse_target(link.target_name)
            matches = self.matcher.find_best_matches(
                page, candidates, max_suggestions
            )
            if matches:
                suggestions.append(
                    LinkSuggestion(
                        target=link.target_name,
                        source_path=link.source_path,
                        suggestions=matches,
                    )
                )
        return suggestions

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _synced_candidates(self) -> list[MatchResult]:
        rows = self.store.query_all(
            "SELECT obsidian_path, notion_page_id FROM sync_state "
            "WHERE notion_page_id IS NOT NULL AND notion_page_id != '' "
            "ORDER BY obsidian_path"
        )
        return [
            MatchResult(
                path=row["obsidian_path"], page_id=row["notion_page_id"]
            )
            for row in rows
        ]

    def _best_fuzzy_match(
        self, page: str, candidates: list[MatchResult]
    ) -> MatchResult | None:
        if not candidates:
            return None
        matches = self.matcher.find_best_matches(page, candidates, 1)
        if matches and matches[0].score >= MatchScore.FUZZY:
            return matches[0]
        return None

    def _mark_resolved(
        self, link: LinkEntry, target_path: str, page_id: str
    ) -> None:
        self.store.execute(
            "UPDATE links SET target_path = ?, notion_page_id = ?, "
            "resolved = 1 WHERE id = ?",
            (target_path or None, page_id, link.id),
        )

    def _query_links(
        self, where: str, params: tuple[str, ...] = ()
    ) -> list[LinkEntry]:
        rows = self.store.query_all(
            f"SELECT {_LINK_COLUMNS} FROM links {where} ORDER BY id", params
        )
        return [
            LinkEntry(
                id=row["id"],
                source_path=row["source_path"],
                target_name=row["target_name"],
                target_path=row["target_path"] or "",
                notion_page_id=row["notion_page_id"] or "",
                resolved=bool(row["resolved"]),
            )
            for row in rows
        ]


# ----------------------------------------------------------------------
# Target parsing
# ----------------------------------------------------------------------


def normalize_target(target: str) -> str:
    """Strip ``.md`` and any heading / block anchor from a target."""
    target = target.removesuffix(MARKDOWN_SUFFIX)
    target = target.split("#", 1)[0]
    target = target.split("^", 1)[0]
    return target.removesuffix(MARKDOWN_SUFFIX)


def parse_target(target: str) -> tuple[str, str, str]:
    """Split a reference into (page, heading, block_ref).

    Examples::

        "Page"                  -> ("Page", "", "")
        "Page#Heading"          -> ("Page", "Heading", "")
        "Page^block-id"         -> ("Page", "", "block-id")
        "Page#Heading^block-id" -> ("Page", "Heading", "block-id")
    """
    block_ref = ""
    heading = ""
    if "^" in target:
        target, block_ref = target.split("^", 1)
    if "#" in target:
        target, heading = target.split("#", 1)
    return target.removesuffix(MARKDOWN_SUFFIX), heading, block_ref
