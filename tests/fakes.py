"""In-memory fakes for the mirror store and the canonical graph source.

FakeMirrorStore implements the same async interface as Neo4jMirrorStore:
- every node and edge is scoped by run_id, exactly like the Cypher
- typed links / resolutions are only created when both endpoints exist
  in the same run (MATCH semantics)
- traversal rows use the same ORDER BY keys as the Cypher queries
- failures can be injected per operation via ``fail(...)``
- every call is recorded in ``calls`` for inspection
"""
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from domains.core.exceptions import MirrorConnectionError
from domains.mirror_hub.core.models import (
    GraphCounts,
    MirrorCounts,
    NoteRow,
    ResolvedTarget,
    RowKind,
    TraversalRow,
    TypedLinkRow,
)
from domains.mirror_hub.source.base import GraphSource


class FakeMirrorStore:
    """Run-scoped in-memory mirror store."""

    def __init__(self) -> None:
        self.notes: Dict[tuple, Dict[str, Any]] = {}
        self.targets: set = set()
        self.typed_links: List[Dict[str, Any]] = []
        self.resolved: Dict[tuple, str] = {}
        self.state: Optional[Dict[str, Any]] = None
        self.schema_ready = False
        self.calls: List[str] = []
        self.written_chunks: List[tuple] = []
        self._failures: Dict[str, Exception] = {}

    # ---- failure injection ----

    def fail(self, operation: str, error: Exception) -> None:
        """Make ``operation`` raise ``error`` (e.g. "write_rows:typed_links")."""
        self._failures[operation] = error

    def heal(self, operation: Optional[str] = None) -> None:
        if operation is None:
            self._failures.clear()
        else:
            self._failures.pop(operation, None)

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        error = self._failures.get(operation)
        if error is not None:
            raise error

    # ---- schema ----

    async def ensure_schema(self) -> None:
        self._enter("ensure_schema")
        self.schema_ready = True

    # ---- writes ----

    async def write_rows(self, kind: RowKind, run_id: str, rows: List[Dict[str, Any]]) -> None:
        self._enter(f"write_rows:{kind.value}")
        self.written_chunks.append((kind, run_id, len(rows)))

        if kind is RowKind.NOTES:
            for row in rows:
                self.notes[(run_id, row["path"])] = dict(row)
        elif kind is RowKind.TARGETS:
            for row in rows:
                self.targets.add((run_id, row["target"]))
        elif kind is RowKind.TYPED_LINKS:
            for row in rows:
                if (run_id, row["from_path"]) not in self.notes:
                    continue
                if (run_id, row["target"]) not in self.targets:
                    continue
                self.typed_links.append({"run_id": run_id, **row})
        elif kind is RowKind.RESOLVED_LINKS:
            for row in rows:
                if (run_id, row["target"]) not in self.targets:
                    continue
                if (run_id, row["to_path"]) not in self.notes:
                    continue
                self.resolved[(run_id, row["target"], row["to_path"])] = row["matched_by"]

    # ---- counts & state ----

    async def read_counts(self, run_id: str) -> MirrorCounts:
        self._enter("read_counts")
        return MirrorCounts(
            notes=sum(1 for (rid, _) in self.notes if rid == run_id),
            typed_links=sum(1 for link in self.typed_links if link["run_id"] == run_id),
            targets=sum(1 for (rid, _) in self.targets if rid == run_id),
            resolved_links=sum(1 for (rid, _, _) in self.resolved if rid == run_id),
        )

    async def read_state(self) -> Optional[Dict[str, Any]]:
        self._enter("read_state")
        return dict(self.state) if self.state else None

    async def mark_active(self, run_id: str, at: str) -> None:
        self._enter("mark_active")
        self.state = {
            **(self.state or {}),
            "active_run_id": run_id,
            "status": "ok",
            "last_success_at": at,
            "last_error": None,
            "last_error_at": None,
        }

    async def mark_error(self, message: str, at: str) -> None:
        self._enter("mark_error")
        state = self.state or {}
        self.state = {
            "active_run_id": state.get("active_run_id"),
            "last_success_at": state.get("last_success_at"),
            "status": "error",
            "last_error": message,
            "last_error_at": at,
        }

    # ---- traversal ----

    async def note_exists(self, run_id: str, path: str) -> bool:
        self._enter("note_exists")
        return (run_id, path) in self.notes

    def _resolved_paths(self, run_id: str, target: str) -> List[str]:
        return sorted(
            to_path for (rid, tgt, to_path) in self.resolved
            if rid == run_id and tgt == target
        )

    async def query_outgoing(
        self, run_id: str, path: str, limit: int, include_unresolved: bool = False
    ) -> List[TraversalRow]:
        self._enter("query_outgoing")
        rows = []
        for link in self.typed_links:
            if link["run_id"] != run_id or link["from_path"] != path:
                continue
            to_paths = self._resolved_paths(run_id, link["target"]) or [None]
            if to_paths == [None] and not include_unresolved:
                continue  # WHERE to IS NOT NULL OR $include_unresolved
            for to_path in to_paths:
                rows.append((link["position"], TraversalRow(
                    from_path=link["from_path"],
                    to_path=to_path,
                    rel=link["rel"],
                    target=link["target"],
                    to_wikilink=link["to_wikilink"],
                )))
        # ORDER BY position, rel, target, to_path (nulls last)
        rows.sort(key=lambda item: (
            item[0], item[1].rel, item[1].target, item[1].to_path is None, item[1].to_path or "",
        ))
        return [row for _, row in rows[:limit]]

    async def query_incoming(self, run_id: str, path: str, limit: int) -> List[TraversalRow]:
        self._enter("query_incoming")
        targets = {
            tgt for (rid, tgt, to_path) in self.resolved
            if rid == run_id and to_path == path
        }
        rows = []
        for link in self.typed_links:
            if link["run_id"] != run_id or link["target"] not in targets:
                continue
            rows.append((link["position"], TraversalRow(
                from_path=link["from_path"],
                to_path=path,
                rel=link["rel"],
                target=link["target"],
                to_wikilink=link["to_wikilink"],
            )))
        # ORDER BY from_path, position, rel, target
        rows.sort(key=lambda item: (item[1].from_path, item[0], item[1].rel, item[1].target))
        return [row for _, row in rows[:limit]]

    # ---- retention ----

    async def list_run_ids(self) -> List[str]:
        self._enter("list_run_ids")
        run_ids = {rid for (rid, _) in self.notes} | {rid for (rid, _) in self.targets}
        return sorted(run_ids)

    async def delete_run(self, run_id: str, batch_size: int = 1000) -> int:
        self._enter("delete_run")
        note_keys = [key for key in self.notes if key[0] == run_id]
        target_keys = [key for key in self.targets if key[0] == run_id]
        for key in note_keys:
            del self.notes[key]
        for key in target_keys:
            self.targets.discard(key)
        self.typed_links = [link for link in self.typed_links if link["run_id"] != run_id]
        self.resolved = {key: value for key, value in self.resolved.items() if key[0] != run_id}
        return len(note_keys) + len(target_keys)

    # ---- helpers for tests ----

    def traversal_queries(self) -> List[str]:
        return [c for c in self.calls if c in ("query_outgoing", "query_incoming")]


def store_factory(store: FakeMirrorStore):
    """Build a MirrorService store factory that always yields ``store``."""
    opened = []

    @asynccontextmanager
    async def factory(config):
        opened.append(config)
        yield store

    factory.opened = opened
    return factory


def unreachable_store_factory(message: str = "Connection refused"):
    """Store factory that fails like an unreachable Neo4j."""

    @asynccontextmanager
    async def factory(config):
        raise MirrorConnectionError(config.uri, message)
        yield  # pragma: no cover

    return factory


class FakeGraphSource(GraphSource):
    """In-memory canonical graph.

    Targets resolve by exact path, ``<target>.md``, then title.
    ``counts_override`` lets a test make the source disagree with its rows.
    """

    def __init__(
        self,
        notes: List[NoteRow],
        typed_links: List[TypedLinkRow],
        counts_override: Optional[GraphCounts] = None,
    ) -> None:
        self.notes = list(notes)
        self.typed_links = list(typed_links)
        self.counts_override = counts_override
        self.resolve_calls: List[tuple] = []

    def list_notes_for_sync(self) -> List[NoteRow]:
        return list(self.notes)

    def list_typed_links_for_sync(self) -> List[TypedLinkRow]:
        return list(self.typed_links)

    def resolve_paths_by_target(self, target: str, limit: int) -> List[ResolvedTarget]:
        self.resolve_calls.append((target, limit))
        out: List[ResolvedTarget] = []
        seen = set()
        candidates = [
            ("path", [n.path for n in self.notes if n.path in (target, f"{target}.md")]),
            ("title", [n.path for n in self.notes if n.title == target]),
        ]
        for matched_by, paths in candidates:
            for path in sorted(paths):
                if path in seen:
                    continue
                seen.add(path)
                out.append(ResolvedTarget(path=path, matched_by=matched_by))
                if len(out) >= limit:
                    return out
        return out

    def get_graph_counts(self) -> GraphCounts:
        if self.counts_override is not None:
            return self.counts_override
        return GraphCounts(notes=len(self.notes), typed_links=len(self.typed_links))


def link(from_path: str, target: str, rel: str = "supports", position: int = 0) -> TypedLinkRow:
    """Shorthand for a typed link whose wikilink text is ``[[target]]``."""
    return TypedLinkRow(
        from_path=from_path,
        rel=rel,
        to_target=target,
        to_wikilink=f"[[{target}]]",
        position=position,
    )


def notes(*paths: str) -> List[NoteRow]:
    return [NoteRow(path=path, title=path) for path in paths]
