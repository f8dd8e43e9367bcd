"""
Extraction Rules: Heuristic File Records from Unknown JSON Shapes

The folder page fills its file list from asynchronous API calls whose response
layout is undocumented and differs between accounts, regions and deployments.
Instead of hard-coding one shape, every observed JSON body is run through an
ordered table of rules. A rule names where the record array lives and which
field aliases carry the name, size, direct URL and id of each record.

The first rule whose path resolves to an array wins. Supporting a new shape
means adding a row to EXTRACTION_RULES, not another branch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple
import logging

logger = logging.getLogger("folder-stream.extract")


@dataclass(frozen=True)
class FieldAliases:
    """Record keys tried in order for each descriptor field."""
    name: Tuple[str, ...] = ("server_filename", "name", "filename")
    size: Tuple[str, ...] = ("size", "filesize")
    direct_url: Tuple[str, ...] = ("dlink", "downloadUrl", "directUrl")
    id: Tuple[str, ...] = ("fs_id", "id", "file_id")


@dataclass(frozen=True)
class ExtractionRule:
    """Location of a record array plus the aliases used to read its records."""
    path: Tuple[str, ...]
    aliases: FieldAliases = field(default_factory=FieldAliases)

    def candidates(self, body: Any) -> Optional[List[Any]]:
        node = body
        for key in self.path:
            if not isinstance(node, dict):
                return None
            node = node.get(key)
        return node if isinstance(node, list) else None


# Priority order matters: a body carrying both "list" and "data.list" is read
# from "list".
EXTRACTION_RULES: Tuple[ExtractionRule, ...] = (
    ExtractionRule(path=("list",)),
    ExtractionRule(path=("data", "list")),
    ExtractionRule(path=("data",)),
)


@dataclass(frozen=True)
class FileDescriptor:
    """
    One file discovered in a folder listing.

    Attributes:
        id: Server-assigned id, or the name when the record has none
        name: Display filename as reported by the origin
        size: Byte count if reported
        direct_url: Byte-fetchable URL if one appeared in the response
    """
    id: Any
    name: str
    size: Optional[Any] = None
    direct_url: Optional[str] = None

    @property
    def dedup_key(self) -> str:
        return f"{self.id}:{self.name}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the public JSON shape."""
        return {
            "id": self.id,
            "name": self.name,
            "size": self.size,
            "directUrl": self.direct_url,
        }


def _first_truthy(record: Dict[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = record.get(key)
        if value:
            return value
    return None


def _first_text(record: Dict[str, Any], keys: Iterable[str]) -> Optional[str]:
    # Non-string values (numbers, objects) are skipped, not coerced.
    for key in keys:
        value = record.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _first_present(record: Dict[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def match_rule(
    body: Any,
    rules: Sequence[ExtractionRule] = EXTRACTION_RULES,
) -> Optional[Tuple[ExtractionRule, List[Any]]]:
    """
    Find the first rule whose path yields a record array.

    Returns:
        (rule, records) or None when the body matches no known shape
    """
    for rule in rules:
        records = rule.candidates(body)
        if records is not None:
            return rule, records
    return None


def descriptor_from_record(record: Any, aliases: FieldAliases = FieldAliases()) -> Optional[FileDescriptor]:
    """
    Normalize one record. Records without a usable name yield None.

    Name and direct URL must be non-empty strings; an alias holding any other
    type is passed over in favor of the next one.
    """
    if not isinstance(record, dict):
        return None
    name = _first_text(record, aliases.name)
    if not name:
        return None
    return FileDescriptor(
        id=_first_truthy(record, aliases.id) or name,
        name=name,
        size=_first_present(record, aliases.size),
        direct_url=_first_text(record, aliases.direct_url),
    )


class FileCollector:
    """
    Accumulates descriptors across all responses of one crawl.

    Adding is idempotent and order-insensitive with respect to the final set:
    a record whose "id:name" key was already seen is ignored, so a page that
    re-polls its listing endpoint does not double-count files.

    Usage:
        collector = FileCollector()
        collector.add_body(json_body)
        files = collector.files(limit=200)
    """

    def __init__(self, rules: Sequence[ExtractionRule] = EXTRACTION_RULES):
        self.rules = tuple(rules)
        self._seen: Set[str] = set()
        self._files: List[FileDescriptor] = []

    def add_body(self, body: Any) -> int:
        """
        Extract descriptors from one decoded JSON body.

        Args:
            body: Decoded JSON value of an observed response

        Returns:
            Number of new descriptors accepted
        """
        matched = match_rule(body, self.rules)
        if matched is None:
            return 0

        rule, records = matched
        added = 0
        for record in records:
            descriptor = descriptor_from_record(record, rule.aliases)
            if descriptor is None or descriptor.dedup_key in self._seen:
                continue
            self._seen.add(descriptor.dedup_key)
            self._files.append(descriptor)
            added += 1

        if added:
            logger.debug(f"[EXTRACT] path={'.'.join(rule.path)} added={added} total={len(self._files)}")
        return added

    def files(self, limit: Optional[int] = None) -> List[FileDescriptor]:
        """Descriptors in first-seen order, truncated to limit if given."""
        if limit is None:
            return list(self._files)
        return self._files[:max(limit, 0)]

    def __len__(self) -> int:
        return len(self._files)
