"""Typed records for Kavita API data and formatting options.

Kavita returns camelCase JSON; each record has a ``from_api`` constructor that
maps it onto snake_case attributes and raises ``KavitaParseError`` when a
required field is missing or has the wrong type.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from kavita_annotations.errors import KavitaParseError


def _require_int(data: Dict[str, Any], key: str, record: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise KavitaParseError(f"{record}.{key}: integer", value)
    return value


def _optional_int(data: Dict[str, Any], key: str, default: int = 0) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return int(value)


def _optional_bool(data: Dict[str, Any], key: str, default: bool = False) -> bool:
    value = data.get(key)
    return value if isinstance(value, bool) else default


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    return value if isinstance(value, str) else None


def _names(entries: Any, key: str) -> List[str]:
    """Pull display names out of a list of Kavita person/genre objects."""
    if not isinstance(entries, list):
        return []
    names = []
    for entry in entries:
        if isinstance(entry, dict) and isinstance(entry.get(key), str) and entry[key]:
            names.append(entry[key])
        elif isinstance(entry, str) and entry:
            names.append(entry)
    return names


def _ensure_dict(data: Any, record: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise KavitaParseError(f"{record} object", data)
    return data


@dataclass(frozen=True)
class Annotation:
    """A single highlight or note tied to a chapter of a book."""

    id: int
    chapter_id: int
    volume_id: int
    series_id: int
    library_id: int
    selected_text: str = ""
    comment: Optional[str] = None
    contains_spoiler: bool = False
    page_number: int = 0
    selected_slot_index: int = 0
    xpath: Optional[str] = None
    ending_xpath: Optional[str] = None
    chapter_title: Optional[str] = None
    series_name: Optional[str] = None
    library_name: Optional[str] = None
    owner_user_id: int = 0
    owner_username: Optional[str] = None
    created_utc: Optional[str] = None
    last_modified_utc: Optional[str] = None

    @classmethod
    def from_api(cls, data: Any) -> "Annotation":
        data = _ensure_dict(data, "Annotation")
        return cls(
            id=_require_int(data, "id", "Annotation"),
            chapter_id=_require_int(data, "chapterId", "Annotation"),
            volume_id=_require_int(data, "volumeId", "Annotation"),
            series_id=_require_int(data, "seriesId", "Annotation"),
            library_id=_require_int(data, "libraryId", "Annotation"),
            selected_text=_optional_str(data, "selectedText") or "",
            comment=_optional_str(data, "comment"),
            contains_spoiler=_optional_bool(data, "containsSpoiler"),
            page_number=_optional_int(data, "pageNumber"),
            selected_slot_index=_optional_int(data, "selectedSlotIndex"),
            xpath=_optional_str(data, "xPath"),
            ending_xpath=_optional_str(data, "endingXPath"),
            chapter_title=_optional_str(data, "chapterTitle"),
            series_name=_optional_str(data, "seriesName"),
            library_name=_optional_str(data, "libraryName"),
            owner_user_id=_optional_int(data, "ownerUserId"),
            owner_username=_optional_str(data, "ownerUsername"),
            created_utc=_optional_str(data, "createdUtc"),
            last_modified_utc=_optional_str(data, "lastModifiedUtc"),
        )


@dataclass(frozen=True)
class ChapterInfo:
    """Book-level details for a chapter, resolved from the series volumes."""

    chapter_id: int
    book_title: str
    sort_order: int = 0
    authors: List[str] = field(default_factory=list)
    genres: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SeriesMetadata:
    """Series-level metadata (legacy source of authors and genres)."""

    series_id: int
    summary: Optional[str] = None
    writers: List[str] = field(default_factory=list)
    genres: List[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Any) -> "SeriesMetadata":
        data = _ensure_dict(data, "SeriesMetadata")
        return cls(
            series_id=_require_int(data, "seriesId", "SeriesMetadata"),
            summary=_optional_str(data, "summary"),
            writers=_names(data.get("writers"), "name"),
            genres=_names(data.get("genres"), "title"),
        )


@dataclass(frozen=True)
class Chapter:
    id: int
    number: str = ""
    title_name: Optional[str] = None
    writers: List[str] = field(default_factory=list)
    genres: List[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Any) -> "Chapter":
        data = _ensure_dict(data, "Chapter")
        # Older servers send ``title`` instead of ``titleName``
        title = _optional_str(data, "titleName") or _optional_str(data, "title")
        return cls(
            id=_require_int(data, "id", "Chapter"),
            number=str(data.get("number", "") or ""),
            title_name=title or None,
            writers=_names(data.get("writers"), "name"),
            genres=_names(data.get("genres"), "title"),
        )


@dataclass(frozen=True)
class Volume:
    id: int
    number: int
    name: Optional[str] = None
    chapters: List[Chapter] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Any) -> "Volume":
        data = _ensure_dict(data, "Volume")
        chapters = data.get("chapters", [])
        if not isinstance(chapters, list):
            raise KavitaParseError("Volume.chapters: list", chapters)
        return cls(
            id=_require_int(data, "id", "Volume"),
            number=_optional_int(data, "number"),
            name=_optional_str(data, "name") or None,
            chapters=[Chapter.from_api(c) for c in chapters],
        )


@dataclass(frozen=True)
class Library:
    id: int
    name: str
    type: int = 0

    @classmethod
    def from_api(cls, data: Any) -> "Library":
        data = _ensure_dict(data, "Library")
        return cls(
            id=_require_int(data, "id", "Library"),
            name=_optional_str(data, "name") or "",
            type=_optional_int(data, "type"),
        )


@dataclass(frozen=True)
class Series:
    id: int
    name: str
    library_id: Optional[int] = None

    @classmethod
    def from_api(cls, data: Any) -> "Series":
        data = _ensure_dict(data, "Series")
        library_id = data.get("libraryId")
        return cls(
            id=_require_int(data, "id", "Series"),
            name=_optional_str(data, "name") or "",
            library_id=library_id if isinstance(library_id, int) else None,
        )


@dataclass(frozen=True)
class FormatOptions:
    """Switches controlling what the generated document contains."""

    include_comments: bool = True
    include_spoilers: bool = False
    include_tags: bool = True
    tag_prefix: str = ""
    include_wikilinks: bool = True


@dataclass(frozen=True)
class SyncResult:
    """Outcome of a sync: how many annotations were fetched and where they went."""

    count: int
    output_path: str


ChapterInfoMap = Dict[int, ChapterInfo]
SeriesMetadataMap = Dict[int, SeriesMetadata]
