"""
Markdown rendering of Kavita annotations.

Turns a flat list of annotations plus optional chapter/series lookups into a
single document: YAML frontmatter, then one section per series, book and
chapter with each highlight as a block quote.

Everything here is pure. The only non-deterministic input is the timestamp in
the frontmatter, which comes from an injectable clock.
"""

import re
from datetime import datetime, timezone
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple, TypeVar

import yaml

from kavita_annotations.models import (
    Annotation,
    ChapterInfoMap,
    FormatOptions,
    SeriesMetadata,
    SeriesMetadataMap,
)

DOCUMENT_TITLE = "Kavita Annotations"
EMPTY_PLACEHOLDER = "*No annotations found.*"
SEPARATOR = "---"

# Comment values Kavita stores when the user never wrote a note
_EMPTY_COMMENTS = ("", "{}")

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE_RUN = re.compile(r"\s+")
_HYPHEN_RUN = re.compile(r"-+")
_LINE_BREAK = re.compile(r"\r?\n")

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Slugs, tags and links
# ---------------------------------------------------------------------------

def slugify(text: str) -> str:
    """
    Convert text to a lowercase, hyphen-delimited slug.

    Characters other than ASCII letters, digits, whitespace and hyphens are
    dropped, whitespace runs become a single hyphen and hyphen runs collapse.
    The result never starts or ends with a hyphen, so slugify(slugify(x)) is
    always slugify(x).

    Args:
        text: Any display string

    Returns:
        Slug made of [a-z0-9-], possibly empty
    """
    slug = _NON_SLUG_CHARS.sub("", text.lower())
    slug = _WHITESPACE_RUN.sub("-", slug)
    slug = _HYPHEN_RUN.sub("-", slug)
    return slug.strip("-")


def make_tag(value: str, prefix: str = "") -> str:
    """Build an Obsidian tag; the prefix is used verbatim (e.g. "genre/")."""
    return f"#{prefix}{slugify(value)}"


def make_link(value: str) -> str:
    """Build a [[wikilink]] to a note named after value."""
    return f"[[{value}]]"


# ---------------------------------------------------------------------------
# Field resolution
# ---------------------------------------------------------------------------

def series_display_name(annotation: Annotation) -> str:
    return annotation.series_name or f"Series {annotation.series_id}"


def chapter_display_name(annotation: Annotation) -> str:
    return annotation.chapter_title or f"Chapter {annotation.chapter_id}"


def library_display_name(annotation: Annotation) -> str:
    return annotation.library_name or f"Library {annotation.library_id}"


def book_title(annotation: Annotation, chapter_info: Optional[ChapterInfoMap] = None) -> str:
    """Book title from the chapter lookup, or the series name when the chapter is unknown."""
    if chapter_info and annotation.chapter_id in chapter_info:
        return chapter_info[annotation.chapter_id].book_title
    return series_display_name(annotation)


def _first_chapter_info(group: Sequence[Annotation], chapter_info: Optional[ChapterInfoMap]):
    if not group or not chapter_info:
        return None
    return chapter_info.get(group[0].chapter_id)


def book_authors(group: Sequence[Annotation], chapter_info: Optional[ChapterInfoMap] = None) -> List[str]:
    info = _first_chapter_info(group, chapter_info)
    return list(info.authors) if info else []


def book_genres(group: Sequence[Annotation], chapter_info: Optional[ChapterInfoMap] = None) -> List[str]:
    info = _first_chapter_info(group, chapter_info)
    return list(info.genres) if info else []


def book_sort_order(group: Sequence[Annotation], chapter_info: Optional[ChapterInfoMap] = None) -> int:
    """Sort key for a book group; 0 when its first chapter is unmapped."""
    info = _first_chapter_info(group, chapter_info)
    return info.sort_order if info else 0


def author_names(metadata: Optional[SeriesMetadata]) -> List[str]:
    return list(metadata.writers) if metadata else []


def genre_names(metadata: Optional[SeriesMetadata]) -> List[str]:
    return list(metadata.genres) if metadata else []


# ---------------------------------------------------------------------------
# Single annotation
# ---------------------------------------------------------------------------

def _has_comment(comment: Optional[str]) -> bool:
    return comment is not None and comment.strip() not in _EMPTY_COMMENTS


def render_annotation(annotation: Annotation, options: FormatOptions) -> Optional[str]:
    """
    Render one annotation as a markdown block.

    Multi-paragraph highlights stay one continuous block quote: every line,
    blank ones included, gets the "> " prefix.

    Args:
        annotation: Annotation to render
        options: Format options (comments and spoilers are honoured here)

    Returns:
        The markdown block, or None when the annotation is a hidden spoiler
    """
    if annotation.contains_spoiler and not options.include_spoilers:
        return None

    lines = [f"> {line}" for line in _LINE_BREAK.split(annotation.selected_text)]

    if options.include_comments and _has_comment(annotation.comment):
        lines.append("")
        lines.append(f"*Note:* {annotation.comment}")

    if annotation.page_number > 0:
        lines.append("")
        lines.append(f"<small>Page {annotation.page_number}</small>")

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Grouping and ordering
# ---------------------------------------------------------------------------

def group_by(items: Iterable[T], key: Callable[[T], K]) -> Dict[K, List[T]]:
    """Group items by key, keeping first-seen key order and item order."""
    groups: Dict[K, List[T]] = {}
    for item in items:
        groups.setdefault(key(item), []).append(item)
    return groups


def group_by_series(annotations: Iterable[Annotation]) -> Dict[int, List[Annotation]]:
    return group_by(annotations, lambda a: a.series_id)


def group_by_book(annotations: Iterable[Annotation],
                  chapter_info: Optional[ChapterInfoMap] = None) -> Dict[str, List[Annotation]]:
    return group_by(annotations, lambda a: book_title(a, chapter_info))


def group_by_chapter(annotations: Iterable[Annotation]) -> Dict[int, List[Annotation]]:
    return group_by(annotations, lambda a: a.chapter_id)


def sorted_book_groups(annotations: Iterable[Annotation],
                       chapter_info: Optional[ChapterInfoMap] = None) -> List[Tuple[str, List[Annotation]]]:
    """Book groups ordered by sort order; sorted() is stable so ties keep first-seen order."""
    groups = group_by_book(annotations, chapter_info)
    return sorted(groups.items(), key=lambda entry: book_sort_order(entry[1], chapter_info))


# ---------------------------------------------------------------------------
# Headers
# ---------------------------------------------------------------------------

def _frontmatter_tag(prefix: str) -> str:
    prefix = prefix.rstrip("/")
    return f"{prefix}/annotations" if prefix else "annotations"


def generate_frontmatter(options: FormatOptions, now: datetime) -> List[str]:
    """YAML frontmatter lines, including the ``---`` fences."""
    metadata: Dict[str, object] = {"title": DOCUMENT_TITLE}
    if options.include_tags:
        metadata["tags"] = [_frontmatter_tag(options.tag_prefix), "kavita"]
    metadata["updated"] = now.isoformat()

    yaml_frontmatter = yaml.safe_dump(
        metadata, sort_keys=False, allow_unicode=True, default_flow_style=False)
    return ["---", *yaml_frontmatter.rstrip("\n").split("\n"), "---"]


def generate_series_header(annotation: Annotation, options: FormatOptions) -> List[str]:
    """Header block for a series, resolved from its first annotation."""
    name = series_display_name(annotation)
    lines = [f"## {name}", ""]
    if options.include_wikilinks:
        lines.append(f"**Series:** {make_link(name)}")
    lines.append(f"**Library:** {library_display_name(annotation)}")
    lines.append("")
    return lines


def generate_book_header(title: str, options: FormatOptions,
                         authors: Sequence[str] = (), genres: Sequence[str] = ()) -> List[str]:
    lines = [f"### {title}", ""]
    if authors:
        if options.include_wikilinks:
            names = [make_link(author) for author in authors]
        else:
            names = list(authors)
        lines.append(f"**Author:** {', '.join(names)}")
    if options.include_wikilinks:
        lines.append(f"**Book:** {make_link(title)}")
    if genres:
        lines.append(f"**Genres:** {', '.join(genres)}")
        if options.include_tags:
            tags = " ".join(make_tag(genre, options.tag_prefix) for genre in genres)
            lines.append(f"**Tags:** {tags}")
    lines.append("")
    return lines


def generate_chapter_header(annotation: Annotation) -> List[str]:
    return [f"#### Chapter: {chapter_display_name(annotation)}", ""]


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------

def _book_metadata(group: List[Annotation],
                   chapter_info: Optional[ChapterInfoMap],
                   series_metadata: Optional[SeriesMetadataMap]) -> Tuple[List[str], List[str]]:
    """Authors and genres for a book group.

    Chapter info wins; series metadata only fills in for books whose first
    chapter has no chapter info entry at all.
    """
    if _first_chapter_info(group, chapter_info) is None and series_metadata:
        metadata = series_metadata.get(group[0].series_id)
        return author_names(metadata), genre_names(metadata)
    return book_authors(group, chapter_info), book_genres(group, chapter_info)


def build_document(annotations: Sequence[Annotation],
                   options: FormatOptions,
                   series_metadata: Optional[SeriesMetadataMap] = None,
                   chapter_info: Optional[ChapterInfoMap] = None,
                   clock: Optional[Clock] = None) -> str:
    """
    Build the full markdown document for a set of annotations.

    Annotations are grouped series -> book -> chapter. Series and chapters keep
    the order they first appear in; books are ordered by their chapter sort
    order. Spoilers hidden by the options leave no trace in the output.

    Args:
        annotations: Annotations in server order
        options: Format options
        series_metadata: Optional series id -> metadata (legacy author/genre source)
        chapter_info: Optional chapter id -> book title, sort order, authors, genres
        clock: Returns the "updated" timestamp; defaults to the current UTC time

    Returns:
        Markdown document text
    """
    now = (clock or _utc_now)()
    md_content = generate_frontmatter(options, now)
    md_content.append("")
    md_content.append(f"# {DOCUMENT_TITLE}")
    md_content.append("")

    if not annotations:
        md_content.append(EMPTY_PLACEHOLDER)
        md_content.append("")
        return "\n".join(md_content)

    for series_annotations in group_by_series(annotations).values():
        md_content.extend(generate_series_header(series_annotations[0], options))

        for title, book_annotations in sorted_book_groups(series_annotations, chapter_info):
            authors, genres = _book_metadata(book_annotations, chapter_info, series_metadata)
            md_content.extend(generate_book_header(title, options, authors, genres))

            for chapter_annotations in group_by_chapter(book_annotations).values():
                md_content.extend(generate_chapter_header(chapter_annotations[0]))

                for annotation in chapter_annotations:
                    rendered = render_annotation(annotation, options)
                    if rendered is None:
                        continue
                    md_content.extend([rendered, "", SEPARATOR, ""])

    return "\n".join(md_content)
