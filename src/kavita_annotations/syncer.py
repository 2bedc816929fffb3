"""
Annotation sync: fetch from Kavita, render, write to the vault.

Fetching annotations and writing the note are all-or-nothing: any failure
aborts the sync before a document is produced. Per-series metadata is
best-effort: a series whose volumes or metadata can't be fetched simply falls
back to ID-based names.
"""

import logging
from typing import Callable, Iterable, List, Optional, Tuple

from kavita_annotations.api import KavitaAPI
from kavita_annotations.config import SyncConfig
from kavita_annotations.errors import KavitaNetworkError, KavitaParseError
from kavita_annotations.formatting import Clock, build_document
from kavita_annotations.models import (
    Annotation,
    ChapterInfo,
    ChapterInfoMap,
    SeriesMetadataMap,
    SyncResult,
)
from kavita_annotations.storage import VaultStorage

logger = logging.getLogger(__name__)


def unique_series_ids(annotations: Iterable[Annotation]) -> List[int]:
    """Series ids in the order they first appear."""
    return list(dict.fromkeys(a.series_id for a in annotations))


class AnnotationSyncer:
    """Orchestrates fetching annotations from Kavita and writing them to a vault."""

    def __init__(self, client: KavitaAPI, storage: VaultStorage, config: SyncConfig,
                 clock: Optional[Clock] = None):
        self.client = client
        self.storage = storage
        self.config = config
        self.clock = clock

    def fetch_chapter_info(self, series_ids: Iterable[int]) -> ChapterInfoMap:
        """
        Resolve book titles, sort order, authors and genres per chapter.

        A chapter's book title is its own title, else its volume's name, else
        "Volume {number}"; the volume number is the book's sort order.
        """
        chapter_info: ChapterInfoMap = {}
        for series_id in series_ids:
            try:
                volumes = self.client.get_volumes(series_id)
            except (KavitaNetworkError, KavitaParseError) as e:
                logger.warning("No volume info for series %s: %s", series_id, e)
                continue

            for volume in volumes:
                for chapter in volume.chapters:
                    chapter_info[chapter.id] = ChapterInfo(
                        chapter_id=chapter.id,
                        book_title=chapter.title_name or volume.name or f"Volume {volume.number}",
                        sort_order=volume.number,
                        authors=list(chapter.writers),
                        genres=list(chapter.genres),
                    )
        return chapter_info

    def fetch_series_metadata(self, series_ids: Iterable[int]) -> SeriesMetadataMap:
        metadata: SeriesMetadataMap = {}
        for series_id in series_ids:
            try:
                entry = self.client.get_series_metadata(series_id)
            except (KavitaNetworkError, KavitaParseError) as e:
                logger.warning("No metadata for series %s: %s", series_id, e)
                continue
            if entry is not None:
                metadata[series_id] = entry
        return metadata

    def _render(self) -> Tuple[int, str]:
        annotations = self.client.fetch_all_annotations()
        series_ids = unique_series_ids(annotations)
        series_metadata = self.fetch_series_metadata(series_ids)
        chapter_info = self.fetch_chapter_info(series_ids)

        markdown = build_document(
            annotations,
            self.config.format,
            series_metadata,
            chapter_info,
            clock=self.clock,
        )
        return len(annotations), markdown

    def render(self) -> str:
        """Fetch everything and return the document without writing it."""
        _, markdown = self._render()
        return markdown

    def sync_to_file(self) -> SyncResult:
        """
        Sync all annotations to the configured output note.

        Returns:
            SyncResult with the number of annotations fetched and the output path

        Raises:
            KavitaError: If annotations cannot be fetched
            VaultWriteError: If the note cannot be written
        """
        count, markdown = self._render()
        output_path = self.config.output_path
        self.storage.write_file(output_path, markdown)

        result = SyncResult(count=count, output_path=output_path)
        logger.info("Synced %d annotations to %s", result.count, result.output_path)
        return result


def sync_from_config(config: SyncConfig, clock: Optional[Clock] = None,
                     client_factory: Optional[Callable[[SyncConfig], KavitaAPI]] = None) -> SyncResult:
    """Build a client and storage from config and run one sync."""
    factory = client_factory or client_from_config
    with factory(config) as client:
        syncer = AnnotationSyncer(client, VaultStorage(config.vault_path), config, clock)
        return syncer.sync_to_file()


def client_from_config(config: SyncConfig) -> KavitaAPI:
    return KavitaAPI(
        base_url=config.kavita_url,
        api_key=config.api_key,
        timeout=config.timeout,
        retry=config.retry,
    )
