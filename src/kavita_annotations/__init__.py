"""
Kavita Annotations - sync Kavita reading annotations into markdown notes.

Provides functionality for:
- Retrieving highlights and notes from a Kavita server
- Grouping them by series, book and chapter
- Rendering them as a single markdown note with tags and wikilinks
"""

from kavita_annotations.api import KavitaAPI
from kavita_annotations.formatting import build_document
from kavita_annotations.models import FormatOptions
from kavita_annotations.syncer import AnnotationSyncer

__version__ = "0.1.0"
__all__ = ["AnnotationSyncer", "FormatOptions", "KavitaAPI", "build_document"]
