#!/usr/bin/env python3
"""
Per-item failure taxonomy

The reconciler catches these at its boundary: not-found, mismatch and
provider failures quarantine the item as an ``error`` entry, a rename
collision becomes a warning on an otherwise active entry.
"""


class MediaCatalogError(Exception):
    """Base class for all catalog pipeline failures"""


class ClassificationAmbiguous(MediaCatalogError):
    """Node does not fit any classification rule (resolves to Unclassified)"""


class NotAMovie(MediaCatalogError):
    """Node parsed as an episode or audio file where a movie was expected"""


class MetadataNotFound(MediaCatalogError):
    """Resolver found no candidate for the parsed title"""


class TitleMismatch(MediaCatalogError):
    """Best candidate failed title validation"""

    def __init__(self, parsed_title: str, candidate_title: str, confidence: float = 0.0):
        self.parsed_title = parsed_title
        self.candidate_title = candidate_title
        self.confidence = confidence
        super().__init__(
            f"Title mismatch: '{parsed_title}' vs '{candidate_title}' "
            f"(confidence {confidence:.2f})"
        )


class RenameCollision(MediaCatalogError):
    """Rename target already exists; never overwritten"""

    def __init__(self, source, destination):
        self.source = source
        self.destination = destination
        super().__init__(f"Destination exists: {destination}")


class ProviderUnavailable(MediaCatalogError):
    """External collaborator failed in a retryable way"""


class ProviderTimeout(ProviderUnavailable):
    """External collaborator did not answer within its timeout"""


class ScanInProgress(MediaCatalogError):
    """Another run holds the catalog lock"""
