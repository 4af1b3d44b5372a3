"""Incremental change detection between a remote listing and known documents."""
from typing import Iterable, Mapping

from kbbot.models.document import ChangeSet, Document, RemoteFile


def detect_changes(
    remote_files: Iterable[RemoteFile],
    known_documents: Mapping[str, Document],
) -> ChangeSet:
    """
    Classify remote files as new, updated or unchanged, and find deletions.

    A remote file unknown by name is new; a known one whose fingerprint
    differs is updated; a matching fingerprint is left out. Known documents
    missing from the listing are deleted. New and updated keep listing
    order. ``known_documents`` is only read.

    Args:
        remote_files: Fresh listing from the document store
        known_documents: Remembered documents keyed by name

    Returns:
        ChangeSet with new, updated and deleted entries
    """
    changes = ChangeSet()
    remote_names = set()

    for remote in remote_files:
        if remote.name in remote_names:
            # Names are unique; a repeated entry is ignored
            continue
        remote_names.add(remote.name)

        existing = known_documents.get(remote.name)
        if existing is None:
            changes.new.append(remote)
        elif existing.fingerprint != remote.fingerprint:
            changes.updated.append(remote)

    changes.deleted = [name for name in known_documents if name not in remote_names]
    return changes
