#!/usr/bin/env python3
"""
Rewrite legacy totalReadingMinutes into totalReadingSeconds.

Reads are already normalized at ingestion; this makes the stored documents
match so other readers of the collection see a single unit.
Pass --apply to write; the default is a dry run.
"""

import os
import sys

from google.cloud import firestore

sys.path.append(os.path.join(os.path.dirname(__file__), '../cloud_function'))

from models.book import legacy_total_seconds

PROJECT_ID = os.environ.get("GCP_PROJECT_ID", "")


def migrate(apply=False):
    client = firestore.Client(project=PROJECT_ID or None)

    migrated = 0
    for doc in client.collection_group("books").stream():
        data = doc.to_dict() or {}
        if "totalReadingMinutes" not in data:
            continue

        seconds = legacy_total_seconds(data)
        print(f"{doc.reference.path}: {data.get('totalReadingMinutes')} min -> {seconds} s")

        if apply:
            doc.reference.update({
                "totalReadingSeconds": seconds,
                "totalReadingMinutes": firestore.DELETE_FIELD,
            })
        migrated += 1

    mode = "Migrated" if apply else "Would migrate"
    print(f"{mode} {migrated} document(s)")
    return migrated


if __name__ == "__main__":
    migrate(apply="--apply" in sys.argv[1:])
