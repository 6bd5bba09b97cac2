# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
On-disk snapshot of pull requests, tags and releases.

One JSON file per record, named by pull request number, tag name or release
id, so historical data does not have to be fetched again on every run.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, Iterator, List, Optional
from urllib.parse import quote

import bittensor as bt

from ciaudit.classes import Tag
from ciaudit.utils.github_api_tools import GitHubClient


def _numeric_key(path: Path):
    try:
        return (0, int(path.stem), path.stem)
    except ValueError:
        return (1, 0, path.stem)


def _lexical_key(path: Path):
    return path.stem


def _describe_tag(raw: Dict[str, Any]) -> str:
    tag = Tag.from_github_response(raw)
    return f"{tag.name} at {tag.sha[:12]}"


@dataclass(frozen=True)
class Collection:
    """How one record type is fetched, named on disk and ordered when read back."""

    name: str
    fetch: Callable[[GitHubClient], AsyncIterator[Dict[str, Any]]]
    record_id: Callable[[Dict[str, Any]], str]
    sort_key: Callable[[Path], Any]
    describe: Callable[[Dict[str, Any]], str]


PULLS = Collection(
    name='pull',
    fetch=lambda client: client.iter_pulls(state='all', sort='created', direction='asc'),
    record_id=lambda pr: str(pr['number']),
    sort_key=_numeric_key,
    describe=lambda pr: pr.get('html_url', ''),
)

TAGS = Collection(
    name='tag',
    fetch=lambda client: client.iter_tags(),
    # tag names such as epochs/daily/... contain slashes
    record_id=lambda tag: quote(tag['name'], safe=''),
    sort_key=_lexical_key,
    describe=_describe_tag,
)

RELEASES = Collection(
    name='release',
    fetch=lambda client: client.iter_releases(),
    record_id=lambda release: str(release['id']),
    sort_key=_numeric_key,
    describe=lambda release: release.get('html_url', ''),
)


class LocalStore:
    """Directory-backed snapshot with one sub-directory per collection."""

    COLLECTIONS = (PULLS, TAGS, RELEASES)

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def collection_dir(self, collection: Collection) -> Path:
        return self.data_dir / collection.name

    def write_record(self, collection: Collection, record: Dict[str, Any]) -> Path:
        record_id = collection.record_id(record)
        if '/' in record_id or record_id in ('', '.', '..'):
            raise ValueError(f"Cannot store {collection.name} record with id {record_id!r}")

        path = self.collection_dir(collection) / f'{record_id}.json'
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(record, f, ensure_ascii=False)
        return path

    def iter_records(self, collection: Collection) -> Iterator[Dict[str, Any]]:
        """Read records back in numeric (pulls, releases) or lexical (tags) order."""
        directory = self.collection_dir(collection)
        if not directory.exists():
            raise FileNotFoundError(f"No local {collection.name} data in {directory}; run update-data first")

        for path in sorted(directory.glob('*.json'), key=collection.sort_key):
            with open(path, 'r', encoding='utf-8') as f:
                yield json.load(f)

    def count(self, collection: Collection) -> int:
        directory = self.collection_dir(collection)
        if not directory.exists():
            return 0
        return sum(1 for _ in directory.glob('*.json'))

    async def update_collection(self, client: GitHubClient, collection: Collection) -> int:
        """Fetch every record of one collection and write it to disk."""
        self.collection_dir(collection).mkdir(parents=True, exist_ok=True)

        written = 0
        async for record in collection.fetch(client):
            path = self.write_record(collection, record)
            bt.logging.debug(f"Writing {path} ({collection.describe(record)})")
            written += 1

        bt.logging.info(f"Wrote {written} {collection.name} records to {self.collection_dir(collection)}")
        return written

    async def update(self, client: GitHubClient, collections: Optional[List[Collection]] = None) -> Dict[str, int]:
        """Refresh the snapshot, one collection after another."""
        counts = {}
        for collection in collections or self.COLLECTIONS:
            counts[collection.name] = await self.update_collection(client, collection)
        return counts
