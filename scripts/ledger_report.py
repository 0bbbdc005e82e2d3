"""Summarize the persisted record: mappings, receipt statuses, claims.

Reads the same store the service writes (remote URL or local file), so it
can run next to a live instance without touching its in-memory cache.
"""

import argparse
import asyncio
import json
from collections import Counter

import httpx

from passdrop.store.document import LedgerDocument
from passdrop.store.remote import FileRecordStore, RemoteRecordStore


async def fetch(store_url: str, api_key: str, api_key_header: str, file_path: str) -> LedgerDocument:
    """Load and validate the document from the configured backend."""

    async with httpx.AsyncClient(timeout=10.0) as client:
        if store_url:
            store = RemoteRecordStore(client, store_url, api_key, api_key_header)
        else:
            store = FileRecordStore(file_path)
        return LedgerDocument.model_validate(await store.get())


def main() -> None:
    """CLI entrypoint for ledger inspection."""

    parser = argparse.ArgumentParser(description="Print a summary of the passdrop record.")
    parser.add_argument("--store-url", default="")
    parser.add_argument("--api-key", default="")
    parser.add_argument("--api-key-header", default="X-Master-Key")
    parser.add_argument("--file", default="storage/db.json")
    parser.add_argument("--status", default=None, help="List receipt ids with this status")
    args = parser.parse_args()

    document = asyncio.run(fetch(args.store_url, args.api_key, args.api_key_header, args.file))
    statuses = Counter(record.status for record in document.delivered_receipts.values())
    report = {
        "mappings": len(document.mappings),
        "receipts": dict(statuses),
        "claims": len(document.delivered_passes),
    }
    if args.status:
        report["receipt_ids"] = sorted(
            receipt_id
            for receipt_id, record in document.delivered_receipts.items()
            if record.status == args.status
        )
    print(json.dumps(report, indent=2))


if __name__ == "__main__":
    main()
