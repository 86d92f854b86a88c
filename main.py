import asyncio
import csv
import os
import sys
from typing import List, Optional

from loguru import logger

from bulkadd.clients import DoofApiClient
from bulkadd.config import API_EMAIL, API_PASSWORD, ClientConfig, INPUT_FILE, LOG_LEVEL, OUTPUT_CSV
from bulkadd.models import BulkEntry, PlaceCandidate
from bulkadd.parsing import load_entries_from_csv, parse_raw_input
from bulkadd.processor import BulkAddProcessor

REVIEW_COLUMNS = ["line", "name", "city", "status", "error", "submitted", "place_id", "address", "zipcode", "neighborhood"]


def load_entries(file_path: str) -> List[BulkEntry]:
    """Load entries from a CSV (Name, Type, City, Tags) or a plain text file, one restaurant per line."""
    if file_path.lower().endswith(".csv"):
        return load_entries_from_csv(file_path)
    with open(file_path, encoding="utf-8") as f:
        return parse_raw_input(f.read())


async def ask_for_selection(entry: BulkEntry) -> Optional[PlaceCandidate]:
    """
    Prompt on stdin for one of the entry's candidates.

    Returns:
        Optional[PlaceCandidate]: The chosen candidate, or None to skip the entry.
    """
    print(f"\nLine {entry.line_number}: '{entry.search_query()}' matched {len(entry.candidates)} places")
    for i, cand in enumerate(entry.candidates, start=1):
        print(f"  {i}) {cand.name} | {cand.formatted_address}")
    while True:
        answer = (await asyncio.to_thread(input, "Pick a number (blank to skip): ")).strip()
        if not answer:
            return None
        if answer.isdigit() and 1 <= int(answer) <= len(entry.candidates):
            return entry.candidates[int(answer) - 1]
        print("Invalid choice")


def write_review(path: str, rows: List[dict]) -> None:
    if os.path.exists(path):
        os.remove(path)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=REVIEW_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(rows)


async def main():
    """
    Run one bulk-add batch end to end.

    - Loads entries from INPUT_FILE.
    - Resolves each entry, asking on stdin whenever several places match.
    - Submits the resolved restaurants and writes a review CSV.
    """
    # Initialize logs
    logger.remove()  # Remove default handler
    logger.add(sys.stderr, level=LOG_LEVEL, format="<green>{time:HH:mm:ss}</green> | <level>{message}</level>")

    entries = load_entries(INPUT_FILE)

    async with DoofApiClient(ClientConfig.from_env()) as client:
        if not client.token and API_EMAIL and API_PASSWORD:
            await client.login(API_EMAIL, API_PASSWORD)

        processor = BulkAddProcessor(client)
        processor.load(entries)

        waiting = await processor.process()
        while waiting is not None:
            choice = await ask_for_selection(waiting)
            if choice is None:
                waiting = await processor.cancel_selection()
            else:
                waiting = await processor.select_result(choice)

        result = await processor.submit_items()
        print(f"Added {result.added}, failed {result.failed}")
        for error in result.errors:
            print(f"  - {error}")

        write_review(OUTPUT_CSV, processor.rows)


if __name__ == "__main__":
    asyncio.run(main())
