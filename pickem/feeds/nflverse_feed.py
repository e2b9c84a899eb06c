from typing import List

from loguru import logger

from pickem.feeds.base_feed import FeedClient, FeedError
from pickem.normalization.csv_parser import FeedRecord, header_names, parse_csv


async def fetch_feed_records(feed: FeedClient, location: str) -> List[FeedRecord]:
    """Fetches an nflverse-style games CSV and parses it into records.

    Raises:
        FeedError: the feed could not be fetched, or held no data rows.
    """
    logger.info(f"Fetching CSV feed: {location}")
    text = await feed.fetch_text(location)
    records = parse_csv(text)
    if not records:
        logger.warning(f"CSV feed {location} held no rows: {text[:200]!r}")
        raise FeedError("parsed 0 rows from feed")
    logger.debug(f"Feed headers: {header_names(text)[:20]}")
    logger.info(f"Parsed {len(records)} rows from {location}")
    return records
