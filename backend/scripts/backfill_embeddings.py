"""Script to embed chunks that were stored without a vector."""

import argparse
import asyncio

from aidorag.core.config import get_config
from aidorag.core.di_container import container
from aidorag.core.logging import setup_logging


async def backfill_embeddings(document_id: str | None) -> int:
    """Run the backfill pass and print a summary."""
    setup_logging(log_level=get_config().log_level)

    result = await container.backfill().run(document_id=document_id)

    print(f"Chunks without embeddings: {result.total}")
    print(f"Fixed: {result.succeeded}")
    print(f"Failed: {result.failed}")
    return 0 if result.failed == 0 else 1


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--document-id", help="Only backfill this document's chunks")
    args = parser.parse_args()
    return asyncio.run(backfill_embeddings(args.document_id))


if __name__ == "__main__":
    raise SystemExit(main())
