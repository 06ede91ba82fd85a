"""Script to re-extract entities and relations for a user's documents."""

import argparse
import asyncio
import json

from aidorag.core.config import get_config
from aidorag.core.di_container import container
from aidorag.core.logging import setup_logging


async def reprocess_entities(user_id: str, document_id: str | None) -> int:
    """Re-derive entities for processed documents and print the report."""
    setup_logging(log_level=get_config().log_level)

    reprocessor = container.reprocessor()
    report = await reprocessor.reprocess(user_id, document_id=document_id)

    print(json.dumps(report.to_dict(), indent=2))
    return 0 if report.failed == 0 else 1


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--user-id", required=True, help="Owner of the documents")
    parser.add_argument("--document-id", help="Only reprocess this document")
    args = parser.parse_args()
    return asyncio.run(reprocess_entities(args.user_id, args.document_id))


if __name__ == "__main__":
    raise SystemExit(main())
