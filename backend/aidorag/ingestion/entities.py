"""Entity and relation extraction for the document knowledge graph."""

from __future__ import annotations

import json
import re
import uuid
from dataclasses import dataclass, field
from typing import Any

from aidorag.core.locks import DocumentLockManager
from aidorag.core.logging import document_context, get_logger
from aidorag.core.protocols import GenerationProvider, RelationalStore
from aidorag.ingestion.models import (
    DocumentReprocessResult,
    DocumentStatus,
    ExtractedEntity,
    ExtractedRelation,
    ExtractionCounts,
    ExtractionResult,
    ReprocessReport,
)
from aidorag.ingestion.writer import CHUNKS_TABLE, DOCUMENTS_TABLE

logger = get_logger(__name__)

ENTITIES_TABLE = "entities"
RELATIONS_TABLE = "relations"

# Column limits of the entities and relations tables
MAX_NAME_LENGTH = 500
MAX_TYPE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 2000

DEFAULT_MIN_CHUNK_CHARS = 50

EXTRACTION_PROMPT = """You are a Knowledge Graph Specialist. Your task is to extract entities and relationships from text.

## Entity Types
- PERSON: Individual people, historical figures, characters
- ORGANIZATION: Companies, institutions, agencies, teams
- LOCATION: Places, cities, countries, addresses
- EVENT: Named events, conferences, incidents
- CONCEPT: Abstract ideas, theories, methodologies
- TECHNOLOGY: Software, hardware, tools, frameworks
- PRODUCT: Physical or digital products
- DATE: Specific dates, time periods

## Output Format
Return a JSON object with two arrays:

{{
  "entities": [
    {{"name": "Entity Name", "type": "ENTITY_TYPE", "description": "Brief description of the entity in context"}}
  ],
  "relations": [
    {{"source": "Source Entity Name", "target": "Target Entity Name", "type": "RELATIONSHIP_TYPE", "description": "How they are related"}}
  ]
}}

## Relationship Types
- WORKS_FOR, FOUNDED, LEADS (person-organization)
- LOCATED_IN, HEADQUARTERS_IN (entity-location)
- CREATED, DEVELOPED, INVENTED (entity-product/technology)
- PARTICIPATED_IN, ORGANIZED (entity-event)
- RELATED_TO, PART_OF, DEPENDS_ON (general)

## Guidelines
1. Only extract clearly mentioned entities, don't infer
2. Use the exact name as it appears in the text
3. Keep descriptions concise (1-2 sentences)
4. Ensure relationship source/target match extracted entity names exactly
5. Skip generic terms that aren't meaningful entities
6. Return valid JSON only, no markdown code blocks

Extract all entities and relationships from the following text:

---
{content}
---

Return valid JSON only."""

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_NOT_A_NAME = re.compile(r"[\d\s\W_]+")


def truncate(text: Any, max_length: int) -> str:
    """Trim and cut text to a column limit, marking cuts with an ellipsis."""
    if not text:
        return ""
    trimmed = str(text).strip()
    if len(trimmed) <= max_length:
        return trimmed
    return trimmed[: max_length - 3] + "..."


def normalize_name(name: str) -> str:
    """Key used to deduplicate entities: lowercase, single spaces."""
    return " ".join(name.lower().split())


def is_valid_name(name: Any) -> bool:
    """At least two characters and not only digits or punctuation."""
    if not isinstance(name, str):
        return False
    trimmed = name.strip()
    return len(trimmed) >= 2 and not _NOT_A_NAME.fullmatch(trimmed)


def parse_extraction(response: str) -> ExtractionResult:
    """Parse a model response into entities and relations.

    Tolerates Markdown code fences and prose around the JSON object.

    Raises:
        ValueError: If no JSON object can be parsed from the response.
    """
    cleaned = _CODE_FENCE.sub("", response or "")
    match = _JSON_OBJECT.search(cleaned)
    if not match:
        raise ValueError("No JSON object found in extraction response")

    data = json.loads(match.group(0))
    if not isinstance(data, dict):
        raise ValueError("Extraction response is not a JSON object")

    raw_entities = data.get("entities")
    raw_relations = data.get("relations")

    entities = [
        ExtractedEntity(
            name=item.get("name") or "",
            type=item.get("type") or "",
            description=item.get("description") or "",
        )
        for item in (raw_entities if isinstance(raw_entities, list) else [])
        if isinstance(item, dict)
    ]
    relations = [
        ExtractedRelation(
            source=item.get("source") or "",
            target=item.get("target") or "",
            type=item.get("type") or "",
            description=item.get("description") or "",
        )
        for item in (raw_relations if isinstance(raw_relations, list) else [])
        if isinstance(item, dict)
    ]
    return ExtractionResult(entities=entities, relations=relations)


async def delete_derived(
    store: RelationalStore,
    table: str,
    chunk_ids: set[str],
    user_id: str | None = None,
) -> int:
    """Delete entity or relation rows sourced from any of the given chunks.

    Returns:
        Number of rows removed
    """
    if not chunk_ids:
        return 0
    filters = {"user_id": user_id} if user_id else None
    rows = await store.select(table, columns="id, source_chunk_ids", filters=filters)
    removed = 0
    for row in rows:
        if chunk_ids.intersection(row.get("source_chunk_ids") or []):
            await store.delete(table, {"id": row["id"]})
            removed += 1
    return removed


@dataclass
class _MergedEntity:
    name: str
    type: str
    descriptions: list[str] = field(default_factory=list)
    source_chunk_ids: list[str] = field(default_factory=list)

    @property
    def description(self) -> str:
        unique = list(dict.fromkeys(d for d in self.descriptions if d))
        return " ".join(unique)[:MAX_DESCRIPTION_LENGTH]


@dataclass
class _PendingRelation:
    source: str
    target: str
    type: str
    description: str
    chunk_id: str


class EntityExtractor:
    """Extract entities and relations from chunks and store them."""

    def __init__(
        self,
        generator: GenerationProvider,
        store: RelationalStore,
        min_chunk_chars: int = DEFAULT_MIN_CHUNK_CHARS,
    ) -> None:
        self.generator = generator
        self.store = store
        self.min_chunk_chars = min_chunk_chars

    async def extract_from_text(self, content: str) -> ExtractionResult:
        """Ask the generation model for entities and relations in a text.

        Any provider or parse failure gives an empty result.
        """
        try:
            response = await self.generator.generate(EXTRACTION_PROMPT.format(content=content))
        except Exception as e:
            logger.error("entity_extraction_call_failed", error=str(e), content_chars=len(content))
            return ExtractionResult()

        try:
            result = parse_extraction(response)
        except ValueError as e:
            logger.warning("entity_extraction_unparseable", error=str(e), response_preview=(response or "")[:200])
            return ExtractionResult()

        logger.debug(
            "entity_extraction_parsed",
            entities=len(result.entities),
            relations=len(result.relations),
        )
        return result

    async def process_chunks(
        self,
        document_id: str,
        chunks: list[dict[str, Any]],
        workspace: str = "default",
        user_id: str | None = None,
    ) -> ExtractionCounts:
        """Extract, deduplicate and store entities and relations for chunks.

        Args:
            document_id: Document the chunks belong to
            chunks: Rows with ``id`` and ``content``
            workspace: Workspace stamped on every row
            user_id: Owner stamped on every row

        Returns:
            Number of entity and relation rows written
        """
        if not chunks:
            return ExtractionCounts()

        merged: dict[str, _MergedEntity] = {}
        pending: list[_PendingRelation] = []

        for position, chunk in enumerate(chunks):
            content = chunk.get("content") or ""
            if len(content) < self.min_chunk_chars:
                logger.debug("entity_extraction_chunk_skipped", chunk=position, chars=len(content))
                continue

            extraction = await self.extract_from_text(content)
            self._collect(chunk["id"], extraction, merged, pending)

        if not merged:
            logger.info("entity_extraction_empty", document_id=document_id, chunks=len(chunks))
            return ExtractionCounts()

        name_to_id: dict[str, str] = {}
        entity_rows = []
        for key, entity in merged.items():
            entity_id = str(uuid.uuid4())
            name_to_id[key] = entity_id
            entity_rows.append(
                {
                    "id": entity_id,
                    "workspace": workspace,
                    "name": entity.name,
                    "type": entity.type,
                    "entity_name": entity.name,
                    "entity_type": entity.type,
                    "description": entity.description,
                    "source_chunk_ids": entity.source_chunk_ids,
                    "user_id": user_id,
                }
            )

        try:
            await self.store.insert(ENTITIES_TABLE, entity_rows)
        except Exception as e:
            logger.error("entity_insert_failed", document_id=document_id, entities=len(entity_rows), error=str(e))
            return ExtractionCounts()

        relation_rows = self._relation_rows(pending, name_to_id, workspace, user_id)
        relations_created = await self._insert_relations(document_id, relation_rows)

        counts = ExtractionCounts(entities_created=len(entity_rows), relations_created=relations_created)
        logger.info(
            "entity_extraction_completed",
            document_id=document_id,
            entities_created=counts.entities_created,
            relations_created=counts.relations_created,
        )
        return counts

    def _collect(
        self,
        chunk_id: str,
        extraction: ExtractionResult,
        merged: dict[str, _MergedEntity],
        pending: list[_PendingRelation],
    ) -> None:
        for item in extraction.entities:
            if not is_valid_name(item.name):
                continue
            name = truncate(item.name, MAX_NAME_LENGTH)
            description = truncate(item.description, MAX_DESCRIPTION_LENGTH)
            key = normalize_name(name)

            existing = merged.get(key)
            if existing is None:
                merged[key] = _MergedEntity(
                    name=name,
                    type=truncate(str(item.type).strip().upper() or "UNKNOWN", MAX_TYPE_LENGTH),
                    descriptions=[description],
                    source_chunk_ids=[chunk_id],
                )
                continue
            if description not in existing.descriptions:
                existing.descriptions.append(description)
            if chunk_id not in existing.source_chunk_ids:
                existing.source_chunk_ids.append(chunk_id)

        for item in extraction.relations:
            if not (is_valid_name(item.source) and is_valid_name(item.target)):
                continue
            pending.append(
                _PendingRelation(
                    source=truncate(item.source, MAX_NAME_LENGTH),
                    target=truncate(item.target, MAX_NAME_LENGTH),
                    type=truncate(str(item.type).strip().upper() or "RELATED_TO", MAX_TYPE_LENGTH),
                    description=truncate(item.description, MAX_DESCRIPTION_LENGTH),
                    chunk_id=chunk_id,
                )
            )

    @staticmethod
    def _relation_rows(
        pending: list[_PendingRelation],
        name_to_id: dict[str, str],
        workspace: str,
        user_id: str | None,
    ) -> list[dict[str, Any]]:
        rows = []
        seen: set[tuple[str, str, str]] = set()

        for relation in pending:
            source_id = name_to_id.get(normalize_name(relation.source))
            target_id = name_to_id.get(normalize_name(relation.target))
            if not source_id or not target_id:
                logger.debug("relation_endpoint_missing", source=relation.source, target=relation.target)
                continue

            key = (source_id, relation.type, target_id)
            if key in seen:
                continue
            seen.add(key)

            rows.append(
                {
                    "id": str(uuid.uuid4()),
                    "workspace": workspace,
                    "source_entity_id": source_id,
                    "target_entity_id": target_id,
                    "source_entity": relation.source,
                    "target_entity": relation.target,
                    "relation_type": relation.type,
                    "description": relation.description,
                    "source_chunk_ids": [relation.chunk_id],
                    "user_id": user_id,
                }
            )
        return rows

    async def _insert_relations(self, document_id: str, rows: list[dict[str, Any]]) -> int:
        if not rows:
            return 0

        try:
            await self.store.insert(RELATIONS_TABLE, rows)
            return len(rows)
        except Exception as e:
            logger.warning("relation_batch_insert_failed", document_id=document_id, relations=len(rows), error=str(e))

        created = 0
        for row in rows:
            try:
                await self.store.insert(RELATIONS_TABLE, [row])
                created += 1
            except Exception as e:
                logger.error(
                    "relation_insert_failed",
                    document_id=document_id,
                    source=row["source_entity"],
                    target=row["target_entity"],
                    error=str(e),
                )
        return created


class EntityReprocessor:
    """Re-derive entities and relations for a user's processed documents."""

    def __init__(
        self,
        store: RelationalStore,
        extractor: EntityExtractor,
        locks: DocumentLockManager,
        default_workspace: str = "default",
    ) -> None:
        self.store = store
        self.extractor = extractor
        self.locks = locks
        self.default_workspace = default_workspace

    async def reprocess(self, user_id: str, document_id: str | None = None) -> ReprocessReport:
        """Replace entities and relations derived from each document's chunks.

        A failure on one document is recorded in the report and the rest
        of the batch continues.
        """
        filters: dict[str, Any] = {"status": DocumentStatus.PROCESSED.value, "user_id": user_id}
        if document_id:
            filters["id"] = document_id

        documents = await self.store.select(
            DOCUMENTS_TABLE,
            columns="id, file_name, user_id, workspace",
            filters=filters,
        )
        logger.info("entity_reprocess_started", user_id=user_id, documents=len(documents))

        report = ReprocessReport()
        for document in documents:
            try:
                async with self.locks.hold(document["id"]):
                    with document_context(document["id"]):
                        result = await self._reprocess_document(document, user_id)
            except Exception as e:
                logger.error("entity_reprocess_document_failed", document_id=document["id"], error=str(e))
                result = DocumentReprocessResult(
                    document_id=document["id"],
                    file_name=document.get("file_name"),
                    success=False,
                    error=str(e),
                )
            report.results.append(result)

        logger.info(
            "entity_reprocess_completed",
            user_id=user_id,
            processed=report.processed,
            failed=report.failed,
            total_entities=report.total_entities,
            total_relations=report.total_relations,
        )
        return report

    async def _reprocess_document(self, document: dict[str, Any], user_id: str) -> DocumentReprocessResult:
        chunks = await self.store.select(
            CHUNKS_TABLE,
            columns="id, content",
            filters={"document_id": document["id"]},
            order_by="chunk_order_index",
        )
        if not chunks:
            return DocumentReprocessResult(
                document_id=document["id"],
                file_name=document.get("file_name"),
                success=False,
                error="No chunks found",
            )

        chunk_ids = {c["id"] for c in chunks}
        removed_entities = await delete_derived(self.store, ENTITIES_TABLE, chunk_ids, user_id)
        removed_relations = await delete_derived(self.store, RELATIONS_TABLE, chunk_ids, user_id)
        logger.debug(
            "entity_reprocess_cleared",
            document_id=document["id"],
            entities=removed_entities,
            relations=removed_relations,
        )

        counts = await self.extractor.process_chunks(
            document["id"],
            chunks,
            workspace=document.get("workspace") or self.default_workspace,
            user_id=document.get("user_id"),
        )
        return DocumentReprocessResult(
            document_id=document["id"],
            file_name=document.get("file_name"),
            success=True,
            chunks_processed=len(chunks),
            entities=counts.entities_created,
            relations=counts.relations_created,
        )

    async def stats(self, user_id: str) -> dict[str, int]:
        """Counts of the user's processed documents, entities and relations."""
        return {
            "documents": await self.store.count(
                DOCUMENTS_TABLE,
                {"user_id": user_id, "status": DocumentStatus.PROCESSED.value},
            ),
            "entities": await self.store.count(ENTITIES_TABLE, {"user_id": user_id}),
            "relations": await self.store.count(RELATIONS_TABLE, {"user_id": user_id}),
        }
