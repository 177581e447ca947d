"""EntityExtractor — projects a provider's orgs into fan-out work items."""

from typing import Any

from orgpipe.errors import MalformedInput
from orgpipe.models import ExtractedEntity, ProviderRecord, unwrap_envelope
from orgpipe.pipeline.stage import Stage

# Field of the extractor body the Map state iterates over
ITEMS_FIELD = "orgIds"


class EntityExtractor(Stage):
    """One ExtractedEntity per org, in input order."""

    name = "ExtractOrgs"
    failure_summary = "Failed to extract organization data"

    def extract(self, record: ProviderRecord) -> list[ExtractedEntity]:
        """Project ``record.entities`` into ``(id, parameters)`` pairs.

        Parameters are shallow-copied, not transformed.

        Raises:
            MalformedInput: If the record has no org list
        """
        if record.entities is None:
            raise MalformedInput(f"Provider {record.provider_id} has no orgs list")

        extracted = [
            ExtractedEntity(id=entity.entity_id, parameters=dict(entity.parameters))
            for entity in record.entities
        ]
        self.events.emit(
            "entities.extracted",
            provider_id=record.provider_id,
            count=len(extracted),
            entity_ids=[entity.id for entity in extracted],
        )
        return extracted

    async def invoke(self, event: Any) -> dict[str, Any]:
        record = ProviderRecord.from_dict(unwrap_envelope(event))
        return {ITEMS_FIELD: [entity.to_dict() for entity in self.extract(record)]}
