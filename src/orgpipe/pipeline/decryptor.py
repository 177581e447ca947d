"""Decryptor — resolves the provider secret, passes everything else through."""

import asyncio
import dataclasses
from typing import Any

from orgpipe.config import Settings
from orgpipe.credentials import PlaintextResolver, SecretResolver, build_resolver
from orgpipe.errors import DecryptionFailed
from orgpipe.events import EventSink
from orgpipe.models import ProviderRecord, unwrap_envelope
from orgpipe.pipeline.stage import Stage


class Decryptor(Stage):
    """Replaces ``secret`` with the resolver's output.

    Args:
        resolver: Secret resolver (default: plaintext pass-through)
        events: Event sink for instrumentation
    """

    name = "DecryptionHandler"
    failure_summary = "Failed to decrypt data"

    def __init__(
        self,
        resolver: SecretResolver | None = None,
        events: EventSink | None = None,
    ) -> None:
        super().__init__(events)
        self.resolver = resolver or PlaintextResolver()

    @classmethod
    def from_settings(cls, settings: Settings, events: EventSink | None = None) -> "Decryptor":
        return cls(
            resolver=build_resolver(settings.secret_backend, settings.aws_region),
            events=events,
        )

    async def decrypt(self, record: ProviderRecord) -> ProviderRecord:
        """Return a copy of ``record`` with its secret resolved.

        Raises:
            DecryptionFailed: If the secret is missing, blank or unresolvable
        """
        if not isinstance(record.secret, str) or not record.secret.strip():
            raise DecryptionFailed(
                f"Provider {record.provider_id} has no secret to decrypt"
            )

        # Resolvers make blocking SDK calls
        credential = await asyncio.to_thread(self.resolver.resolve, record.secret)

        self.events.emit(
            "secret.resolved",
            provider_id=record.provider_id,
            backend=self.resolver.name,
            entity_count=len(record.entities or []),
        )
        return dataclasses.replace(record, secret=credential)

    async def invoke(self, event: Any) -> dict[str, Any]:
        record = ProviderRecord.from_dict(unwrap_envelope(event))
        decrypted = await self.decrypt(record)
        return decrypted.to_dict()
