"""Object store interface and result key layout."""

from abc import ABC, abstractmethod

JSON_CONTENT_TYPE = "application/json"
CSV_CONTENT_TYPE = "text/csv"


def result_keys(entity_id: str, timestamp: str) -> tuple[str, str]:
    """Keys of the JSON and CSV objects for one fetch result.

    Returns:
        ``({entity_id}/{timestamp}/data.json, {entity_id}/{timestamp}/data.csv)``
    """
    prefix = f"{entity_id}/{timestamp}"
    return f"{prefix}/data.json", f"{prefix}/data.csv"


class ObjectStore(ABC):
    """Addressable key/value blob store.

    Implementations raise PersistenceFailure when a write does not land.
    """

    @property
    @abstractmethod
    def location(self) -> str:
        """Human-readable root of the store (directory or s3:// URL)."""

    @abstractmethod
    async def put(self, key: str, body: str, content_type: str) -> str:
        """Write ``body`` at ``key``.

        Returns:
            Full address of the written object
        """
