"""
Read-only views over the client store.
"""

from typing import Any

from cmxpush.storage.dao import ClientStore
from cmxpush.utils.log import get_logger

logger = get_logger(__name__)


class QueryService:
    def __init__(self, store: ClientStore) -> None:
        self.store = store

    def get_client(self, mac: str) -> dict[str, Any]:
        """
        Serialized record for `mac` (any letter case), or {} if never seen.
        """
        record = self.store.get(mac)
        logger.debug("Retrieved client %s: %s", mac, record)
        return record.to_json() if record is not None else {}

    def list_clients(self) -> list[dict[str, Any]]:
        return [record.to_json() for record in self.store.list_all()]
