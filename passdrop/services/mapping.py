"""Bidirectional lookup between Roblox user ids and Discord user ids.

The table lives in the cached record document. Reverse lookups scan every
entry; the table stays small (one row per registered player).
"""

from passdrop.common.logging import logger
from passdrop.store.cache import RecordCache


class IdentityMappingTable:
    """External identity -> chat identity, one chat id per external id."""

    def __init__(self, cache: RecordCache) -> None:
        self.cache = cache

    @property
    def _mappings(self) -> dict[str, str]:
        return self.cache.document.mappings

    def link(self, external_id, chat_id) -> None:
        """Create or overwrite the mapping for `external_id` (last write wins)."""

        external_id, chat_id = str(external_id), str(chat_id)
        previous = self._mappings.get(external_id)
        self._mappings[external_id] = chat_id
        self.cache.save()
        if previous and previous != chat_id:
            logger.info("mapping overwritten external_id=%s previous_chat_id=%s", external_id, previous)
        else:
            logger.info("mapping linked external_id=%s", external_id)

    def resolve(self, external_id) -> str | None:
        return self._mappings.get(str(external_id))

    def find_external(self, chat_id) -> str | None:
        chat_id = str(chat_id)
        for external_id, mapped_chat_id in self._mappings.items():
            if mapped_chat_id == chat_id:
                return external_id
        return None

    def unlink(self, chat_id) -> str | None:
        """Remove the mapping pointing at `chat_id`; None when there is none."""

        external_id = self.find_external(chat_id)
        if external_id is None:
            return None
        del self._mappings[external_id]
        self.cache.save()
        logger.info("mapping unlinked external_id=%s", external_id)
        return external_id
