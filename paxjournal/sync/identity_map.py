"""Mapping from locally minted todo ids to remote page ids."""

from collections.abc import Iterator


class EntityIdMap:
    """One-directional ``local_id -> remote_id`` map.

    Used both as the point-in-time copy read from the event log and as the
    per-flush overlay the sync engine fills in as creates succeed.
    """

    def __init__(self, mappings: dict[str, str] | None = None):
        self._local_to_remote: dict[str, str] = dict(mappings or {})

    def get(self, local_id: str) -> str | None:
        return self._local_to_remote.get(local_id)

    def set(self, local_id: str, remote_id: str) -> None:
        self._local_to_remote[local_id] = remote_id

    def has(self, local_id: str) -> bool:
        return local_id in self._local_to_remote

    def items(self) -> Iterator[tuple[str, str]]:
        return iter(self._local_to_remote.items())

    def __contains__(self, local_id: object) -> bool:
        return local_id in self._local_to_remote

    def __len__(self) -> int:
        return len(self._local_to_remote)

    def __repr__(self) -> str:
        return f"EntityIdMap({len(self)} mappings)"
