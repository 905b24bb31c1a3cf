from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class BlobInfo:
    public_id: str
    uploaded_at: datetime | None = None


class BlobStorage(ABC):
    """Blob Listing Provider: the asset host's search and bulk-delete API."""

    @abstractmethod
    def search(self, expression: str) -> list[BlobInfo]:
        """Return every blob matching a provider search expression (all pages)."""
        raise NotImplementedError

    @abstractmethod
    def delete_resources(self, public_ids: list[str]) -> dict[str, str]:
        """Bulk delete; returns {public_id: provider status}."""
        raise NotImplementedError

    def list_folder(self, folder: str, uploaded_before: datetime | None = None) -> list[BlobInfo]:
        expression = f"folder={folder}"
        if uploaded_before is not None:
            expression += f" AND uploaded_at<{int(uploaded_before.timestamp())}"
        return self.search(expression)

    def close(self) -> None:
        return None
