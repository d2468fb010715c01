from abc import ABC, abstractmethod


class BlobStore(ABC):
    @abstractmethod
    def url_for(self, key: str, expires_in: int) -> str:
        """Return a time-limited URL for the stored object."""
        raise NotImplementedError
