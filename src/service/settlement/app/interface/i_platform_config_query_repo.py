from abc import ABC, abstractmethod


class IPlatformConfigQueryRepo(ABC):
    @abstractmethod
    async def get_value(self, *, key: str) -> str | None:
        pass
