# infra/__init__.py
from __future__ import annotations

from typing import Protocol, Mapping, Any, Optional, List


# ========== REST port: services depend on this, not on the concrete HttpClient ==========
class HttpPort(Protocol):
    async def get_private(self, path: str, params: Optional[Mapping[str, Any]] = None) -> List[Any]: ...
    async def post_private(self, path: str, json_body: Mapping[str, Any]) -> List[Any]: ...
    async def delete_private(self, path: str, json_body: Optional[Mapping[str, Any]] = None) -> List[Any]: ...
