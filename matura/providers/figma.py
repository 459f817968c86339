from __future__ import annotations
import re
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from matura.core.config import settings
from matura.core.errors import ProviderError, ProviderTimeoutError

_FILE_KEY_RE = re.compile(r"figma\.com/(?:file|design|proto)/([A-Za-z0-9]+)")


def parse_file_key(value: str) -> str:
    """Accept either a bare file key or a figma.com URL."""
    m = _FILE_KEY_RE.search(value)
    return m.group(1) if m else value.strip()


def _hex(color: Dict[str, float]) -> str:
    r, g, b = (max(0, min(255, round(color.get(c, 0) * 255))) for c in ("r", "g", "b"))
    return f"#{r:02x}{g:02x}{b:02x}"


def extract_design_tokens(document: Dict[str, Any], max_colors: int = 8) -> Dict[str, Any]:
    """Walk a Figma document tree collecting solid fill colours, fonts and component names."""
    colors: Counter = Counter()
    fonts: Counter = Counter()
    components: List[str] = []

    stack = [document]
    while stack:
        node = stack.pop()
        for fill in node.get("fills") or []:
            if fill.get("type") == "SOLID" and fill.get("visible", True) and "color" in fill:
                colors[_hex(fill["color"])] += 1
        style = node.get("style") or {}
        if style.get("fontFamily"):
            fonts[style["fontFamily"]] += 1
        if node.get("type") in ("COMPONENT", "COMPONENT_SET") and node.get("name"):
            components.append(node["name"])
        stack.extend(node.get("children") or [])

    return {
        "colors": [c for c, _ in colors.most_common(max_colors)],
        "fonts": [f for f, _ in fonts.most_common(3)],
        "components": components[:20],
    }


@dataclass
class FigmaClient:
    token: str
    api_base: str = settings.figma_api_base
    timeout: float = settings.figma_timeout_seconds
    transport: Optional[httpx.AsyncBaseTransport] = None
    name: str = "figma"

    def _headers(self) -> dict:
        return {"X-Figma-Token": self.token}

    async def get_file(self, file_key: str) -> dict:
        url = f"{self.api_base}/files/{parse_file_key(file_key)}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.get(url, headers=self._headers())
                r.raise_for_status()
                return r.json()
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(self.name, self.timeout) from e
        except httpx.HTTPStatusError as e:
            raise ProviderError(self.name, f"HTTP {e.response.status_code}", kind="http") from e
        except httpx.RequestError as e:
            raise ProviderError(self.name, f"request failed: {e}", kind="unreachable") from e

    async def fetch_design_tokens(self, file_key: str) -> Dict[str, Any]:
        body = await self.get_file(file_key)
        document = body.get("document")
        if not isinstance(document, dict):
            raise ProviderError(self.name, "file has no document tree", kind="malformed")
        tokens = extract_design_tokens(document)
        tokens["file_name"] = body.get("name", "")
        return tokens
