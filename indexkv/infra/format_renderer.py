from typing import Any

import yaml

from indexkv.core.ports.render import Renderer


class YamlRenderer(Renderer):
    def render(self, data: Any) -> str:
        normalized = self._normalize(data)
        return yaml.safe_dump(normalized, sort_keys=False, allow_unicode=True)

    def _normalize(self, obj: Any) -> Any:
        if isinstance(obj, dict):
            return {self._normalize(k): self._normalize(v) for k, v in obj.items()}

        if isinstance(obj, (list, tuple)):
            return [self._normalize(x) for x in obj]

        return obj
