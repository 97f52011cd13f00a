from __future__ import annotations
from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, Optional

from .core.types import Usage


@dataclass
class ModelUsage:
    model: str
    requests: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class UsageTotals:
    by_model: Dict[str, ModelUsage] = field(default_factory=dict)
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def add(self, model: str, u: Usage) -> None:
        with self._lock:
            agg = self.by_model.setdefault(model, ModelUsage(model=model))
            agg.requests += 1
            agg.input_tokens += u.input_tokens
            agg.output_tokens += u.output_tokens
            agg.cache_creation_input_tokens += u.cache_creation_input_tokens or 0
            agg.cache_read_input_tokens += u.cache_read_input_tokens or 0

    def get(self, model: str) -> Optional[ModelUsage]:
        return self.by_model.get(model)

    @property
    def requests(self) -> int:
        return sum(m.requests for m in self.by_model.values())

    @property
    def input_tokens(self) -> int:
        return sum(m.input_tokens for m in self.by_model.values())

    @property
    def output_tokens(self) -> int:
        return sum(m.output_tokens for m in self.by_model.values())

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens
