"""Committed town state plus its exports.

``TownWorkspace`` is the transactional holder used by the CLI and the HTTP
layer: generation and reconciliation run against the committed Town and only
on full success are the Town, its JSON and its DOT swapped in together.
"""
from __future__ import annotations

import threading
from typing import Dict, Optional, Union

from .config import TownConfig
from .model import Town
from .pipeline import generate_town
from .reconcile import ReconcileResult, reconcile
from .serialize import from_json, to_dot, to_json


class TownWorkspace:
    def __init__(self, config: Optional[TownConfig] = None):
        self.config = config or TownConfig()
        self._lock = threading.Lock()
        self._town: Optional[Town] = None
        self._exports: Dict[str, str] = {}

    @property
    def town(self) -> Optional[Town]:
        return self._town

    @property
    def exports(self) -> Dict[str, str]:
        """``{"json": ..., "dot": ...}`` for the committed Town (empty before the first commit)."""
        return dict(self._exports)

    def _commit(self, town: Town) -> Town:
        # render before taking the lock so a failing export leaves the old state
        exports = {"json": to_json(town), "dot": to_dot(town)}
        with self._lock:
            self._town = town
            self._exports = exports
        return town

    def generate(self, seed: Union[int, str, None] = None, config: Optional[TownConfig] = None,
                 workers: Optional[int] = None) -> Town:
        return self._commit(generate_town(config or self.config, seed=seed, workers=workers))

    def load_json(self, text: str) -> Town:
        return self._commit(from_json(text))

    def reconcile(self, dot_text: str, config: Optional[TownConfig] = None,
                  root_seed: Union[int, str, None] = None, workers: Optional[int] = None) -> ReconcileResult:
        if self._town is None:
            raise RuntimeError("no town committed; generate or load one first")
        result = reconcile(self._town, dot_text, config=config, root_seed=root_seed, workers=workers)
        if result.town is not self._town:
            self._commit(result.town)
        return result


__all__ = ["TownWorkspace"]
