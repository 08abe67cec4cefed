"""Provider catalog and per-model multiplicity selection.

The catalog fixes the order providers and models are shown and expanded
in. The selection table is sparse: only models with a non-zero count are
stored.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ProviderCatalog:
    """Ordered providers and their ordered model lists."""

    providers: tuple[str, ...]
    models: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, catalog: Mapping[str, Iterable[str]]) -> ProviderCatalog:
        """Build a catalog preserving the mapping's insertion order."""
        return cls(
            providers=tuple(catalog),
            models={provider: tuple(models) for provider, models in catalog.items()},
        )

    def models_for(self, provider: str) -> tuple[str, ...]:
        return self.models.get(provider, ())

    def index_of(self, provider: str) -> int:
        """Position of ``provider``, or 0 when unknown."""
        try:
            return self.providers.index(provider)
        except ValueError:
            return 0


@dataclass(frozen=True)
class LaunchUnit:
    """One instance to launch: a unique label bound to a provider/model."""

    label: str
    base_model: str
    provider: str

    @property
    def model_id(self) -> str:
        return f"{self.provider}/{self.base_model}"


def expand_labels(
    selections: Mapping[str, int] | Iterable[tuple[str, int]],
    taken: Iterable[str] = (),
) -> list[tuple[str, str]]:
    """Expand ``model -> count`` pairs into ``(label, model)`` in order.

    The first occurrence of a model is labelled with the bare model name,
    later ones get ``-2``, ``-3``, ... Labels in ``taken`` are skipped so
    a label is never handed out twice.

    Example:
        expand_labels({"A": 2, "B": 1})
        # [("A", "A"), ("A-2", "A"), ("B", "B")]
    """
    pairs = selections.items() if isinstance(selections, Mapping) else selections
    used = set(taken)
    result: list[tuple[str, str]] = []
    for model, count in pairs:
        seq = 0
        for _ in range(max(0, count)):
            while True:
                seq += 1
                label = model if seq == 1 else f"{model}-{seq}"
                if label not in used:
                    break
            used.add(label)
            result.append((label, model))
    return result


class SelectionTable:
    """Sparse ``(provider, model) -> count`` table over a catalog."""

    def __init__(self, catalog: ProviderCatalog) -> None:
        self.catalog = catalog
        self._counts: dict[tuple[str, str], int] = {}

    def count(self, provider: str, model: str) -> int:
        return self._counts.get((provider, model), 0)

    def increment(self, provider: str, model: str) -> int:
        """Add one instance of ``model``; returns the new count."""
        key = (provider, model)
        self._counts[key] = self._counts.get(key, 0) + 1
        return self._counts[key]

    def decrement(self, provider: str, model: str) -> int:
        """Remove one instance of ``model``; never goes below zero."""
        key = (provider, model)
        current = self._counts.get(key, 0)
        if current <= 1:
            self._counts.pop(key, None)
            return 0
        self._counts[key] = current - 1
        return current - 1

    def selected(self, provider: str) -> list[tuple[str, int]]:
        """Non-zero ``(model, count)`` pairs for ``provider`` in catalog order.

        Models selected but missing from the catalog (e.g. from stale
        defaults) come last in insertion order.
        """
        ordered = [m for m in self.catalog.models_for(provider) if self.count(provider, m) > 0]
        extra = [m for (p, m) in self._counts if p == provider and m not in ordered]
        return [(m, self.count(provider, m)) for m in [*ordered, *extra]]

    def total(self, provider: str) -> int:
        return sum(count for _, count in self.selected(provider))

    def expand(self, provider: str, taken: Iterable[str] = ()) -> list[LaunchUnit]:
        """Launch units for ``provider`` with unique labels."""
        return [
            LaunchUnit(label=label, base_model=model, provider=provider)
            for label, model in expand_labels(self.selected(provider), taken)
        ]

    def apply_defaults(self, provider: str, models: Iterable[str]) -> None:
        """Increment once per occurrence, so repeats restore multiplicity."""
        for model in models:
            self.increment(provider, model)

    def as_defaults(self) -> dict[str, list[str]]:
        """Selections as ``provider -> [model, model, ...]`` with repeats."""
        result: dict[str, list[str]] = {}
        for provider in dict.fromkeys(p for p, _ in self._counts):
            models = [m for m, count in self.selected(provider) for _ in range(count)]
            if models:
                result[provider] = models
        return result
