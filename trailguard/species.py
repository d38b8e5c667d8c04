"""
Species catalog — the closed set of tracked animals.

Resolved once at import; lookups go through :data:`SPECIES` (by scientific
name) or :func:`by_common_name`, never through free-text matching.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from trailguard.models import RiskLevel


class SpeciesInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    scientific: str
    common: str
    icon: str
    color: str
    taxon_key: str
    risk_level: RiskLevel


class Species(str, Enum):
    LEOPARD = "Panthera pardus"
    ASIAN_ELEPHANT = "Elephas maximus"
    GAUR = "Bos gaurus"
    TIGER = "Panthera tigris"
    SLOTH_BEAR = "Melursus ursinus"
    RHINO = "Rhinoceros unicornis"


_TABLE: list[tuple[Species, str, str, str, str, RiskLevel]] = [
    (Species.LEOPARD, "Leopard", "🐆", "#f97316", "5219436", "High"),
    (Species.ASIAN_ELEPHANT, "Asian Elephant", "🐘", "#64748b", "5219461", "Medium"),
    (Species.GAUR, "Gaur (Indian Bison)", "🐃", "#1e293b", "2441026", "Low"),
    (Species.TIGER, "Tiger", "🐅", "#dc2626", "5219416", "High"),
    (Species.SLOTH_BEAR, "Sloth Bear", "🐻", "#78350f", "2433395", "High"),
    (Species.RHINO, "Rhino", "🦏", "#4b5563", "2434778", "Medium"),
]

SPECIES: dict[str, SpeciesInfo] = {
    sp.value: SpeciesInfo(
        scientific=sp.value, common=common, icon=icon, color=color,
        taxon_key=taxon, risk_level=risk,
    )
    for sp, common, icon, color, taxon, risk in _TABLE
}

_BY_COMMON: dict[str, SpeciesInfo] = {info.common: info for info in SPECIES.values()}


def by_common_name(common: str) -> SpeciesInfo | None:
    return _BY_COMMON.get(common)


def list_species() -> list[SpeciesInfo]:
    return list(SPECIES.values())
