"""
Carbon accounting factor tables.

Biomass densities are regional above-ground carbon stocks (tC/ha) for the
main Bolivian forest types (IPCC 2019 refinement, FAO FRA 2020, national
inventory studies). Sequestration curves describe what fraction of the
carbon-stock-equivalent CO2 a project type realises per year.
"""
from dataclasses import dataclass

from carbono.config import settings
from carbono.domain.bolivia import resolve_department
from carbono.domain.models import ForestType, ProjectType


BIOMASS_PER_HECTARE: dict[ForestType, float] = {
    ForestType.AMAZONIA: 150.0,
    ForestType.CHIQUITANIA: 120.0,
    ForestType.YUNGAS: 130.0,
    ForestType.ALTIPLANO: 40.0,
    ForestType.MIXED: 110.0,
}

# Used for UNKNOWN forest types and unrecognised departments.
DEFAULT_BIOMASS_PER_HECTARE = 40.0

FOREST_TYPE_NAMES: dict[ForestType, str] = {
    ForestType.AMAZONIA: "Amazonía Tropical",
    ForestType.CHIQUITANIA: "Bosque Seco Chiquitano",
    ForestType.YUNGAS: "Yungas",
    ForestType.ALTIPLANO: "Altiplano Semiárido",
    ForestType.MIXED: "Bosque Mixto",
    ForestType.UNKNOWN: "Desconocido",
}

DEPARTMENT_TO_FOREST_TYPE: dict[str, ForestType] = {
    "La Paz": ForestType.AMAZONIA,
    "Pando": ForestType.AMAZONIA,
    "Beni": ForestType.AMAZONIA,
    "Santa Cruz": ForestType.CHIQUITANIA,
    "Cochabamba": ForestType.YUNGAS,
    "Tarija": ForestType.YUNGAS,
    "Chuquisaca": ForestType.YUNGAS,
    "Potosí": ForestType.ALTIPLANO,
    "Oruro": ForestType.ALTIPLANO,
}


@dataclass(frozen=True)
class SequestrationCurve:
    """Linear ramp from initial_rate in year 1 to mature_rate at years_to_maturity."""

    initial_rate: float
    mature_rate: float
    years_to_maturity: int

    def rate_for_year(self, year: int) -> float:
        if year < 1:
            raise ValueError(f"Project years start at 1, got {year}")
        if self.years_to_maturity <= 1 or year >= self.years_to_maturity:
            return self.mature_rate
        progress = (year - 1) / (self.years_to_maturity - 1)
        return self.initial_rate + (self.mature_rate - self.initial_rate) * progress


SEQUESTRATION_CURVES: dict[ProjectType, SequestrationCurve] = {
    ProjectType.REDD_PLUS: SequestrationCurve(1.0, 1.0, 1),
    ProjectType.COMMUNITY_CONSERVATION: SequestrationCurve(1.0, 1.0, 1),
    ProjectType.RENEWABLE_ENERGY: SequestrationCurve(1.0, 1.0, 1),
    ProjectType.REFORESTATION: SequestrationCurve(0.2, 1.0, 10),
    ProjectType.REGENERATIVE_AGRICULTURE: SequestrationCurve(0.3, 1.0, 5),
}


@dataclass(frozen=True)
class CarbonParameters:
    """Multiplicative constants of the carbon calculation."""

    carbon_fraction: float = 0.47
    co2_conversion_factor: float = 3.67
    price_conservative: float = 5.0
    price_realistic: float = 15.0
    price_optimistic: float = 50.0

    def __post_init__(self):
        if not 0 < self.carbon_fraction <= 1:
            raise ValueError("carbon_fraction must be in (0, 1]")
        if self.co2_conversion_factor <= 0:
            raise ValueError("co2_conversion_factor must be positive")
        if not 0 <= self.price_conservative <= self.price_realistic <= self.price_optimistic:
            raise ValueError("Carbon prices must satisfy conservative <= realistic <= optimistic")

    @classmethod
    def from_settings(cls) -> "CarbonParameters":
        return cls(
            carbon_fraction=settings.carbon_fraction,
            co2_conversion_factor=settings.co2_conversion_factor,
            price_conservative=settings.price_conservative_usd,
            price_realistic=settings.price_realistic_usd,
            price_optimistic=settings.price_optimistic_usd,
        )


def forest_type_for_department(department: str) -> ForestType:
    """
    Predominant forest type of a department.

    Returns ForestType.UNKNOWN when the name is not a Bolivian department.
    """
    canonical = resolve_department(department)
    if canonical is None:
        return ForestType.UNKNOWN
    return DEPARTMENT_TO_FOREST_TYPE[canonical]
