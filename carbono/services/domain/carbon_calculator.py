"""
Domain service: IPCC-style carbon accounting.

Formula:
    carbon stock (tC)   = area (ha) x biomass (tC/ha) x carbon fraction
    CO2 per year (tCO2) = carbon stock x sequestration rate x CO2/C ratio

Revenue is derived from the rounded annual CO2 figure under three market
price scenarios.
"""
import logging
import math
from typing import List, Optional, Tuple

from carbono.domain.carbon_factors import (
    BIOMASS_PER_HECTARE,
    DEFAULT_BIOMASS_PER_HECTARE,
    FOREST_TYPE_NAMES,
    SEQUESTRATION_CURVES,
    CarbonParameters,
    forest_type_for_department,
)
from carbono.domain.errors import ValidationError
from carbono.domain.models import (
    CarbonCalculationResult,
    CarbonCredits,
    CarbonProjectionYear,
    ForestType,
    ProjectType,
    RevenueEstimate,
)

logger = logging.getLogger(__name__)


class CarbonCalculator:
    """
    Domain service computing CO2 sequestration and revenue scenarios.

    All multiplicative constants come from one CarbonParameters instance,
    so a recalculation with unchanged parameters reproduces every value.
    """

    def __init__(self, parameters: Optional[CarbonParameters] = None):
        """
        Initialize the calculator.

        Args:
            parameters: Carbon constants (defaults to the configured ones)
        """
        self.parameters = parameters or CarbonParameters.from_settings()

    # ============================================================
    # Input resolution
    # ============================================================

    @staticmethod
    def resolve_forest_type(
        forest_type: Optional[ForestType] = None,
        department: Optional[str] = None,
    ) -> ForestType:
        """Explicit forest type first, then the department's, else UNKNOWN."""
        if forest_type is not None and forest_type != ForestType.UNKNOWN:
            return forest_type
        if department:
            return forest_type_for_department(department)
        return ForestType.UNKNOWN

    def resolve_biomass(
        self,
        forest_type: ForestType,
        biomass_per_hectare: Optional[float] = None,
    ) -> Tuple[float, str, bool]:
        """
        Pick the biomass density for a calculation.

        Args:
            forest_type: Resolved forest type
            biomass_per_hectare: Measured biomass override (tC/ha)

        Returns:
            (biomass tC/ha, source description, fallback applied)

        Raises:
            ValidationError: If the override is negative
        """
        if biomass_per_hectare is not None:
            if biomass_per_hectare < 0 or not math.isfinite(biomass_per_hectare):
                raise ValidationError(
                    f"Biomass per hectare must be a non-negative number, got {biomass_per_hectare}"
                )
            if biomass_per_hectare > 0:
                return biomass_per_hectare, "Earth observation biomass dataset", False

        if forest_type in BIOMASS_PER_HECTARE:
            name = FOREST_TYPE_NAMES[forest_type]
            return BIOMASS_PER_HECTARE[forest_type], f"IPCC 2019 factors ({name})", False

        logger.warning(
            f"Unknown forest type; using conservative default biomass "
            f"{DEFAULT_BIOMASS_PER_HECTARE} tC/ha"
        )
        return DEFAULT_BIOMASS_PER_HECTARE, "Conservative default (unknown forest type)", True

    def revenue_for(self, co2_tons: float, per_year: bool = True) -> RevenueEstimate:
        """Revenue scenarios for an amount of CO2."""
        p = self.parameters
        return RevenueEstimate(
            conservative=round(co2_tons * p.price_conservative, 2),
            realistic=round(co2_tons * p.price_realistic, 2),
            optimistic=round(co2_tons * p.price_optimistic, 2),
            per_year=per_year,
        )

    @staticmethod
    def _validate_inputs(area_hectares: float, duration_years: Optional[int]) -> None:
        if not math.isfinite(area_hectares) or area_hectares < 0:
            raise ValidationError(f"Area must be a non-negative number, got {area_hectares}")
        if duration_years is not None and duration_years < 1:
            raise ValidationError(f"Duration must be at least 1 year, got {duration_years}")

    # ============================================================
    # Calculations
    # ============================================================

    def calculate_carbon_capture(
        self,
        area_hectares: float,
        project_type: ProjectType,
        forest_type: Optional[ForestType] = None,
        department: Optional[str] = None,
        biomass_per_hectare: Optional[float] = None,
        duration_years: Optional[int] = None,
    ) -> CarbonCalculationResult:
        """
        Calculate annual CO2 sequestration for a project.

        Args:
            area_hectares: Project area in hectares
            project_type: Project type (selects the sequestration curve)
            forest_type: Explicit forest type
            department: Department used when no forest type is given
            biomass_per_hectare: Measured biomass override (tC/ha)
            duration_years: Project duration; adds cumulative totals

        Returns:
            CarbonCalculationResult; the annual figure uses the mature rate

        Raises:
            ValidationError: If area, biomass override or duration is invalid
        """
        self._validate_inputs(area_hectares, duration_years)
        p = self.parameters

        resolved_type = self.resolve_forest_type(forest_type, department)
        biomass, biomass_source, fallback = self.resolve_biomass(
            resolved_type, biomass_per_hectare
        )
        curve = SEQUESTRATION_CURVES[project_type]

        carbon_stock = area_hectares * biomass * p.carbon_fraction
        co2_per_year = round(carbon_stock * curve.mature_rate * p.co2_conversion_factor, 2)

        total_co2 = None
        total_revenue = None
        if duration_years is not None:
            total_co2 = round(
                sum(
                    carbon_stock * curve.rate_for_year(year) * p.co2_conversion_factor
                    for year in range(1, duration_years + 1)
                ),
                2,
            )
            total_revenue = self.revenue_for(total_co2, per_year=False)

        methodology = " | ".join([
            f"Area: {area_hectares:.2f} ha",
            f"Biomass: {biomass:.2f} tC/ha ({biomass_source})",
            f"Carbon fraction: {p.carbon_fraction}",
            f"CO2/C ratio: {p.co2_conversion_factor}",
            f"Sequestration rate ({project_type.value}): {curve.mature_rate}",
            f"Result: {co2_per_year:.2f} tCO2/year",
        ])

        logger.debug(f"Carbon calculation: {methodology}")

        return CarbonCalculationResult(
            estimated_co2_tons_year=co2_per_year,
            total_co2_tons=total_co2,
            carbon_stock_tons=round(carbon_stock, 2),
            biomass_used=round(biomass, 2),
            biomass_source=biomass_source,
            fallback_applied=fallback,
            conversion_factor=p.co2_conversion_factor,
            sequestration_rate=curve.mature_rate,
            area_hectares=area_hectares,
            project_type=project_type,
            forest_type=resolved_type,
            duration_years=duration_years,
            methodology=methodology,
            revenue_estimate=self.revenue_for(co2_per_year, per_year=True),
            total_revenue_estimate=total_revenue,
        )

    def calculate_by_department(
        self,
        area_hectares: float,
        project_type: ProjectType,
        department: str,
        duration_years: Optional[int] = None,
    ) -> CarbonCalculationResult:
        """Carbon capture using the department's predominant forest type."""
        return self.calculate_carbon_capture(
            area_hectares,
            project_type,
            department=department,
            duration_years=duration_years,
        )

    def multi_year_projection(
        self,
        area_hectares: float,
        project_type: ProjectType,
        years: int,
        forest_type: Optional[ForestType] = None,
        department: Optional[str] = None,
        biomass_per_hectare: Optional[float] = None,
    ) -> List[CarbonProjectionYear]:
        """
        Year-by-year sequestration following the project type's ramp.

        Returns:
            One row per year with rate, CO2 for the year and cumulative CO2
        """
        self._validate_inputs(area_hectares, years)
        p = self.parameters

        resolved_type = self.resolve_forest_type(forest_type, department)
        biomass, _, _ = self.resolve_biomass(resolved_type, biomass_per_hectare)
        curve = SEQUESTRATION_CURVES[project_type]
        carbon_stock = area_hectares * biomass * p.carbon_fraction

        projection = []
        cumulative = 0.0
        for year in range(1, years + 1):
            rate = curve.rate_for_year(year)
            co2_year = round(carbon_stock * rate * p.co2_conversion_factor, 2)
            cumulative += co2_year
            projection.append(
                CarbonProjectionYear(
                    year=year,
                    sequestration_rate=round(rate, 4),
                    co2_tons_year=co2_year,
                    cumulative_co2_tons=round(cumulative, 2),
                    revenue_estimate=self.revenue_for(co2_year, per_year=True),
                )
            )
        return projection

    @staticmethod
    def estimate_carbon_credits(
        co2_tons_year: float,
        years: int = 10,
        verification_rate: float = 0.9,
    ) -> CarbonCredits:
        """
        Carbon credits that could be verified from an annual CO2 figure.

        Args:
            co2_tons_year: Annual sequestration in tCO2
            years: Crediting period
            verification_rate: Share of theoretical capture that gets verified
        """
        if not 0 <= verification_rate <= 1:
            raise ValidationError("Verification rate must be between 0 and 1")
        annual = co2_tons_year * verification_rate
        return CarbonCredits(
            annual_credits=round(annual, 2),
            total_credits=round(annual * years, 2),
            verification_rate=verification_rate,
        )


# Singleton instance
_calculator: Optional[CarbonCalculator] = None


def get_carbon_calculator() -> CarbonCalculator:
    """
    Get or create the singleton calculator instance.

    Returns:
        CarbonCalculator configured from settings
    """
    global _calculator
    if _calculator is None:
        _calculator = CarbonCalculator()
    return _calculator
