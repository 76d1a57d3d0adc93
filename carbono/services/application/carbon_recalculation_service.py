"""
Application service: Recompute stored CO2 estimates after factor changes.
"""
import logging
from typing import Optional

from carbono.domain.models import (
    RecalculationEntry,
    RecalculationFailure,
    RecalculationSummary,
)
from carbono.infrastructure.project_repository import ProjectRepository
from carbono.services.domain.carbon_calculator import CarbonCalculator

logger = logging.getLogger(__name__)


class CarbonRecalculationService:
    """
    Re-runs the department-based carbon calculation for every active project
    and overwrites the stored annual estimate.

    The operation is idempotent: with unchanged factors and inputs a second
    run writes the same values. Estimates are not versioned; the before and
    after values are logged and returned.
    """

    def __init__(self, repository: ProjectRepository, calculator: CarbonCalculator):
        """
        Initialize the service with dependencies.

        Args:
            repository: Project persistence boundary
            calculator: Carbon calculator holding the current factors
        """
        self.repository = repository
        self.calculator = calculator

    async def recalculate_all(self) -> RecalculationSummary:
        """
        Recalculate every active project.

        Per-project failures are collected in the summary, never raised.

        Returns:
            RecalculationSummary with before/after values per project
        """
        projects = await self.repository.list_active_projects()
        logger.info(f"Recalculating CO2 estimates for {len(projects)} projects")

        updates = []
        errors = []
        for project in projects:
            try:
                result = self.calculator.calculate_by_department(
                    project.area_hectares,
                    project.project_type,
                    project.department,
                    project.duration_years,
                )
                old_value = project.estimated_co2_tons_year
                new_value = result.estimated_co2_tons_year
                await self.repository.update_co2_estimate(project.id, new_value)
            except Exception as e:
                logger.exception(f"Recalculation failed for project {project.id}")
                errors.append(
                    RecalculationFailure(project_id=project.id, name=project.name, error=str(e))
                )
                continue

            change = _change_percent(old_value, new_value)
            updates.append(
                RecalculationEntry(
                    project_id=project.id,
                    name=project.name,
                    department=project.department,
                    area_hectares=project.area_hectares,
                    old_co2_tons_year=old_value,
                    new_co2_tons_year=new_value,
                    change_percent=change,
                )
            )
            logger.info(
                f"{project.name}: {old_value:.2f} -> {new_value:.2f} tCO2/year"
                + (f" ({change:+.1f}%)" if change is not None else "")
            )

        logger.info(
            f"Recalculation completed: {len(updates)} updated, {len(errors)} failed"
        )
        return RecalculationSummary(
            total_projects=len(projects),
            successful_updates=len(updates),
            failed_updates=len(errors),
            updates=updates,
            errors=errors,
        )


def _change_percent(old_value: float, new_value: float) -> Optional[float]:
    if old_value == 0:
        return None
    return round((new_value - old_value) / old_value * 100, 2)
