"""Registry of logical table names.

Maps each TableName to its ORM model, payload schemas and department scope.
Built once at import; callers resolve a raw name with ``resolve`` instead of
switching on strings.
"""
import enum
from dataclasses import dataclass
from typing import Optional, Type, Union

from pydantic import BaseModel

from app.database import Base
from app.models.operational import (
    CriticalIssue,
    MaintenanceRoutine,
    KtaTta,
    SafetyIncident,
    EnergyTarget,
    EnergyConsumption,
)
from app.schemas import records
from app.services.errors import ValidationError

MTCENG = "MTCENG"


class TableName(str, enum.Enum):
    critical_issues = "critical_issues"
    maintenance_routine = "maintenance_routine"
    kta_tta = "kta_tta"
    safety_incidents = "safety_incidents"
    energy_targets = "energy_targets"
    energy_consumption = "energy_consumption"


@dataclass(frozen=True)
class TableSpec:
    name: TableName
    model: Type[Base]
    create_schema: Type[BaseModel]
    update_schema: Type[BaseModel]
    # Static department scope. None means the scope comes from the record's
    # department_id, or the category is global when the model has none.
    department_scope: Optional[str] = None

    @property
    def category(self) -> str:
        """Notification category that views of this table subscribe to."""
        return self.name.value

    @property
    def has_department(self) -> bool:
        return hasattr(self.model, "department_id")

    @property
    def fields(self) -> frozenset[str]:
        return frozenset(self.update_schema.model_fields)


REGISTRY: dict[TableName, TableSpec] = {
    spec.name: spec
    for spec in (
        TableSpec(TableName.critical_issues, CriticalIssue,
                  records.CriticalIssueCreate, records.CriticalIssueUpdate),
        TableSpec(TableName.maintenance_routine, MaintenanceRoutine,
                  records.MaintenanceRoutineCreate, records.MaintenanceRoutineUpdate),
        TableSpec(TableName.kta_tta, KtaTta,
                  records.KtaTtaCreate, records.KtaTtaUpdate),
        TableSpec(TableName.safety_incidents, SafetyIncident,
                  records.SafetyIncidentCreate, records.SafetyIncidentUpdate, MTCENG),
        TableSpec(TableName.energy_targets, EnergyTarget,
                  records.EnergyTargetCreate, records.EnergyTargetUpdate, MTCENG),
        TableSpec(TableName.energy_consumption, EnergyConsumption,
                  records.EnergyConsumptionCreate, records.EnergyConsumptionUpdate, MTCENG),
    )
}


def resolve(table_name: Union[TableName, str]) -> TableSpec:
    """Look up a table by name; unknown names are a ValidationError."""
    try:
        return REGISTRY[TableName(table_name)]
    except ValueError:
        raise ValidationError(f"Unknown table '{table_name}'")
