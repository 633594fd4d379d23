"""Programme-type catalogue used to cost cohort-based funding asks."""

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class ProgrammeType:
    type_id: int
    label: str
    cohort_cost: Optional[int]
    students: Optional[int] = None
    per_student: Optional[int] = None
    duration: str = ""


class UnitCostLookup(Protocol):
    def is_known(self, type_id: int) -> bool:
        ...

    def unit_cost(self, type_id: int) -> Optional[int]:
        ...


DEFAULT_PROGRAMME_TYPES: tuple[ProgrammeType, ...] = (
    ProgrammeType(1, "Standard Cohort (partner-funded)", 516_000, 20, 25_800, "9 months"),
    ProgrammeType(2, "Standard Cohort (fully funded, stipends and laptops)", 1_597_000, 20, 79_860, "9 months"),
    ProgrammeType(3, "Standard Cohort (with stipends)", 1_236_000, 20, 61_800, "9 months"),
    ProgrammeType(4, "FET High School Programme", 1_079_000, 60, 18_000, "3 years"),
    ProgrammeType(5, "Corporate Programme", 651_000, 63, 10_333, "6 months"),
    # Priced per learner only, so it has no cohort cost.
    ProgrammeType(6, "Short Course (per learner)", None, None, 570, "4-6 weeks"),
    ProgrammeType(7, "Employability Skills (short format)", 199_300, 90, 2_547, "13 weeks"),
)


class ProgrammeCatalogue:
    """Default unit-cost lookup keyed by programme type id."""

    def __init__(self, programme_types: tuple[ProgrammeType, ...] | list[ProgrammeType] = DEFAULT_PROGRAMME_TYPES):
        self._types = {programme.type_id: programme for programme in programme_types}

    def get(self, type_id: int) -> Optional[ProgrammeType]:
        return self._types.get(type_id)

    def is_known(self, type_id: int) -> bool:
        return type_id in self._types

    def unit_cost(self, type_id: int) -> Optional[int]:
        programme = self._types.get(type_id)
        return programme.cohort_cost if programme else None

    def list_types(self) -> list[ProgrammeType]:
        return [self._types[type_id] for type_id in sorted(self._types)]
