"""Resource capacity, utilization, team workload and availability."""

from .availability import AvailabilityFinder, AvailableResource
from .capacity import AllocationConflict, CapacityService, ResourceCapacity
from .utilization import ProjectUtilization, ResourceUtilization, UtilizationCalculator
from .workload import MemberWorkload, TeamWorkload, TeamWorkloadAggregator, WorkloadClass

__all__ = [
    "AllocationConflict",
    "AvailabilityFinder",
    "AvailableResource",
    "CapacityService",
    "MemberWorkload",
    "ProjectUtilization",
    "ResourceCapacity",
    "ResourceUtilization",
    "TeamWorkload",
    "TeamWorkloadAggregator",
    "UtilizationCalculator",
    "WorkloadClass",
]
