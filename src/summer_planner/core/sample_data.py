"""
Sample children and schedule for first-time accounts
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from ..models import Camp, Child, ScheduleStatus, WeekSlot

logger = logging.getLogger(__name__)

SAMPLE_SUFFIX = "(sample)"


def generate_sample_children() -> List[Dict[str, Any]]:
    """Create payloads for the two sample children"""
    return [
        {"name": f"Emma {SAMPLE_SUFFIX}", "age": 8, "color": "#ec4899", "is_sample": True},
        {"name": f"Jake {SAMPLE_SUFFIX}", "age": 10, "color": "#3b82f6", "is_sample": True},
    ]


def _category_matches(camp: Camp, *keywords: str) -> bool:
    category = (camp.category or "").lower()
    return any(keyword in category for keyword in keywords)


def _find_camp(camps: Sequence[Camp], age: int, *keywords: str) -> Optional[Camp]:
    for camp in camps:
        if _category_matches(camp, *keywords) and camp.accepts_age(age):
            return camp
    return None


def _find_child(children: Sequence[Child], name: str) -> Optional[Child]:
    for child in children:
        if name in child.name:
            return child
    return None


def generate_sample_schedule(
    children: Sequence[Child],
    camps: Sequence[Camp],
    weeks: Sequence[WeekSlot],
) -> List[Dict[str, Any]]:
    """
    Create payloads placing the sample children in age-appropriate camps.

    Emma (art, beach) gets weeks 1, 3 and 5; Jake (sports, science) gets
    weeks 1, 2 and 4. When no camp matches by category, the first two camps
    are used for week 1 instead. Weeks past the end of the season are left out.
    """
    if len(children) < 2 or not camps or not weeks:
        logger.warning("Not enough children, camps or weeks to generate a sample schedule")
        return []

    emma = _find_child(children, "Emma")
    jake = _find_child(children, "Jake")
    if emma is None or jake is None:
        logger.warning("Sample children not found")
        return []

    schedule: List[Dict[str, Any]] = []

    def place(camp: Optional[Camp], child: Child, week_index: int, fallback_price: int, status: ScheduleStatus):
        if camp is None or week_index >= len(weeks):
            return
        week = weeks[week_index]
        schedule.append({
            "camp_id": camp.id,
            "child_id": child.id,
            "camp_name": camp.name,
            "start_date": week.start_date.isoformat(),
            "end_date": week.end_date.isoformat(),
            "price": camp.min_price or fallback_price,
            "status": status.value,
            "is_sample": True,
        })

    art = _find_camp(camps, 8, "art")
    beach = _find_camp(camps, 8, "beach")
    sports = _find_camp(camps, 10, "sport")
    science = _find_camp(camps, 10, "science", "stem")

    place(art, emma, 0, 350, ScheduleStatus.REGISTERED)
    place(beach, emma, 2, 400, ScheduleStatus.CONFIRMED)
    place(art, emma, 4, 350, ScheduleStatus.PLANNED)
    place(sports, jake, 0, 425, ScheduleStatus.CONFIRMED)
    place(sports, jake, 1, 425, ScheduleStatus.REGISTERED)
    place(science, jake, 3, 475, ScheduleStatus.WAITLISTED)

    if not schedule and len(camps) >= 2:
        place(camps[0], emma, 0, 350, ScheduleStatus.REGISTERED)
        place(camps[1], jake, 0, 400, ScheduleStatus.CONFIRMED)

    return schedule
