"""
Interest disclosure filter for cross-user squad reads
"""
import logging
from typing import Dict, Iterable, List, Mapping, Optional

from ..models import CampInterest, Squad, SquadInterestRow, SquadMember

logger = logging.getLogger(__name__)

ANONYMOUS_MEMBER_NAME = "A friend"
UNNAMED_MEMBER_NAME = "Squad member"


def disclose_interest(
    interest: CampInterest,
    squad_id: str,
    member: Optional[SquadMember],
    child_name: Optional[str] = None,
) -> SquadInterestRow:
    """
    Project one interest for squad peers.

    Unless the owning member opted to reveal identity, the owner, the member
    name and every child attribute are withheld. An owner who is not a
    member of the squad is treated as hidden.
    """
    reveal = bool(member and member.reveal_identity)

    if not reveal:
        return SquadInterestRow(
            interest_id=interest.id,
            squad_id=squad_id,
            camp_id=interest.camp_id,
            week_number=interest.week_number,
            looking_for_friends=interest.looking_for_friends,
            reveal_identity=False,
            owner_id=None,
            member_name=ANONYMOUS_MEMBER_NAME,
            child_id=None,
            child_name=None,
        )

    return SquadInterestRow(
        interest_id=interest.id,
        squad_id=squad_id,
        camp_id=interest.camp_id,
        week_number=interest.week_number,
        looking_for_friends=interest.looking_for_friends,
        reveal_identity=True,
        owner_id=interest.owner_id,
        member_name=member.display_name or UNNAMED_MEMBER_NAME,
        child_id=interest.child_id,
        child_name=child_name,
    )


def filter_squad_interests(
    squad: Squad,
    interests: Iterable[CampInterest],
    child_names: Optional[Mapping[str, str]] = None,
    exclude_user_id: Optional[str] = None,
) -> List[SquadInterestRow]:
    """Disclosed interests of squad members who share their schedule"""
    child_names = child_names or {}
    members: Dict[str, SquadMember] = {member.user_id: member for member in squad.members}
    rows = []

    for interest in interests:
        member = members.get(interest.owner_id)
        if member is None or not member.share_schedule:
            continue
        if exclude_user_id is not None and interest.owner_id == exclude_user_id:
            continue
        rows.append(disclose_interest(interest, squad.id, member, child_names.get(interest.child_id)))

    rows.sort(key=lambda row: (row.camp_id, row.week_number, row.interest_id))
    return rows


def collect_peer_interests(
    squads: Iterable[Squad],
    interests: Iterable[CampInterest],
    caller_id: str,
    child_names: Optional[Mapping[str, str]] = None,
) -> List[SquadInterestRow]:
    """Interests visible to the caller across every squad they belong to"""
    interests = list(interests)
    rows = []
    for squad in squads:
        if squad.member(caller_id) is None:
            logger.debug(f"Skipping squad {squad.id}: caller is not a member")
            continue
        rows.extend(filter_squad_interests(squad, interests, child_names, exclude_user_id=caller_id))
    return rows


def is_disclosure_safe(row: SquadInterestRow) -> bool:
    """Hidden rows carry no identity and no child attribution"""
    if row.reveal_identity:
        return True
    return (
        row.owner_id is None
        and row.member_name == ANONYMOUS_MEMBER_NAME
        and row.child_id is None
        and row.child_name is None
    )
