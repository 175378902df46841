"""Appointment status transitions and who may trigger them."""

from dataclasses import dataclass
from datetime import datetime

from app.core.exceptions import TransitionException
from app.schemas.appointments import AppointmentStatus
from app.schemas.users import UserRole


@dataclass(frozen=True)
class Transition:
    """One permitted status change."""

    source: AppointmentStatus
    target: AppointmentStatus
    actor: UserRole
    requires_upcoming: bool = False


TRANSITIONS: dict[tuple[AppointmentStatus, AppointmentStatus], Transition] = {
    (t.source, t.target): t
    for t in (
        Transition(AppointmentStatus.PENDING, AppointmentStatus.ACCEPTED, UserRole.PROVIDER),
        Transition(AppointmentStatus.PENDING, AppointmentStatus.DECLINED, UserRole.PROVIDER),
        Transition(
            AppointmentStatus.ACCEPTED,
            AppointmentStatus.CANCELLED,
            UserRole.PATIENT,
            requires_upcoming=True,
        ),
        Transition(
            AppointmentStatus.ACCEPTED,
            AppointmentStatus.COMPLETED,
            UserRole.PROVIDER,
            requires_upcoming=True,
        ),
    )
}

TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.DECLINED, AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED}
)


def is_terminal(status: AppointmentStatus) -> bool:
    """Check whether no further transition is possible."""
    return status in TERMINAL_STATUSES


def allowed_transitions(status: AppointmentStatus) -> list[AppointmentStatus]:
    """Statuses reachable from ``status`` in one step."""
    return [target for (source, target) in TRANSITIONS if source == status]


def check_transition(
    current: AppointmentStatus,
    requested: AppointmentStatus,
    actor_role: UserRole,
    appointment_date: datetime,
    now: datetime,
    completion_requires_upcoming: bool = True,
) -> Transition:
    """
    Validate a status change against the transition table.

    Completion is only allowed while the appointment is still upcoming when
    ``completion_requires_upcoming`` is set, which mirrors the rule the app
    has always shipped with. Disabling it flips the check so completion needs
    the appointment time to have arrived.

    Args:
        current: Status stored for the appointment
        requested: Status the actor asks for
        actor_role: Role of the acting party
        appointment_date: Scheduled timestamp of the appointment
        now: Current clinic-local time
        completion_requires_upcoming: Keep the legacy completion rule

    Returns:
        The matching transition

    Raises:
        TransitionException: If the change is not permitted
    """
    if is_terminal(current):
        raise TransitionException(current.value, requested.value, f"'{current.value}' is final")

    transition = TRANSITIONS.get((current, requested))
    if transition is None:
        raise TransitionException(current.value, requested.value)

    if actor_role != transition.actor:
        raise TransitionException(
            current.value,
            requested.value,
            f"only the {transition.actor.value} can do this",
        )

    upcoming = appointment_date > now
    if requested == AppointmentStatus.COMPLETED and not completion_requires_upcoming:
        if upcoming:
            raise TransitionException(
                current.value, requested.value, "the appointment has not taken place yet"
            )
    elif transition.requires_upcoming and not upcoming:
        raise TransitionException(
            current.value, requested.value, "the appointment is no longer upcoming"
        )

    return transition
