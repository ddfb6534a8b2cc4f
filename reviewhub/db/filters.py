from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import Session, with_loader_criteria


@event.listens_for(Session, "do_orm_execute")
def _apply_location_scope(execute_state) -> None:
    """
    Transparent location scoping.

    When a router stores the caller's accessible location ids in
    `Session.info["location_scope"]`, plain queries such as
        db.scalars(select(Location)).all()
    only return those locations.
    """

    if not execute_state.is_select:
        return

    scope = execute_state.session.info.get("location_scope")
    if scope is None:
        return

    # Local import to avoid cycles.
    from reviewhub.models.hierarchy import Location  # noqa: WPS433 (local import)

    location_ids = sorted(scope)
    execute_state.statement = execute_state.statement.options(
        with_loader_criteria(Location, Location.id.in_(location_ids), include_aliases=True),
    )
