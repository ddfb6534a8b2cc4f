from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from reviewhub.db.base import Base
from reviewhub.db.session import SessionLocal, engine
from reviewhub.models.access import User, UserLocationAccess
from reviewhub.models.hierarchy import Location, LocationGroup, Organization


def init_db() -> None:
    """
    Create tables + seed demo data.

    One organization with a two-level hierarchy and three users whose grants
    cover the three grant shapes. Bearer tokens are user ids or external ids.
    """

    Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        if _has_seed_data(db):
            return
        _seed(db)


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(Organization.id).limit(1)).first() is not None


def _seed(db: Session) -> None:
    acme = Organization(
        name="Acme Coffee",
        industry="Food & Beverage",
        hierarchy_levels=["Region", "State"],
        subscription_plan="Business",
        max_locations=25,
        max_users=10,
    )
    db.add(acme)
    db.flush()

    # Hierarchy: West -> CA -> LA; NYC sits at the organization root.
    west = LocationGroup(organization_id=acme.id, name="West", group_type="Region", level=0)
    db.add(west)
    db.flush()
    ca = LocationGroup(organization_id=acme.id, parent_group_id=west.id, name="California", group_type="State", level=1)
    db.add(ca)
    db.flush()

    la = Location(organization_id=acme.id, location_group_id=ca.id, name="Los Angeles", city="Los Angeles", state="CA")
    sf = Location(organization_id=acme.id, location_group_id=ca.id, name="San Francisco", city="San Francisco", state="CA")
    nyc = Location(organization_id=acme.id, name="New York", city="New York", state="NY")
    db.add_all([la, sf, nyc])
    db.flush()

    # Users
    owner = User(external_id="auth0|owner", email="olivia.owner@example.com", full_name="Olivia Owner", organization_id=acme.id, role="Owner")
    regional = User(external_id="auth0|regional", email="rick.region@example.com", full_name="Rick Region", organization_id=acme.id, role="Manager")
    store = User(external_id="auth0|store", email="sam.store@example.com", full_name="Sam Store", organization_id=acme.id, role="Staff")
    db.add_all([owner, regional, store])
    db.flush()

    db.add_all(
        [
            UserLocationAccess(user_id=owner.id, organization_id=acme.id, has_all_locations_access=True),
            UserLocationAccess(
                user_id=regional.id,
                organization_id=acme.id,
                location_group_id=west.id,
                permissions=["view", "respond"],
            ),
            UserLocationAccess(user_id=store.id, organization_id=acme.id, location_id=nyc.id, permissions=["view"]),
        ]
    )

    db.commit()
