"""Pytest configuration and shared fixtures.

This module provides centralized test fixtures for:
- A controllable clock and test settings
- Users with each role, registered in a directory
- Thread snapshots for exercising the component services directly
- A fully wired ThreadEngine over the in-memory store and audit trail
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from carethread.config import Settings
from carethread.repositories.base import InMemoryThreadStore
from carethread.schemas.admission import (
    AdmissionCreate,
    AdmissionRecord,
    AdmissionStatus,
    Sex,
)
from carethread.schemas.thread import ThreadSnapshot
from carethread.schemas.user import CareTeamMember, UserRole
from carethread.services.audit import InMemoryAuditTrail
from carethread.services.engine import ThreadEngine
from carethread.services.membership import UserDirectory

FIXED_NOW = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)

OWNER_ID = "dr-reyes"
NURSE_ID = "nurse-lim"
SECOND_NURSE_ID = "nurse-cruz"
OUTSIDER_ID = "dr-tan"
ADMIN_ID = "admin-ong"
CLERK_ID = "clerk-dela"


class FakeClock:
    """Clock returning a fixed instant until advanced."""

    def __init__(self, start: datetime = FIXED_NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


# =============================================================================
# Clock, settings, users
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings() -> Settings:
    """Settings independent of the environment, with small limits."""
    return Settings(_env_file=None, max_members=5, max_message_length=200)


@pytest.fixture
def directory() -> UserDirectory:
    return UserDirectory(
        [
            CareTeamMember(id=OWNER_ID, role=UserRole.HCW_MD),
            CareTeamMember(id=NURSE_ID, role=UserRole.HCW_RN),
            CareTeamMember(id=SECOND_NURSE_ID, role=UserRole.HCW_RN),
            CareTeamMember(id=OUTSIDER_ID, role=UserRole.HCW_MD),
            CareTeamMember(id=ADMIN_ID, role=UserRole.ADMIN),
            CareTeamMember(id=CLERK_ID, role=UserRole.SYSCLERK),
        ]
    )


@pytest.fixture
def owner(directory) -> CareTeamMember:
    return directory.resolve(OWNER_ID)


@pytest.fixture
def nurse(directory) -> CareTeamMember:
    return directory.resolve(NURSE_ID)


@pytest.fixture
def outsider(directory) -> CareTeamMember:
    return directory.resolve(OUTSIDER_ID)


@pytest.fixture
def admin(directory) -> CareTeamMember:
    return directory.resolve(ADMIN_ID)


@pytest.fixture
def clerk(directory) -> CareTeamMember:
    return directory.resolve(CLERK_ID)


# =============================================================================
# Thread snapshots
# =============================================================================


@pytest.fixture
def make_thread():
    """Factory for bare thread snapshots (no messages)."""

    def _make(
        owner_id: str = OWNER_ID,
        members: tuple[str, ...] = (NURSE_ID,),
        status: AdmissionStatus = AdmissionStatus.ACTIVE,
        thread_id: str = "adm-1",
    ) -> ThreadSnapshot:
        admission = AdmissionRecord(
            id=thread_id,
            main_care_owner_id=owner_id,
            surname="Santos",
            first_name="Maria",
            age=67,
            sex=Sex.FEMALE,
            diagnosis="Community-acquired pneumonia",
            ward="Ward 3",
            room="301",
            members={owner_id, *members},
            status=status,
            date_admitted=FIXED_NOW,
            date_discharged=FIXED_NOW if status == AdmissionStatus.DISCHARGED else None,
        )
        return ThreadSnapshot(admission=admission)

    return _make


@pytest.fixture
def thread(make_thread) -> ThreadSnapshot:
    """Active thread owned by OWNER_ID with NURSE_ID as the other member."""
    return make_thread()


@pytest.fixture
def admission_attributes() -> AdmissionCreate:
    return AdmissionCreate(
        surname="Santos",
        first_name="Maria",
        age=67,
        sex=Sex.FEMALE,
        diagnosis="Community-acquired pneumonia",
        patient_identifier="HN-000123",
        ward="Ward 3",
        room="301",
    )


# =============================================================================
# Engine
# =============================================================================


@pytest.fixture
def store() -> InMemoryThreadStore:
    return InMemoryThreadStore()


@pytest.fixture
def audit_trail() -> InMemoryAuditTrail:
    return InMemoryAuditTrail()


@pytest.fixture
def engine(store, audit_trail, directory, clock, test_settings) -> ThreadEngine:
    return ThreadEngine(store, audit_trail, directory, clock=clock, config=test_settings)


@pytest_asyncio.fixture
async def thread_id(engine, admission_attributes) -> str:
    """Admission created by OWNER_ID with NURSE_ID added to the care team."""
    admission = await engine.create_admission(OWNER_ID, admission_attributes)
    await engine.add_member(admission.id, OWNER_ID, NURSE_ID)
    return admission.id
