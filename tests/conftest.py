import os
from collections.abc import AsyncGenerator, Generator
from datetime import date, datetime, timezone
from decimal import Decimal

os.environ.setdefault(
    "SOLSERVICE_DATABASE_URI", "postgresql+asyncpg://localhost/solservice"
)

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from testcontainers.postgres import PostgresContainer  # noqa: E402

from solservice.agreement.lifecycle import activate, create_agreement  # noqa: E402
from solservice.agreement.models import (  # noqa: E402
    AddonCategory,
    AddonFrequency,
    AddonProduct,
    AgreementType,
    ServiceAgreement,
)
from solservice.agreement.schemas import AgreementCreate  # noqa: E402
from solservice.base.models import BaseDbModel  # noqa: E402
from solservice.installation.models import Installation, SystemType  # noqa: E402
from solservice.visit.lifecycle import create_visit  # noqa: E402
from solservice.visit.models import ServiceVisit, VisitType  # noqa: E402
from solservice.visit.schemas import VisitCreate  # noqa: E402


@pytest.fixture(scope="session")
def postgres_url() -> Generator[str]:
    external = os.environ.get("SOLSERVICE_TEST_DATABASE_URI")
    if external:
        yield external
        return
    with PostgresContainer("postgres:17") as pg:
        # Convert sync URL to async (postgresql:// -> postgresql+asyncpg://)
        sync_url = pg.get_connection_url()
        yield sync_url.replace("postgresql+psycopg2://", "postgresql+asyncpg://")


@pytest.fixture
async def db_engine(postgres_url: str) -> AsyncGenerator[AsyncEngine]:
    # Import all models so metadata knows about them
    import solservice.agreement.models  # noqa: F401
    import solservice.base.sequence  # noqa: F401
    import solservice.checklist.models  # noqa: F401
    import solservice.installation.models  # noqa: F401
    import solservice.user.models  # noqa: F401
    import solservice.visit.models  # noqa: F401

    engine = create_async_engine(postgres_url)
    async with engine.begin() as conn:
        await conn.run_sync(BaseDbModel.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(BaseDbModel.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
async def installation(db_session: AsyncSession) -> Installation:
    inst = Installation(
        customer_id="C-1001",
        customer_name="Fjordsol AS",
        address="Strandveien 12",
        city="Bergen",
        system_type=SystemType.SOLAR_PANEL,
        capacity_kw=Decimal("40"),
        install_date=date(2023, 5, 1),
    )
    db_session.add(inst)
    await db_session.flush()
    return inst


@pytest.fixture
async def annual_addon(db_session: AsyncSession) -> AddonProduct:
    product = AddonProduct(
        name="Remote monitoring",
        category=AddonCategory.MONITORING,
        frequency=AddonFrequency.ANNUAL,
        base_price=Decimal("1200.00"),
        unit="year",
        is_active=True,
        sort_order=0,
    )
    db_session.add(product)
    await db_session.flush()
    return product


@pytest.fixture
async def per_visit_addon(db_session: AsyncSession) -> AddonProduct:
    product = AddonProduct(
        name="Panel cleaning",
        category=AddonCategory.MAINTENANCE,
        frequency=AddonFrequency.PER_VISIT,
        base_price=Decimal("800.00"),
        unit="visit",
        is_active=True,
        sort_order=1,
    )
    db_session.add(product)
    await db_session.flush()
    return product


@pytest.fixture
async def active_agreement(
    db_session: AsyncSession, installation: Installation
) -> ServiceAgreement:
    agreement = await create_agreement(
        db_session,
        AgreementCreate(
            installation_id=installation.id,
            agreement_type=AgreementType.STANDARD,
            start_date=date(2026, 1, 1),
            end_date=date(2026, 12, 31),
            technician_id="tech-1",
        ),
    )
    return await activate(db_session, agreement.id, signed_by="ops@example.com")


@pytest.fixture
async def visit(
    db_session: AsyncSession, active_agreement: ServiceAgreement
) -> ServiceVisit:
    return await create_visit(
        db_session,
        VisitCreate(
            agreement_id=active_agreement.id,
            technician_id="tech-1",
            scheduled_date=datetime(2026, 5, 4, 8, 0, tzinfo=timezone.utc),
            visit_type=VisitType.ANNUAL_INSPECTION,
        ),
    )
