import asyncio
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from solservice.agreement import lifecycle
from solservice.agreement.models import AddonProduct, AgreementStatus
from solservice.agreement.pricing import qmoney
from solservice.agreement.schemas import AddonInput, AgreementCreate, AgreementUpdate
from solservice.base.errors import (
    InvalidInputError,
    InvalidStateTransitionError,
    NotFoundError,
)
from solservice.installation.models import Installation


def _create(installation: Installation, **overrides: object) -> AgreementCreate:
    data: dict[str, object] = {
        "installation_id": installation.id,
        "agreement_type": "STANDARD",
        "start_date": date(2026, 1, 1),
        "end_date": date(2026, 12, 31),
    }
    data.update(overrides)
    return AgreementCreate.model_validate(data)


class TestCreateAgreement:
    async def test_defaults_from_tier(
        self, db_session: AsyncSession, installation: Installation
    ) -> None:
        agreement = await lifecycle.create_agreement(
            db_session, _create(installation), today=date(2026, 1, 1)
        )

        assert agreement.agreement_number == "SA-00001-2026"
        assert agreement.status is AgreementStatus.DRAFT
        assert agreement.base_price == Decimal("4500")
        assert agreement.calculated_price == Decimal("4500.00")
        assert agreement.visit_frequency == 2
        assert agreement.service_plan is not None
        assert agreement.service_plan.next_visit_date == date(2026, 7, 1)

    async def test_numbers_increase(
        self, db_session: AsyncSession, installation: Installation
    ) -> None:
        first = await lifecycle.create_agreement(db_session, _create(installation))
        second = await lifecycle.create_agreement(db_session, _create(installation))

        assert lifecycle.parse_agreement_sequence(second.agreement_number) == (
            lifecycle.parse_agreement_sequence(first.agreement_number) or 0
        ) + 1

    async def test_rejects_end_before_start(
        self, db_session: AsyncSession, installation: Installation
    ) -> None:
        with pytest.raises(InvalidInputError):
            await lifecycle.create_agreement(
                db_session, _create(installation, end_date=date(2025, 12, 31))
            )

    async def test_unknown_installation(self, db_session: AsyncSession) -> None:
        data = AgreementCreate(
            installation_id=uuid4(),
            agreement_type="BASIC",  # type: ignore[arg-type]
            start_date=date(2026, 1, 1),
        )

        with pytest.raises(NotFoundError):
            await lifecycle.create_agreement(db_session, data)

    async def test_concurrent_creates_get_distinct_numbers(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        installation: Installation,
    ) -> None:
        await db_session.commit()

        async def create_one() -> str:
            async with session_factory() as session:
                agreement = await lifecycle.create_agreement(
                    session, _create(installation)
                )
                await session.commit()
                return agreement.agreement_number

        numbers = await asyncio.gather(*(create_one() for _ in range(8)))

        assert len(set(numbers)) == 8
        sequences = sorted(lifecycle.parse_agreement_sequence(n) for n in numbers)
        assert sequences == list(range(1, 9))


class TestUpdateAgreement:
    async def test_replaces_addons_and_reprices(
        self,
        db_session: AsyncSession,
        installation: Installation,
        annual_addon: AddonProduct,
        per_visit_addon: AddonProduct,
    ) -> None:
        agreement = await lifecycle.create_agreement(
            db_session,
            _create(
                installation,
                base_price="5000",
                addons=[{"addon_id": per_visit_addon.id}],
            ),
        )
        assert agreement.calculated_price == Decimal("5000.00")

        updated = await lifecycle.update_agreement(
            db_session,
            agreement.id,
            AgreementUpdate(
                discount_percent=Decimal("50"),
                addons=[AddonInput(addon_id=annual_addon.id, quantity=2)],
            ),
        )

        assert [a.addon_id for a in updated.addons] == [annual_addon.id]
        assert updated.calculated_price == Decimal("3700.00")

    async def test_frequency_change_moves_plan(
        self, db_session: AsyncSession, installation: Installation
    ) -> None:
        agreement = await lifecycle.create_agreement(db_session, _create(installation))

        updated = await lifecycle.update_agreement(
            db_session,
            agreement.id,
            AgreementUpdate(visit_frequency=4, technician_id="tech-9"),
        )

        assert updated.service_plan is not None
        assert updated.service_plan.visit_frequency == 4
        assert updated.service_plan.next_visit_date == date(2026, 4, 1)
        assert updated.service_plan.technician_id == "tech-9"

    async def test_required_field_cannot_be_cleared(
        self, db_session: AsyncSession, installation: Installation
    ) -> None:
        agreement = await lifecycle.create_agreement(db_session, _create(installation))

        with pytest.raises(InvalidInputError):
            await lifecycle.update_agreement(
                db_session, agreement.id, AgreementUpdate(base_price=None)
            )

    async def test_cancelled_agreement_is_frozen(
        self, db_session: AsyncSession, installation: Installation
    ) -> None:
        agreement = await lifecycle.create_agreement(db_session, _create(installation))
        await lifecycle.cancel(db_session, agreement.id, "  customer moved  ")
        assert agreement.cancellation_reason == "customer moved"

        with pytest.raises(InvalidStateTransitionError):
            await lifecycle.update_agreement(
                db_session, agreement.id, AgreementUpdate(notes="late edit")
            )

    async def test_end_before_start_changes_nothing(
        self, db_session: AsyncSession, installation: Installation
    ) -> None:
        agreement = await lifecycle.create_agreement(db_session, _create(installation))

        with pytest.raises(InvalidInputError):
            await lifecycle.update_agreement(
                db_session,
                agreement.id,
                AgreementUpdate(notes="shorter term", end_date=date(2025, 6, 30)),
            )

        assert agreement.end_date == date(2026, 12, 31)
        assert agreement.notes is None

    async def test_stored_price_matches_engine_after_reload(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        installation: Installation,
        annual_addon: AddonProduct,
    ) -> None:
        agreement = await lifecycle.create_agreement(
            db_session,
            _create(
                installation,
                base_price="1000.50",
                discount_percent="12.35",
                addons=[{"addon_id": annual_addon.id, "custom_price": "99.99"}],
            ),
        )
        await db_session.commit()

        async with session_factory() as session:
            stored = await lifecycle.get_agreement(session, agreement.id)

            assert stored.calculated_price == qmoney(
                lifecycle.price_agreement(stored).total
            )


class TestAddons:
    async def test_add_and_remove(
        self,
        db_session: AsyncSession,
        installation: Installation,
        annual_addon: AddonProduct,
    ) -> None:
        agreement = await lifecycle.create_agreement(
            db_session, _create(installation, base_price="1000")
        )

        addon = await lifecycle.add_addon(
            db_session,
            agreement.id,
            AddonInput(addon_id=annual_addon.id, custom_price=Decimal("100")),
        )
        assert agreement.calculated_price == Decimal("1100.00")

        await lifecycle.remove_addon(db_session, agreement.id, addon.id)
        assert agreement.addons == []
        assert agreement.calculated_price == Decimal("1000.00")

    async def test_remove_unknown(
        self, db_session: AsyncSession, installation: Installation
    ) -> None:
        agreement = await lifecycle.create_agreement(db_session, _create(installation))

        with pytest.raises(NotFoundError):
            await lifecycle.remove_addon(db_session, agreement.id, uuid4())

    async def test_cancelled_agreement_addons_are_frozen(
        self,
        db_session: AsyncSession,
        installation: Installation,
        annual_addon: AddonProduct,
    ) -> None:
        agreement = await lifecycle.create_agreement(
            db_session,
            _create(
                installation,
                base_price="1000",
                addons=[{"addon_id": annual_addon.id}],
            ),
        )
        await lifecycle.cancel(db_session, agreement.id, None)
        [existing] = agreement.addons

        with pytest.raises(InvalidStateTransitionError):
            await lifecycle.add_addon(
                db_session, agreement.id, AddonInput(addon_id=annual_addon.id)
            )
        with pytest.raises(InvalidStateTransitionError):
            await lifecycle.remove_addon(db_session, agreement.id, existing.id)

        assert agreement.addons == [existing]
        assert agreement.calculated_price == Decimal("2200.00")

    async def test_invoice_input(
        self,
        db_session: AsyncSession,
        installation: Installation,
        annual_addon: AddonProduct,
    ) -> None:
        agreement = await lifecycle.create_agreement(
            db_session,
            _create(
                installation,
                base_price="1000",
                addons=[{"addon_id": annual_addon.id}],
            ),
        )

        invoice = lifecycle.invoice_input(agreement)

        assert invoice.customer_id == "C-1001"
        assert invoice.price.total == Decimal("2200.00")
        assert invoice.price.grand_total == Decimal("2750.00")


class TestExpireOverdue:
    async def test_expires_or_renews(
        self, db_session: AsyncSession, installation: Installation
    ) -> None:
        renewing = await lifecycle.create_agreement(
            db_session,
            _create(
                installation, start_date=date(2024, 4, 1), end_date=date(2025, 3, 31)
            ),
        )
        ending = await lifecycle.create_agreement(
            db_session,
            _create(
                installation,
                start_date=date(2024, 4, 1),
                end_date=date(2025, 3, 31),
                auto_renew=False,
            ),
        )
        draft = await lifecycle.create_agreement(
            db_session,
            _create(
                installation, start_date=date(2024, 4, 1), end_date=date(2025, 3, 31)
            ),
        )
        for agreement in (renewing, ending):
            await lifecycle.activate(db_session, agreement.id)

        touched = await lifecycle.expire_overdue(db_session, today=date(2026, 6, 1))

        assert {a.id for a in touched} == {renewing.id, ending.id}
        assert renewing.status is AgreementStatus.ACTIVE
        assert renewing.end_date == date(2027, 3, 31)
        assert ending.status is AgreementStatus.EXPIRED
        assert draft.status is AgreementStatus.DRAFT

    async def test_list_expiring(
        self, db_session: AsyncSession, installation: Installation
    ) -> None:
        soon = await lifecycle.create_agreement(
            db_session, _create(installation, end_date=date(2026, 6, 20))
        )
        later = await lifecycle.create_agreement(
            db_session, _create(installation, end_date=date(2026, 12, 31))
        )
        for agreement in (soon, later):
            await lifecycle.activate(db_session, agreement.id)

        expiring = await lifecycle.list_expiring(
            db_session, days=30, today=date(2026, 6, 1)
        )

        assert [a.id for a in expiring] == [soon.id]


class TestSeedAddonProducts:
    async def test_is_idempotent(self, db_session: AsyncSession) -> None:
        created = await lifecycle.seed_addon_products(db_session)
        again = await lifecycle.seed_addon_products(db_session)

        assert len(created) == 7
        assert again == []
        assert len(await lifecycle.list_addon_products(db_session)) == 7
