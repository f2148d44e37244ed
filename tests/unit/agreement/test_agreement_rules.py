from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from dateutil.relativedelta import relativedelta
from pydantic import ValidationError

from solservice.agreement.lifecycle import (
    _transition,
    format_agreement_number,
    next_visit_date,
    parse_agreement_sequence,
    validate_price_input,
    visit_interval,
)
from solservice.agreement.models import AgreementStatus, ServiceAgreement
from solservice.agreement.schemas import AddonInput, AgreementCreate, AgreementUpdate
from solservice.base.errors import InvalidInputError, InvalidStateTransitionError


def _agreement(status: AgreementStatus) -> ServiceAgreement:
    return ServiceAgreement(agreement_number="SA-00001-2026", status=status)


class TestAgreementNumber:
    def test_format_pads_sequence(self) -> None:
        assert format_agreement_number(7, 2026) == "SA-00007-2026"

    def test_format_wider_than_padding(self) -> None:
        assert format_agreement_number(123456, 2026) == "SA-123456-2026"

    def test_parse_roundtrip(self) -> None:
        assert parse_agreement_sequence("SA-00042-2025") == 42

    def test_parse_rejects_foreign_numbers(self) -> None:
        assert parse_agreement_sequence("LEGACY-1") is None
        assert parse_agreement_sequence("SA-abc-2025") is None


class TestVisitInterval:
    @pytest.mark.parametrize(
        ("frequency", "months"), [(1, 12), (2, 6), (4, 3), (12, 1)]
    )
    def test_divisible_frequencies_use_months(
        self, frequency: int, months: int
    ) -> None:
        assert visit_interval(frequency) == relativedelta(months=months)

    def test_other_frequencies_use_days(self) -> None:
        assert visit_interval(5) == relativedelta(days=73)

    def test_next_visit_date_clamps_month_end(self) -> None:
        assert next_visit_date(date(2026, 8, 31), 2) == date(2027, 2, 28)


class TestValidatePriceInput:
    def test_accepts_valid_input(self) -> None:
        validate_price_input(
            Decimal("100"), Decimal("0"), [AddonInput(addon_id=uuid4())]
        )

    def test_rejects_non_positive_base(self) -> None:
        with pytest.raises(InvalidInputError):
            validate_price_input(Decimal("0"), None, [])

    def test_rejects_discount_over_100(self) -> None:
        with pytest.raises(InvalidInputError):
            validate_price_input(Decimal("100"), Decimal("100.01"), [])

    def test_rejects_zero_quantity(self) -> None:
        addon = AddonInput.model_construct(
            addon_id=uuid4(), quantity=0, custom_price=None, notes=None
        )
        with pytest.raises(InvalidInputError) as exc_info:
            validate_price_input(None, None, [addon])

        assert exc_info.value.meta["addon_id"] == str(addon.addon_id)


class TestPricePrecision:
    @pytest.mark.parametrize(
        "field", [{"discount_percent": "12.345"}, {"base_price": "0.001"}]
    )
    def test_create_rejects_sub_cent_values(self, field: dict[str, str]) -> None:
        with pytest.raises(ValidationError):
            AgreementCreate.model_validate(
                {
                    "installation_id": str(uuid4()),
                    "agreement_type": "STANDARD",
                    "start_date": "2026-01-01",
                    **field,
                }
            )

    def test_update_and_addon_reject_sub_cent_values(self) -> None:
        with pytest.raises(ValidationError):
            AgreementUpdate(base_price=Decimal("999.999"))
        with pytest.raises(ValidationError):
            AddonInput(addon_id=uuid4(), custom_price=Decimal("10.005"))

    def test_two_places_accepted(self) -> None:
        update = AgreementUpdate(
            base_price=Decimal("1000.50"), discount_percent=Decimal("12.35")
        )

        assert update.discount_percent == Decimal("12.35")


class TestAgreementTransitions:
    @pytest.mark.parametrize(
        ("event", "source", "target"),
        [
            ("submit", AgreementStatus.DRAFT, AgreementStatus.PENDING_APPROVAL),
            ("activate", AgreementStatus.DRAFT, AgreementStatus.ACTIVE),
            ("activate", AgreementStatus.PENDING_APPROVAL, AgreementStatus.ACTIVE),
            ("suspend", AgreementStatus.ACTIVE, AgreementStatus.SUSPENDED),
            ("resume", AgreementStatus.SUSPENDED, AgreementStatus.ACTIVE),
            ("expire", AgreementStatus.SUSPENDED, AgreementStatus.EXPIRED),
            ("cancel", AgreementStatus.EXPIRED, AgreementStatus.CANCELLED),
        ],
    )
    def test_allowed(
        self, event: str, source: AgreementStatus, target: AgreementStatus
    ) -> None:
        agreement = _agreement(source)

        _transition(agreement, event)

        assert agreement.status is target

    @pytest.mark.parametrize(
        ("event", "source"),
        [
            ("submit", AgreementStatus.ACTIVE),
            ("activate", AgreementStatus.SUSPENDED),
            ("suspend", AgreementStatus.DRAFT),
            ("resume", AgreementStatus.ACTIVE),
            ("cancel", AgreementStatus.CANCELLED),
        ],
    )
    def test_rejected_leaves_status(
        self, event: str, source: AgreementStatus
    ) -> None:
        agreement = _agreement(source)

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            _transition(agreement, event)

        assert agreement.status is source
        assert exc_info.value.meta["status"] == source.value
