from datetime import date

import pytest

from amc_engine.domain.amc.lifecycle import ContractLifecycleManager
from amc_engine.domain.amc.progress import VisitCompletion, VisitProgressTracker
from amc_engine.domain.amc.renewal import PriceAdjustment, RenewalEngine, merge_products
from amc_engine.errors import InvalidContractTerms, InvalidTransition

engine = RenewalEngine()


def test_percentage_adjustment_overrides_new_value(make_contract):
    contract = make_contract()

    engine.renew(
        contract,
        new_start=date(2026, 1, 1),
        new_end=date(2027, 1, 1),
        new_value=5000,
        new_quota=None,
        price_adjustment=PriceAdjustment(kind="percentage", value=10),
    )

    assert contract.contract_value == pytest.approx(1100)
    assert contract.scheduled_visit_quota == 4


def test_fixed_adjustment_and_explicit_terms(make_contract):
    contract = make_contract()

    engine.renew(
        contract,
        new_start=date(2026, 1, 1),
        new_end=date(2027, 1, 1),
        new_value=None,
        new_quota=6,
        price_adjustment=PriceAdjustment(kind="fixed", value=-250),
        terms_update="Renewed at revised rates",
    )

    assert contract.contract_value == pytest.approx(750)
    assert contract.scheduled_visit_quota == 6
    assert contract.terms == "Renewed at revised rates"


def test_renew_resets_progress_and_sets_next_visit(make_contract):
    contract = make_contract()
    VisitProgressTracker.complete(contract, 0, VisitCompletion(completed_date=date(2025, 4, 1)))
    contract.status = "expired"

    engine.renew(contract, date(2026, 1, 1), date(2027, 1, 1), 1200, 4)

    assert contract.status == "active"
    assert contract.completed_visit_count == 0
    assert contract.next_visit_date == date(2026, 1, 31)
    assert contract.start_date == date(2026, 1, 1)
    assert contract.end_date == date(2027, 1, 1)


def test_renew_merges_products(make_contract):
    contract = make_contract(products=["prod-1", "prod-2"])

    engine.renew(
        contract,
        date(2026, 1, 1),
        date(2027, 1, 1),
        None,
        None,
        add_products=["prod-3", "prod-1"],
        remove_products=["prod-2"],
    )

    assert contract.product_refs == ["prod-1", "prod-3"]


def test_merge_products_keeps_first_seen_order():
    assert merge_products(["a", "b"], ["c", "a"], ["b"]) == ["a", "c"]
    assert merge_products(None, ["x"]) == ["x"]


@pytest.mark.parametrize(
    "start, end, value, quota",
    [
        (date(2026, 1, 1), date(2026, 1, 1), 100, 4),
        (date(2026, 1, 1), date(2027, 1, 1), -1, 4),
        (date(2026, 1, 1), date(2027, 1, 1), 100, 0),
    ],
)
def test_renew_rejects_invalid_terms(make_contract, start, end, value, quota):
    contract = make_contract()

    with pytest.raises(InvalidContractTerms):
        engine.renew(contract, start, end, value, quota)
    assert contract.start_date == date(2025, 1, 1)


def test_renew_of_cancelled_contract_is_rejected(make_contract):
    contract = make_contract(status="cancelled")

    with pytest.raises(InvalidTransition):
        engine.renew(contract, date(2026, 1, 1), date(2027, 1, 1), 1000, 4)


def test_cancelled_contract_renews_when_transitions_are_not_enforced(make_contract):
    contract = make_contract(status="cancelled")
    relaxed = RenewalEngine(ContractLifecycleManager(enforce_transitions=False))

    relaxed.renew(contract, date(2026, 1, 1), date(2027, 1, 1), 1000, 4)

    assert contract.status == "active"


def test_bulk_renew_extends_each_contract_by_its_own_duration(make_contract):
    yearly = make_contract(engineSerialNumber="ENG-Y")
    half_year = make_contract(engineSerialNumber="ENG-H", endDate="2025-07-01")

    result = engine.bulk_renew(
        [yearly, half_year], PriceAdjustment(kind="percentage", value=10), "Bulk renewal 2026"
    )

    assert result.failed == []
    assert (yearly.start_date, yearly.end_date) == (date(2026, 1, 1), date(2027, 1, 1))
    assert (half_year.start_date, half_year.end_date) == (date(2025, 7, 1), date(2025, 12, 29))
    assert yearly.contract_value == pytest.approx(1100)
    assert half_year.terms == "Bulk renewal 2026"


def test_bulk_renew_is_best_effort(make_contract):
    good = make_contract(engineSerialNumber="ENG-OK")
    cancelled = make_contract(engineSerialNumber="ENG-CX", status="cancelled")

    result = engine.bulk_renew([good, cancelled])

    assert result.renewed == [good]
    assert len(result.failed) == 1
    assert result.failed[0].contract_number == cancelled.contract_number
    assert cancelled.start_date == date(2025, 1, 1)
    assert good.start_date == date(2026, 1, 1)


def test_unknown_adjustment_kind_is_rejected():
    with pytest.raises(InvalidContractTerms):
        PriceAdjustment(kind="discount", value=5).apply(100)
