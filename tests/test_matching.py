import pytest

from gst_recon.core.grouping import UNKNOWN_SUPPLIER, group_by_supplier
from gst_recon.core.matching import dates_match, filter_scope, match_supplier, split_reverse_charge
from gst_recon.core.standardization import standardize
from gst_recon.schemas.reconciliation import (
    DateStrategy,
    ReconciliationOptions,
    ReconciliationScope,
    ReconciliationStatus,
    SimilarityMethod,
)

GSTIN = "29ABCDE1234F1Z5"


@pytest.fixture
def options():
    return ReconciliationOptions(tolerance_amount=5.0, tolerance_tax=1.0, date_strategy="month", scope="all")


@pytest.fixture
def local(local_record):
    def make(*args, **kwargs):
        return standardize(local_record(*args, **kwargs), "local")
    return make


@pytest.fixture
def portal(portal_record):
    def make(*args, **kwargs):
        return standardize(portal_record(*args, **kwargs), "portal")
    return make


def test_perfect_match(local, portal, options):
    outcome = match_supplier(GSTIN, [local("INV-100/24-25")], [portal("INV-100")], options)
    bucket = outcome.bucket

    assert len(bucket.perfect_matches) == 1
    match = bucket.perfect_matches[0]
    assert match.status == ReconciliationStatus.PERFECT_MATCH
    assert match.tolerance_details.raw_invoice_number_differs is True
    assert match.tolerance_details.exact_date_differs is False
    assert match.taxable_amount_difference == 0
    assert outcome.summary.summary.perfect_match.count == 1


def test_tolerance_match_when_amount_differs_within_tolerance(local, portal):
    options = ReconciliationOptions(tolerance_amount=1.0)
    bucket = match_supplier(GSTIN, [local("INV-100", taxable_amount=1000.50)], [portal("INV-100")], options).bucket

    assert not bucket.perfect_matches
    assert len(bucket.tolerance_matches) == 1
    match = bucket.tolerance_matches[0]
    assert match.status == ReconciliationStatus.TOLERANCE_MATCH
    assert match.tolerance_details.taxable_amount is True
    assert match.tolerance_details.tax_amount is False
    assert match.taxable_amount_difference == 0.5


def test_perfect_needs_the_exact_same_date(local, portal, options):
    bucket = match_supplier(GSTIN, [local("INV-1", date="10-05-2024")], [portal("INV-1", date="28-05-2024")], options).bucket

    assert not bucket.perfect_matches
    assert bucket.tolerance_matches[0].tolerance_details.exact_date_differs is True


def test_amount_mismatch_differences_are_local_minus_portal(local, portal, options):
    bucket = match_supplier(
        GSTIN,
        [local("INV-100", taxable_amount=1500.00), local("INV-200", taxable_amount=1000.00, igst=170.0)],
        [portal("INV-100"), portal("INV-200", taxable_amount=1500.00)],
        options,
    ).bucket

    assert [m.status for m in bucket.amount_mismatches] == [ReconciliationStatus.AMOUNT_MISMATCH] * 2
    first, second = bucket.amount_mismatches
    assert first.taxable_amount_difference == 500.00
    assert first.total_tax_difference == 0
    assert second.taxable_amount_difference == -500.00
    assert second.total_tax_difference == -10.00
    assert not bucket.missing_in_portal and not bucket.missing_in_local


def test_tax_outside_tolerance_is_a_mismatch(local, portal, options):
    bucket = match_supplier(GSTIN, [local("INV-1", igst=182.0)], [portal("INV-1")], options).bucket
    assert bucket.amount_mismatches[0].total_tax_difference == 2.0


def test_potential_match_on_similar_invoice_numbers(local, portal, options):
    bucket = match_supplier(GSTIN, [local("INV 1OO")], [portal("INV100")], options).bucket

    assert len(bucket.potential_matches) == 1
    potential = bucket.potential_matches[0]
    assert potential.status == ReconciliationStatus.POTENTIAL_MATCH
    assert potential.similarity.method == SimilarityMethod.LEVENSHTEIN
    assert potential.similarity.score > 0


def test_no_potential_match_when_amounts_disagree(local, portal, options):
    bucket = match_supplier(GSTIN, [local("INV 1OO", taxable_amount=2000)], [portal("INV100")], options).bucket

    assert not bucket.potential_matches
    assert len(bucket.missing_in_portal) == 1
    assert len(bucket.missing_in_local) == 1


def test_exact_pass_runs_before_similarity(local, portal, options):
    similar_first = portal("INV-1002")
    exact = portal("INV-1001")
    bucket = match_supplier(GSTIN, [local("INV-1001")], [similar_first, exact], options).bucket

    assert bucket.perfect_matches[0].portal_record.id == exact.id
    assert bucket.missing_in_local == [similar_first]


def test_first_eligible_portal_record_wins(local, portal, options):
    first = portal("INV-1", taxable_amount=990.0)
    second = portal("INV-1")
    bucket = match_supplier(GSTIN, [local("INV-1")], [first, second], options).bucket

    # Greedy by input order: the earlier record is consumed even though the later one is exact
    assert bucket.amount_mismatches[0].portal_record.id == first.id
    assert bucket.missing_in_local == [second]


def test_missing_in_local_only(local, portal, options):
    orphan = portal("INV-900")
    bucket = match_supplier(GSTIN, [local("INV-100")], [portal("INV-100"), orphan], options).bucket

    assert bucket.missing_in_local == [orphan]
    assert not bucket.missing_in_portal
    assert all(orphan.id not in (m.local_record.id, m.portal_record.id) for m in bucket.perfect_matches)


def test_supplier_with_one_empty_side(local, options):
    records = [local("INV-1"), local("INV-2")]
    outcome = match_supplier(GSTIN, records, [], options)

    assert outcome.bucket.missing_in_portal == records
    assert outcome.summary.summary.missing_in_portal.count == 2
    assert outcome.summary.summary.total_local.taxable_amount == 2000.0


@pytest.mark.parametrize("strategy, portal_date, matched", [
    ("month", "28-05-2024", True),
    ("month", "01-06-2024", False),
    ("financialYear", "01-06-2024", True),
    ("financialYear", "01-04-2025", False),
    ("quarter", "30-06-2024", True),
    ("quarter", "01-07-2024", False),
])
def test_date_strategies_gate_both_passes(local, portal, strategy, portal_date, matched):
    options = ReconciliationOptions(date_strategy=strategy)
    bucket = match_supplier(GSTIN, [local("INV-1", date="10-05-2024")], [portal("INV-1", date=portal_date)], options).bucket
    assert bool(bucket.tolerance_matches) is matched
    assert bool(bucket.missing_in_local) is not matched


def test_dates_match_accepts_fy_alias(local, portal):
    options = ReconciliationOptions(date_strategy="fy")
    assert options.date_strategy == DateStrategy.FINANCIAL_YEAR
    assert dates_match(local("A-1", date="31-03-2025"), portal("A-1", date="01-04-2024"), options.date_strategy)


def test_split_reverse_charge(portal):
    regular = portal("INV-1")
    reverse = portal("INV-2", reverse_charge="Y")
    matchable, excluded = split_reverse_charge([regular, reverse])
    assert matchable == [regular]
    assert excluded == [reverse]


def test_filter_scope(local):
    invoice = local("INV-1")
    note = local("CN-1", mode="CDNR", type="CREDIT")
    unset = local("X-1", mode=None)

    assert filter_scope([invoice, note, unset], ReconciliationScope.ALL) == ([invoice, note, unset], 0)
    assert filter_scope([invoice, note, unset], ReconciliationScope.B2B) == ([invoice], 2)
    assert filter_scope([invoice, note, unset], ReconciliationScope.CDNR) == ([note], 2)


def test_group_by_supplier_keeps_input_order(local):
    a1 = local("A-1")
    b1 = local("B-1", gstin="27AAAAA0000A1Z5")
    a2 = local("A-2")
    blank = a1.model_copy(update={"id": "blank", "supplier_key": ""})

    groups = group_by_supplier([a1, b1, a2, blank])
    assert list(groups) == [GSTIN, "27AAAAA0000A1Z5", UNKNOWN_SUPPLIER]
    assert groups[GSTIN] == [a1, a2]


@pytest.mark.parametrize("number", ["2024-001", "24-0001", "1234-5678"])
def test_identical_year_like_numbers_are_a_perfect_match(local, portal, options, number):
    bucket = match_supplier(GSTIN, [local(number)], [portal(number)], options).bucket

    assert len(bucket.perfect_matches) == 1
    assert bucket.perfect_matches[0].local_record.invoice_number_normalized == number
    assert not bucket.missing_in_portal and not bucket.missing_in_local


def test_spreadsheet_numeric_invoice_number_matches_text(local, portal, options):
    bucket = match_supplier(GSTIN, [local(12345.0)], [portal("12345")], options).bucket

    assert len(bucket.perfect_matches) == 1
    assert not bucket.potential_matches
    assert bucket.perfect_matches[0].tolerance_details.raw_invoice_number_differs is False
