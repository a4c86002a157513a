import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable, List, Mapping, Optional, Set, Union

from pydantic import ValidationError

from gst_recon.core.config import settings
from gst_recon.core.errors import ConfigurationError
from gst_recon.core.grouping import group_by_supplier
from gst_recon.core.matching import SupplierOutcome, filter_scope, match_supplier, split_reverse_charge
from gst_recon.core.standardization import StandardizationResult, standardize_batch
from gst_recon.core.summary import SummaryAggregator
from gst_recon.schemas.invoice import CanonicalInvoiceRecord, Source
from gst_recon.schemas.reconciliation import ReconciliationOptions, ReconciliationResult, RecordError

# AUTHORITATIVE RECONCILIATION ENGINE – DO NOT DUPLICATE
# Single entry point: standardize -> exclude reverse charge -> scope filter -> group -> match per supplier -> merge.

logger = logging.getLogger(__name__)

OptionsInput = Union[ReconciliationOptions, Mapping[str, Any], None]


def resolve_options(options: OptionsInput = None) -> ReconciliationOptions:
    """Fills in configured defaults. Raises ConfigurationError before any matching work starts."""
    if isinstance(options, ReconciliationOptions):
        return options
    try:
        return ReconciliationOptions.model_validate(options if options is not None else {})
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'options'}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid reconciliation options: {details}") from e


def _drop_duplicate_ids(batch: StandardizationResult, seen: Set[str], source: Source) -> List[RecordError]:
    errors = []
    unique = []
    for record in batch.records:
        if record.id in seen:
            errors.append(RecordError(
                source=source,
                record_id=record.id,
                invoice_number=record.invoice_number_raw,
                reason="Duplicate record ID"
            ))
            logger.warning(f"Dropping {source.value} record with duplicate ID {record.id} (Inv#: {record.invoice_number_raw})")
            continue
        seen.add(record.id)
        unique.append(record)
    batch.records = unique
    batch.invalid_count += len(errors)
    batch.errors.extend(errors)
    return errors


def _assert_partition(result: ReconciliationResult):
    summary = result.summary
    paired = (
        summary.perfect_match.count
        + summary.tolerance_match.count
        + summary.amount_mismatch.count
        + summary.potential_match.count
    )
    assert paired + summary.missing_in_portal.count == summary.total_local.count, "local records not fully partitioned"
    assert paired + summary.missing_in_local.count == summary.total_portal.count, "portal records not fully partitioned"

    placed: Set[str] = {r.id for r in result.reverse_charge}
    expected = len(placed)
    for bucket in result.details:
        for outcome in (*bucket.perfect_matches, *bucket.tolerance_matches, *bucket.amount_mismatches, *bucket.potential_matches):
            placed.update((outcome.local_record.id, outcome.portal_record.id))
            expected += 2
        placed.update(r.id for r in bucket.missing_in_portal)
        placed.update(r.id for r in bucket.missing_in_local)
        expected += len(bucket.missing_in_portal) + len(bucket.missing_in_local)
    assert len(placed) == expected, "a record was classified into more than one outcome"


def _run(
    local: StandardizationResult,
    portal: StandardizationResult,
    options: ReconciliationOptions,
    max_workers: Optional[int] = None,
) -> ReconciliationResult:
    seen_ids: Set[str] = set()
    _drop_duplicate_ids(local, seen_ids, Source.LOCAL)
    _drop_duplicate_ids(portal, seen_ids, Source.PORTAL)

    portal_matchable, reverse_charge = split_reverse_charge(portal.records)
    local_in_scope, local_excluded = filter_scope(local.records, options.scope)
    portal_in_scope, portal_excluded = filter_scope(portal_matchable, options.scope)

    logger.info(f"Starting reconciliation. Local: {len(local_in_scope)}, Portal: {len(portal_in_scope)}")
    logger.info(f"Using Tolerances: Amount=±{options.tolerance_amount}, Tax=±{options.tolerance_tax}")
    logger.info(f"Using Date Match Strategy: {options.date_strategy.value}, Scope: {options.scope.value}")
    if reverse_charge:
        logger.info(f"Excluded {len(reverse_charge)} reverse-charge portal records from matching")

    local_groups = group_by_supplier(local_in_scope)
    portal_groups = group_by_supplier(portal_in_scope)
    supplier_keys = list(dict.fromkeys([*local_groups, *portal_groups]))
    logger.info(f"Processing {len(supplier_keys)} unique suppliers.")

    def match(key: str) -> SupplierOutcome:
        return match_supplier(key, local_groups.get(key, []), portal_groups.get(key, []), options)

    workers = settings.RECON_MAX_WORKERS if max_workers is None else max_workers
    if workers > 1 and len(supplier_keys) > 1:
        # Supplier groups are independent; results come back in supplier order.
        with ThreadPoolExecutor(max_workers=min(workers, len(supplier_keys))) as executor:
            outcomes = list(executor.map(match, supplier_keys))
    else:
        outcomes = [match(key) for key in supplier_keys]

    aggregator = SummaryAggregator()
    for record in reverse_charge:
        aggregator.add_reverse_charge(record)
    for outcome in outcomes:
        aggregator.merge(outcome.summary)

    result = ReconciliationResult(
        summary=aggregator.build(
            options,
            invalid_local_count=local.invalid_count,
            invalid_portal_count=portal.invalid_count,
            excluded_by_scope_local_count=local_excluded,
            excluded_by_scope_portal_count=portal_excluded,
            total_suppliers_local=len(local_groups),
            total_suppliers_portal=len(portal_groups),
            total_suppliers=len(supplier_keys),
        ),
        details=[outcome.bucket for outcome in outcomes],
        reverse_charge=reverse_charge,
        validation_errors=[*local.errors, *portal.errors],
    )
    _assert_partition(result)

    summary = result.summary
    logger.info('Reconciliation completed.')
    logger.info(
        f"Summary: Perfectly Matched: {summary.perfect_match.count}, Tolerance Matched: {summary.tolerance_match.count}, "
        f"Amount Mismatches: {summary.amount_mismatch.count}, Potential Matches: {summary.potential_match.count}, "
        f"Missing in Portal: {summary.missing_in_portal.count}, Missing in Local: {summary.missing_in_local.count}, "
        f"Reverse Charge: {summary.reverse_charge.count}"
    )
    return result


def reconcile(
    local_records: Iterable[Any],
    portal_records: Iterable[Any],
    options: OptionsInput = None,
    max_workers: Optional[int] = None,
) -> ReconciliationResult:
    """
    Reconciles raw local purchase records against raw portal records.

    Records failing standardization are dropped and reported in
    ``validation_errors``; they never abort the run. Invalid options raise
    ``ConfigurationError`` before anything is standardized.
    """
    options = resolve_options(options)
    local = standardize_batch(local_records, Source.LOCAL)
    portal = standardize_batch(portal_records, Source.PORTAL)
    return _run(local, portal, options, max_workers)


def reconcile_records(
    local_records: Iterable[CanonicalInvoiceRecord],
    portal_records: Iterable[CanonicalInvoiceRecord],
    options: OptionsInput = None,
    max_workers: Optional[int] = None,
) -> ReconciliationResult:
    """Same as ``reconcile`` for records that are already canonical."""
    options = resolve_options(options)
    return _run(
        StandardizationResult(records=list(local_records)),
        StandardizationResult(records=list(portal_records)),
        options,
        max_workers,
    )
