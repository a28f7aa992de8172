"""
Tests for the rental tax calculation
"""
import pytest
from decimal import Decimal

from rentaltracker.config import PeriodMode
from rentaltracker.services.tax import (
    BookingTaxResult, PeriodTaxResult, TaxParameters,
    aggregate_period_tax, calculate_tax, choose_period_mode, clamp,
    compute_booking_tax, round_money, to_decimal,
)

RATE = Decimal("0.35")
BUNDFRADRAG = Decimal("33500")


def book_in_order(revenues, rate=RATE, bundfradrag=BUNDFRADRAG):
    """Calculate a sequence of bookings the way they are added during a year"""
    results = []
    running = Decimal(0)
    for revenue in revenues:
        result = compute_booking_tax(running, revenue, rate, bundfradrag)
        results.append(result)
        running = result.total_revenue_after
    return results


class TestBookingScenarios:
    def test_booking_crossing_allowance(self):
        """Only the revenue above the allowance is taxed"""
        result = compute_booking_tax(0, 40000, RATE, BUNDFRADRAG)
        assert result.taxable_base_booking == Decimal("3900")
        assert result.tax_on_booking == Decimal("1365")
        assert result.cut_after_tax_each == Decimal("19317.5")
        assert result.total_revenue_after == Decimal("40000")

    def test_booking_after_allowance_used(self):
        """Allowance already used up: the whole booking is in the taxable band"""
        result = compute_booking_tax(33500, 10000, RATE, BUNDFRADRAG)
        assert result.total_revenue_before == Decimal("33500")
        assert result.total_revenue_after == Decimal("43500")
        assert result.taxable_base_booking == Decimal("6000")
        assert result.tax_on_booking == Decimal("2100")
        assert result.cut_after_tax_each == Decimal("3950")

    def test_booking_below_allowance(self):
        """No tax while the year stays under the allowance"""
        result = compute_booking_tax(0, 20000, RATE, BUNDFRADRAG)
        assert result.taxable_base_booking == 0
        assert result.tax_on_booking == 0
        assert result.cut_after_tax_each == Decimal("10000")

    def test_year_total_independent_of_order(self):
        """Two orders attribute tax differently but tax the same year total"""
        forward = book_in_order([20000, 30000])
        backward = book_in_order([30000, 20000])

        assert [r.taxable_base_booking for r in forward] == [0, Decimal("9900")]
        assert [r.taxable_base_booking for r in backward] == [0, Decimal("9900")]

        lump = aggregate_period_tax(PeriodMode.LUMP, 50000, TaxParameters(BUNDFRADRAG, RATE))
        for results in (forward, backward):
            total = aggregate_period_tax(
                PeriodMode.SNAPSHOT_SUM, 50000, snapshots=results, snapshots_complete=True
            )
            assert total.taxable_base == lump.taxable_base == Decimal("9900")
            assert total.tax_due == lump.tax_due == Decimal("3465")

    def test_attribution_depends_on_order(self):
        forward = book_in_order([10000, 40000])
        backward = book_in_order([40000, 10000])
        assert forward[1].tax_on_booking != backward[1].tax_on_booking
        assert (sum(r.tax_on_booking for r in forward)
                == sum(r.tax_on_booking for r in backward))


class TestBookingProperties:
    VALUES = [Decimal(v) for v in ("0", "1", "13100", "33499.99", "33500", "50000", "250000")]
    RATES = [Decimal(v) for v in ("0", "0.35", "0.52", "1")]

    def test_results_never_negative(self):
        for existing in self.VALUES:
            for revenue in self.VALUES:
                for bundfradrag in self.VALUES:
                    for rate in self.RATES:
                        result = compute_booking_tax(existing, revenue, rate, bundfradrag)
                        assert result.taxable_base_booking >= 0
                        assert result.tax_on_booking >= 0
                        assert result.cut_after_tax_each >= 0

    def test_sum_of_bookings_matches_year_formula(self):
        revenues = [10000, 15000, Decimal("12000.50"), 8000, 30000]
        results = book_in_order(revenues)
        total = sum(Decimal(str(r)) for r in revenues)

        expected = max(Decimal(0), total - BUNDFRADRAG) * Decimal("0.6")
        assert sum(r.taxable_base_booking for r in results) == expected

    def test_more_revenue_never_less_tax(self):
        for existing in self.VALUES:
            previous = None
            for revenue in self.VALUES:
                tax = compute_booking_tax(existing, revenue, RATE, BUNDFRADRAG).tax_on_booking
                if previous is not None:
                    assert tax >= previous
                previous = tax

    def test_total_after_is_exact_sum(self):
        result = compute_booking_tax(Decimal("12345.67"), Decimal("0.33"), RATE, BUNDFRADRAG)
        assert result.total_revenue_after == Decimal("12346.00")


class TestClamping:
    def test_out_of_range_inputs_are_clamped(self):
        """Negative money and rates above 1 behave as their nearest valid value"""
        assert compute_booking_tax(-5, -1, 2, -100) == compute_booking_tax(0, 0, 1, 0)

    def test_clamped_values_are_reported(self):
        result = compute_booking_tax(-5, 1000, Decimal("1.5"), -100)
        assert result.total_revenue_before == 0
        assert result.bundfradrag == 0
        assert result.tax_rate == 1
        assert result.taxable_base_booking == Decimal("600")
        assert result.tax_on_booking == Decimal("600")
        assert result.cut_after_tax_each == Decimal("200")

    def test_negative_rate_is_zero(self):
        result = compute_booking_tax(0, 50000, Decimal("-0.2"), BUNDFRADRAG)
        assert result.tax_rate == 0
        assert result.tax_on_booking == 0

    def test_unparsable_values_count_as_zero(self):
        assert to_decimal("not a number") == 0
        assert to_decimal(float("nan")) == 0
        assert to_decimal(None, Decimal("7")) == Decimal("7")
        assert clamp(Decimal("1.7"), Decimal(0), Decimal(1)) == 1

    def test_accepts_floats_and_strings(self):
        assert compute_booking_tax("0", 40000.0, 0.35, "33500") == compute_booking_tax(0, 40000, RATE, BUNDFRADRAG)


class TestStakeholders:
    def test_default_split_in_two(self):
        result = compute_booking_tax(0, 20000, RATE, BUNDFRADRAG)
        assert result.cut_after_tax_each == Decimal("10000")

    def test_split_between_more_owners(self):
        result = compute_booking_tax(0, 30000, RATE, BUNDFRADRAG, stakeholders=3)
        assert result.cut_after_tax_each == Decimal("10000")

    def test_at_least_one_owner(self):
        result = compute_booking_tax(0, 20000, RATE, BUNDFRADRAG, stakeholders=0)
        assert result.cut_after_tax_each == Decimal("20000")


class TestRounding:
    def test_halves_round_away_from_zero(self):
        assert round_money(Decimal("0.005")) == Decimal("0.01")
        assert round_money(Decimal("-0.005")) == Decimal("-0.01")
        assert round_money(2.675) == Decimal("2.68")
        assert round_money(Decimal("19317.5")) == Decimal("19317.50")

    def test_rounded_result(self):
        result = compute_booking_tax(0, Decimal("33501.11"), Decimal("0.37"), BUNDFRADRAG)
        assert result.taxable_base_booking == Decimal("0.666")

        rounded = result.rounded()
        assert rounded.taxable_base_booking == Decimal("0.67")
        assert rounded.tax_on_booking == Decimal("0.25")
        assert rounded.cut_after_tax_each == Decimal("16750.43")
        assert rounded.tax_rate == Decimal("0.3700")
        assert str(rounded.booking_revenue) == "33501.11"

    def test_as_dict_has_all_fields(self):
        data = compute_booking_tax(0, 40000, RATE, BUNDFRADRAG).as_dict()
        assert set(data) == {
            "booking_revenue", "total_revenue_before", "total_revenue_after", "bundfradrag",
            "taxable_base_booking", "tax_on_booking", "cut_after_tax_each", "tax_rate",
        }


class TestLumpCalculation:
    def test_full_ownership(self):
        result = calculate_tax(50000, 1, BUNDFRADRAG, RATE)
        assert result.owner_revenue == Decimal("50000")
        assert result.owner_bundfradrag == Decimal("33500")
        assert result.taxable_base == Decimal("9900")
        assert result.tax_due == Decimal("3465")
        assert result.net_after_tax == Decimal("46535")

    def test_ownership_share_scales_revenue_and_allowance(self):
        result = calculate_tax(50000, Decimal("0.5"), BUNDFRADRAG, RATE)
        assert result.owner_revenue == Decimal("25000")
        assert result.owner_bundfradrag == Decimal("16750")
        assert result.taxable_base == Decimal("4950")
        assert result.tax_due == Decimal("1732.5")

    def test_below_allowance(self):
        result = calculate_tax(20000, 1, BUNDFRADRAG, RATE)
        assert result.tax_due == 0
        assert result.net_after_tax == Decimal("20000")


class TestPeriodAggregation:
    def test_lump_mode_uses_settings(self):
        result = aggregate_period_tax("lump", 50000, TaxParameters(BUNDFRADRAG, RATE))
        assert result == calculate_tax(50000, 1, BUNDFRADRAG, RATE)

    def test_lump_mode_clamps_settings(self):
        result = aggregate_period_tax(PeriodMode.LUMP, 50000, TaxParameters(-100, 2))
        assert result.owner_bundfradrag == 0
        assert result.taxable_base == Decimal("30000")
        assert result.tax_due == Decimal("30000")

    def test_lump_mode_without_settings(self):
        result = aggregate_period_tax(PeriodMode.LUMP, 50000)
        assert result.taxable_base == Decimal("30000")
        assert result.tax_due == 0
        assert result.net_after_tax == Decimal("50000")

    def test_snapshot_sum(self):
        snapshots = book_in_order([20000, 30000])
        result = aggregate_period_tax(
            PeriodMode.SNAPSHOT_SUM, 50000, snapshots=snapshots, snapshots_complete=True
        )
        assert result.owner_revenue == Decimal("50000")
        assert result.owner_bundfradrag == 0
        assert result.taxable_base == Decimal("9900")
        assert result.tax_due == Decimal("3465")
        assert result.net_after_tax == Decimal("46535")

    def test_snapshot_sum_keeps_frozen_settings(self):
        """Snapshots made under different rates are summed as they are"""
        first = compute_booking_tax(0, 40000, Decimal("0.35"), BUNDFRADRAG)
        second = compute_booking_tax(40000, 10000, Decimal("0.50"), BUNDFRADRAG)
        result = aggregate_period_tax(
            PeriodMode.SNAPSHOT_SUM, 50000, snapshots=[first, second], snapshots_complete=True
        )
        assert result.tax_due == Decimal("1365") + Decimal("3000")

    def test_snapshot_sum_requires_confirmation(self):
        snapshots = book_in_order([20000, 30000])
        with pytest.raises(ValueError, match="every booking"):
            aggregate_period_tax(PeriodMode.SNAPSHOT_SUM, 50000, snapshots=snapshots)

    def test_no_bookings_gives_zero(self):
        for mode in PeriodMode:
            result = aggregate_period_tax(mode, 0, TaxParameters(BUNDFRADRAG, RATE))
            assert result == PeriodTaxResult()

    def test_results_can_be_added(self):
        a = calculate_tax(50000, 1, BUNDFRADRAG, RATE)
        b = calculate_tax(20000, 1, BUNDFRADRAG, RATE)
        total = a + b
        assert total.owner_revenue == Decimal("70000")
        assert total.tax_due == Decimal("3465")
        assert sum([a, b], PeriodTaxResult()) == total


class TestPeriodMode:
    def test_all_time_with_complete_snapshots(self):
        assert choose_period_mode(all_time=True, snapshots_complete=True) == PeriodMode.SNAPSHOT_SUM

    def test_all_time_with_missing_snapshots(self):
        assert choose_period_mode(all_time=True, snapshots_complete=False) == PeriodMode.LUMP

    def test_single_year_always_lump(self):
        assert choose_period_mode(all_time=False, snapshots_complete=True) == PeriodMode.LUMP
