from types import SimpleNamespace

import pytest

from services.fee_service.schemas import FeeTierUpsert
from services.fee_service.service import (
    FeeConfigurationMissing,
    FeeService,
    InvalidFeeTier,
    UnserviceableArea,
)
from services.fee_service.zones import bare_zone_name, match_zone


def _address(street, city="Bansalan"):
    return SimpleNamespace(id=None, street_address=street, city=city)


# --- Zone matching ---

def test_bare_zone_name_strips_barangay_prefix():
    assert bare_zone_name("Barangay Tayaga") == "tayaga"
    assert bare_zone_name("Poblacion") == "poblacion"


def test_match_zone_tries_bare_names_before_prefixed_forms():
    zones = ["Barangay Po", "Tayaga"]
    # "po" is too short for a bare match, so "barangay po" only matches on the second pass.
    assert match_zone("purok 1, barangay po, near tayaga", zones) == "Tayaga"


def test_match_zone_accepts_barangay_and_brgy_spellings():
    assert match_zone("purok 3, barangay po, davao", ["Po"]) == "Po"
    assert match_zone("purok 3, brgy. po, davao", ["Po"]) == "Po"
    assert match_zone("purok 3, brgy po, davao", ["Po"]) == "Po"


def test_match_zone_ignores_short_bare_names():
    assert match_zone("upon the hill", ["Po"]) is None


def test_match_zone_requires_word_boundaries():
    assert match_zone("tayagan subdivision", ["Tayaga"]) is None


# --- Tier lookup ---

@pytest.mark.parametrize(
    "amount, expected_fee, tier",
    [
        (0, 50, "band"),
        (499, 50, "band"),
        (500, 30, "band"),
        (999.99, 30, "band"),
        (1000, 0, "band"),
        (10000, 0, "max"),
    ],
)
async def test_calculate_picks_band_by_amount(db, seed, amount, expected_fee, tier):
    await seed.tiers("Tayaga")

    quote = await FeeService.calculate(db, "Tayaga", amount)

    assert quote.delivery_fee == expected_fee
    assert quote.tier == tier


async def test_calculate_without_tiers_for_zone(db, seed):
    await seed.tiers("Tayaga")

    with pytest.raises(FeeConfigurationMissing):
        await FeeService.calculate(db, "Dolo", 300)


async def test_resolve_delivery_fee_from_address(db, seed):
    await seed.tiers("Tayaga")
    await seed.tiers("Dolo", bands=((0, 1000, 70),))

    quote = await FeeService.resolve_delivery_fee(db, _address("Purok 2, Brgy. Dolo"), 800)

    assert quote.barangay == "Dolo"
    assert quote.delivery_fee == 70


async def test_resolve_delivery_fee_unserviceable_lists_zones(db, seed):
    await seed.tiers("Tayaga")
    await seed.tiers("Dolo", bands=((0, 1000, 70),))

    with pytest.raises(UnserviceableArea) as excinfo:
        await FeeService.resolve_delivery_fee(db, _address("Quezon Ave", "Manila"), 800)

    assert excinfo.value.details == {"zones": ["Dolo", "Tayaga"]}
    assert "Dolo, Tayaga" in excinfo.value.message


async def test_resolve_delivery_fee_without_any_tiers(db):
    with pytest.raises(FeeConfigurationMissing):
        await FeeService.resolve_delivery_fee(db, _address("Tayaga"), 800)


# --- Tier administration ---

async def test_upsert_updates_existing_band(db, seed):
    await seed.tiers("Tayaga")

    tier = await FeeService.upsert_tier(
        db, FeeTierUpsert(barangay="Tayaga", min_order_amount=0, max_order_amount=500, delivery_fee=45)
    )

    assert tier.delivery_fee == 45
    assert len(await FeeService.get_tiers(db, "Tayaga")) == 3


async def test_upsert_rejects_overlapping_band(db, seed):
    await seed.tiers("Tayaga")

    with pytest.raises(InvalidFeeTier):
        await FeeService.upsert_tier(
            db, FeeTierUpsert(barangay="Tayaga", min_order_amount=400, max_order_amount=700, delivery_fee=40)
        )


async def test_upsert_rejects_inverted_band(db):
    with pytest.raises(InvalidFeeTier):
        await FeeService.upsert_tier(
            db, FeeTierUpsert(barangay="Tayaga", min_order_amount=500, max_order_amount=100, delivery_fee=40)
        )


async def test_list_tiers_groups_by_zone(db, seed):
    await seed.tiers("Tayaga")
    await seed.tiers("Dolo", bands=((0, 1000, 70),))

    grouped = await FeeService.list_tiers(db)

    assert sorted(grouped) == ["Dolo", "Tayaga"]
    assert [t.delivery_fee for t in grouped["Tayaga"]] == [50, 30, 0]


async def test_default_fee_is_the_zero_band(db, seed):
    await seed.tiers("Tayaga")

    assert await FeeService.get_default_fee(db, "Tayaga") == 50


async def test_delete_barangay_removes_all_tiers(db, seed):
    await seed.tiers("Tayaga")

    assert await FeeService.delete_barangay(db, "Tayaga") == 3
    assert await FeeService.list_tiers(db) == {}
