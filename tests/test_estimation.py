from app.services.estimation_service import calculate_estimation, normalize_city, round_half_up
from utils.time_utils import utcnow


def test_normalize_city():
    assert normalize_city("Bordeaux") == "bordeaux"
    assert normalize_city("Bègles") == "begles"
    assert normalize_city("Villenave-d'Ornon") == "villenavedornon"
    assert normalize_city(None) == ""


def test_known_city_base_price():
    result = calculate_estimation({"city": "Bordeaux", "surface": 50})
    assert result["price_per_m2"] == 4200
    assert result["estimated_value"] == 210000
    assert 85 <= result["confidence"] <= 95


def test_unknown_city_uses_default_price():
    result = calculate_estimation({"city": "Arcachon", "surface": 100})
    assert result["price_per_m2"] == 3200
    assert result["estimated_value"] == 320000


def test_accented_city_matches():
    assert calculate_estimation({"city": "MÉRIGNAC", "surface": 10})["price_per_m2"] == 3800


def test_multipliers():
    result = calculate_estimation({
        "city": "Pessac",
        "surface": 100,
        "property_type": "house",
        "rooms": 5,
        "construction_year": utcnow().year - 2,
        "has_garden": True,
        "has_parking": True,
        "has_balcony": True,
    })
    expected_m2 = 3600 * (0.95 * 1.1 * 1.15 * 1.08 * 1.05 * 1.03)
    assert result["price_per_m2"] == round_half_up(expected_m2)
    assert result["estimated_value"] == round_half_up(100 * expected_m2)


def test_old_small_apartment():
    result = calculate_estimation({
        "city": "Cenon",
        "surface": 40,
        "rooms": 2,
        "construction_year": 1950,
    })
    expected_m2 = 2800 * (0.95 * 0.9)
    assert result["estimated_value"] == round_half_up(40 * expected_m2)


def test_missing_surface_gives_zero():
    assert calculate_estimation({"city": "Bordeaux"})["estimated_value"] == 0


def test_zero_rooms_has_no_effect():
    with_zero = calculate_estimation({"city": "Bordeaux", "surface": 50, "rooms": 0})
    without = calculate_estimation({"city": "Bordeaux", "surface": 50})

    assert with_zero["price_per_m2"] == without["price_per_m2"] == 4200


def test_halves_round_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(209999.49) == 209999
