import sys
from datetime import datetime
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from utils.datetime_utils import add_months, days_left_until, isoformat_z, parse_datetime  # noqa: E402
from utils.fitness import calculate_bmi, calculate_bmr, calculate_tdee, interpret_bmi  # noqa: E402
from utils.units import macro_progress_pct, round_half_up  # noqa: E402


def test_round_half_up_coerces_loose_input():
    assert round_half_up(2.5) == 3
    assert round_half_up(-2.5) == -2
    assert round_half_up("14.5") == 15
    assert round_half_up(None) == 0
    assert round_half_up("abc", default=7) == 7
    assert round_half_up(True) == 0
    assert round_half_up(float("nan")) == 0


def test_bmi_and_categories():
    assert calculate_bmi(70, 175) == 22.9
    assert calculate_bmi(None, 175) == 0.0
    assert interpret_bmi(0) == "N/A"
    assert interpret_bmi(18.4) == "Underweight"
    assert interpret_bmi(22.9) == "Normal weight"
    assert interpret_bmi(27) == "Overweight"
    assert interpret_bmi(31) == "Obesity"


def test_bmr_uses_gender_formula():
    male = calculate_bmr(70, 175, 30, "male")
    assert male == round(88.362 + 13.397 * 70 + 4.799 * 175 - 5.677 * 30)
    assert calculate_bmr(70, 175, 30, "Maschio") == male
    female = calculate_bmr(60, 165, 28, "female")
    assert female == round(447.593 + 9.247 * 60 + 3.098 * 165 - 4.330 * 28)
    assert calculate_bmr(70, 175, None, "male") == 0


def test_tdee_activity_factors():
    assert calculate_tdee(1600, "moderate") == round(1600 * 1.55)
    assert calculate_tdee(1600, "Molto attivo") == round(1600 * 1.9)
    assert calculate_tdee(1600, "unknown") == round(1600 * 1.2)
    assert calculate_tdee(0, "active") == 0


def test_progress_percentage():
    assert macro_progress_pct(1000, 2000) == 50.0
    assert macro_progress_pct(1000, 0) is None


def test_month_arithmetic_clamps_day():
    assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)
    assert add_months(datetime(2024, 11, 15), 2) == datetime(2025, 1, 15)
    assert add_months(datetime(2024, 2, 29), 12) == datetime(2025, 2, 28)


def test_datetime_helpers():
    assert parse_datetime("2024-06-10T12:00:00Z") == datetime(2024, 6, 10, 12)
    assert parse_datetime("2024-06-10T14:00:00+02:00") == datetime(2024, 6, 10, 12)
    assert isoformat_z(datetime(2024, 6, 10, 12)) == "2024-06-10T12:00:00.000Z"
    assert days_left_until(datetime(2024, 6, 10, 13), datetime(2024, 6, 10, 12)) == 1
    assert days_left_until(datetime(2024, 6, 9), datetime(2024, 6, 10)) == 0
