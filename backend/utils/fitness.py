"""Body metrics derived from a user profile (BMI, BMR, TDEE)."""

_MALE_VALUES = {"male", "maschio", "m", "uomo"}

ACTIVITY_FACTORS = {
    "sedentary": 1.2,
    "sedentario": 1.2,
    "light": 1.375,
    "leggero": 1.375,
    "moderate": 1.55,
    "moderato": 1.55,
    "active": 1.725,
    "attivo": 1.725,
    "very active": 1.9,
    "very_active": 1.9,
    "molto attivo": 1.9,
}
DEFAULT_ACTIVITY_FACTOR = 1.2


def calculate_bmi(weight: float | None, height: float | None) -> float:
    """BMI from weight in kg and height in cm, one decimal; 0 when unknown."""
    if not weight or not height:
        return 0.0
    height_m = height / 100.0
    return round(weight / (height_m * height_m), 1)


def interpret_bmi(bmi: float) -> str:
    if bmi <= 0:
        return "N/A"
    if bmi < 18.5:
        return "Underweight"
    if bmi < 25:
        return "Normal weight"
    if bmi < 30:
        return "Overweight"
    return "Obesity"


def calculate_bmr(weight: float | None, height: float | None, age: int | None, gender: str | None) -> int:
    """Revised Harris-Benedict basal metabolic rate in kcal/day."""
    if not weight or not height or not age:
        return 0
    if (gender or "").strip().lower() in _MALE_VALUES:
        return round(88.362 + (13.397 * weight) + (4.799 * height) - (5.677 * age))
    return round(447.593 + (9.247 * weight) + (3.098 * height) - (4.330 * age))


def calculate_tdee(bmr: int, activity_level: str | None) -> int:
    if not bmr:
        return 0
    factor = ACTIVITY_FACTORS.get((activity_level or "").strip().lower(), DEFAULT_ACTIVITY_FACTOR)
    return round(bmr * factor)
