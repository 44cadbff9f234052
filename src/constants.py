"""
Shared constants used across multiple modules.
Single source of truth for nutrient reference values, keyword rules and
the analysis thresholds the engine and dashboard agree on.
"""

# Recommended daily intakes (sugar/sodium are upper limits)
REFERENCE_DAILY_VALUES = {
    "calories": 2000.0,
    "protein": 50.0,       # g
    "carbs": 275.0,        # g
    "fat": 78.0,           # g
    "fiber": 28.0,         # g
    "sugar": 50.0,         # g, max
    "sodium": 2300.0,      # mg, max
    "vitamin_c": 90.0,     # mg
    "vitamin_d": 20.0,     # mcg
    "vitamin_a": 900.0,    # mcg
    "vitamin_b12": 2.4,    # mcg
    "calcium": 1000.0,     # mg
    "iron": 18.0,          # mg
    "potassium": 4700.0,   # mg
    "magnesium": 420.0,    # mg
    "zinc": 11.0,          # mg
}

MACRO_KEYS = ("calories", "protein", "carbs", "fat", "fiber")

MICRONUTRIENT_KEYS = (
    "vitamin_c", "vitamin_d", "vitamin_a", "vitamin_b12",
    "calcium", "iron", "potassium", "magnesium", "zinc",
)

# (display name, nutrient key), checked and reported in this order
DEFICIENCY_NUTRIENTS = (
    ("Protein", "protein"),
    ("Fiber", "fiber"),
    ("Vitamin C", "vitamin_c"),
    ("Vitamin D", "vitamin_d"),
    ("Calcium", "calcium"),
    ("Iron", "iron"),
    ("Potassium", "potassium"),
    ("Magnesium", "magnesium"),
    ("Vitamin B12", "vitamin_b12"),
)

EXCESS_NUTRIENTS = (
    ("Calories", "calories"),
    ("Sugar", "sugar"),
    ("Sodium", "sodium"),
    ("Fat", "fat"),
)

DEFICIENCY_RATIO = 0.7
EXCESS_RATIO = 1.5
CONSISTENCY_SHARE = 0.5

# Goal tolerances
CALORIE_GOAL_BAND = (0.9, 1.1)
PROTEIN_GOAL_RATIO = 0.9
SLEEP_GOAL_RATIO = 0.9

# Workout categories, first match wins. Sports stays ahead of Core since
# "ab" is a substring of "table tennis".
WORKOUT_CATEGORY_RULES = (
    ("Strength", ("strength", "weight", "lift", "muscle", "resistance")),
    ("Cardio", ("cardio", "run", "jog", "bike", "cycling", "hiit")),
    ("Yoga/Flexibility", ("yoga", "stretch", "flexibility")),
    ("Walking", ("walk",)),
    ("Swimming", ("swim",)),
    ("Sports", ("sport", "game", "tennis", "basketball")),
    ("Core", ("core", "ab")),
    ("Full Body", ("full body", "circuit")),
)
DEFAULT_WORKOUT_CATEGORY = "General"

MEAT_KEYWORDS = ("chicken", "beef", "steak", "pork", "meat", "bacon", "sausage")
VEGETABLE_KEYWORDS = ("salad", "vegetable", "veggie", "tofu", "bean", "lentil")
DAIRY_KEYWORDS = ("milk", "cheese", "yogurt", "dairy")

TOP_FOODS_LIMIT = 10
TOP_WORKOUT_TYPES_LIMIT = 3
TOP_SOCIAL_CATEGORIES_LIMIT = 5

# Analysis thresholds
TREND_MIN_POINTS = 4
TREND_CHANGE_PCT = 10.0
CORRELATION_MIN_POINTS = 3
PATTERN_MIN_DAYS = 3
PATTERN_CORRELATION_MIN_DAYS = 7
SIGNIFICANT_CORRELATION = 0.3
PERIOD_CHANGE_POINTS = 5.0
OVERALL_STREAK_RATIO = 0.5
ACTIVE_DAY_FACTOR = 1.2
REST_DAY_FACTOR = 0.5

WEEKDAY_NAMES = {
    1: "Monday", 2: "Tuesday", 3: "Wednesday", 4: "Thursday",
    5: "Friday", 6: "Saturday", 7: "Sunday",
}
WEEKDAY_SHORT = {
    1: "Mon", 2: "Tue", 3: "Wed", 4: "Thu", 5: "Fri", 6: "Sat", 7: "Sun",
}
