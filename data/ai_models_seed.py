"""Default model catalogue seeded into an empty database.

Administrators can change these rows at runtime; they are only a starting
point so a fresh install can generate plans.
"""

DEFAULT_AI_MODELS = [
    {
        "model_id": "gemini-2.5-flash",
        "provider": "google",
        "name": "Gemini 2.5 Flash",
        "is_active": True,
        "is_default": True,
    },
    {
        "model_id": "gemini-2.5-pro",
        "provider": "google",
        "name": "Gemini 2.5 Pro",
        "is_active": True,
        "is_default": False,
    },
    {
        "model_id": "gemini-2.0-flash",
        "provider": "google",
        "name": "Gemini 2.0 Flash",
        "is_active": True,
        "is_default": False,
    },
]

DEFAULT_FEATURE_MODELS = [
    {"feature_name": "meal_plan", "primary": "gemini-2.5-flash", "fallback": "gemini-2.0-flash"},
]
