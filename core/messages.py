"""User-facing error messages for the generation pipeline.

Only these templated strings ever reach the client; provider error text stays
in logs and in the audit table.
"""

from typing import Dict

SUPPORTED_LANGUAGES = ("en", "ar")

ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "INVALID_USER_PROFILE": "Your profile information is incomplete. Please update your age, height and weight and try again.",
        "VALIDATION_ERROR": "The meal plan preferences are missing or invalid. Please check your preferences and try again.",
        "RATE_LIMIT_EXCEEDED": "You have reached your AI generation limit. Please try again tomorrow or upgrade your plan.",
        "AI_RATE_LIMITED": "AI service is temporarily overloaded. Please try again in a few minutes.",
        "AI_TIMEOUT": "The AI service took too long to respond. Please try again.",
        "AI_SERVICE_ERROR": "Our AI service is temporarily unavailable. Please try again in a few minutes.",
        "AI_GENERATION_FAILED": "Our AI service is temporarily unavailable. Please try again in a few minutes.",
        "AI_RESPONSE_INVALID": "The generated meal plan could not be read. Please try generating it again.",
        "DATABASE_ERROR": "A temporary database error occurred. Please try again.",
        "MEAL_PLAN_EMPTY": "Your meal plan could not be saved and is currently empty. Please generate it again.",
        "AUTH_ERROR": "Your session has expired. Please sign in again.",
        "NOT_FOUND": "The requested meal plan was not found.",
        "CONFIGURATION_ERROR": "The AI service is not configured. Please contact support.",
        "UNKNOWN_ERROR": "An unexpected error occurred. Please try again.",
    },
    "ar": {
        "INVALID_USER_PROFILE": "معلومات ملفك الشخصي غير مكتملة. يرجى تحديث العمر والطول والوزن والمحاولة مرة أخرى.",
        "VALIDATION_ERROR": "تفضيلات خطة الوجبات مفقودة أو غير صالحة. يرجى التحقق من تفضيلاتك والمحاولة مرة أخرى.",
        "RATE_LIMIT_EXCEEDED": "لقد وصلت إلى حد توليد الذكاء الاصطناعي. يرجى المحاولة غداً أو ترقية خطتك.",
        "AI_RATE_LIMITED": "خدمة الذكاء الاصطناعي محملة بشكل مؤقت. يرجى المحاولة خلال دقائق قليلة.",
        "AI_TIMEOUT": "استغرقت خدمة الذكاء الاصطناعي وقتاً طويلاً للرد. يرجى المحاولة مرة أخرى.",
        "AI_SERVICE_ERROR": "خدمة الذكاء الاصطناعي غير متاحة مؤقتاً. يرجى المحاولة خلال دقائق قليلة.",
        "AI_GENERATION_FAILED": "خدمة الذكاء الاصطناعي غير متاحة مؤقتاً. يرجى المحاولة خلال دقائق قليلة.",
        "AI_RESPONSE_INVALID": "تعذرت قراءة خطة الوجبات المولدة. يرجى إعادة التوليد.",
        "DATABASE_ERROR": "حدث خطأ مؤقت في قاعدة البيانات. يرجى المحاولة مرة أخرى.",
        "MEAL_PLAN_EMPTY": "تعذر حفظ خطة وجباتك وهي فارغة حالياً. يرجى توليدها مرة أخرى.",
        "AUTH_ERROR": "انتهت صلاحية جلستك. يرجى تسجيل الدخول مرة أخرى.",
        "NOT_FOUND": "لم يتم العثور على خطة الوجبات المطلوبة.",
        "CONFIGURATION_ERROR": "خدمة الذكاء الاصطناعي غير مهيأة. يرجى التواصل مع الدعم.",
        "UNKNOWN_ERROR": "حدث خطأ غير متوقع. يرجى المحاولة مرة أخرى.",
    },
}


def normalize_language(language) -> str:
    """Map any requested language onto a supported one, defaulting to English."""
    if isinstance(language, str):
        lang = language.strip().lower()[:2]
        if lang in SUPPORTED_LANGUAGES:
            return lang
    return "en"


def user_message(code: str, language: str = "en") -> str:
    """Return the localized message for an error code."""
    messages = ERROR_MESSAGES[normalize_language(language)]
    return messages.get(code, messages["UNKNOWN_ERROR"])
