"""
OTP Message Templates
=====================
Localized SMS text and email content for verification codes.
"""

from typing import Dict, Tuple

DEFAULT_LANGUAGE = "english"

SMS_TEMPLATES: Dict[str, str] = {
    "english": "Your {brand} verification code is: {code}. Valid for {minutes} minutes. Do not share this code.",
    "hindi": "आपका {brand} सत्यापन कोड है: {code}। {minutes} मिनट के लिए वैध। इस कोड को साझा न करें।",
    "tamil": "உங்கள் {brand} சரிபார்ப்பு குறியீடு: {code}. {minutes} நிமிடங்களுக்கு செல்லுபடியாகும். இந்த குறியீட்டை பகிர வேண்டாம்.",
    "telugu": "మీ {brand} ధృవీకరణ కోడ్: {code}. {minutes} నిమిషాలు చెల్లుబాటు. ఈ కోడ్‌ని పంచుకోవద్దు.",
    "bengali": "আপনার {brand} যাচাইকরণ কোড: {code}। {minutes} মিনিটের জন্য বৈধ। এই কোডটি শেয়ার করবেন না।",
    "marathi": "तुमचा {brand} सत्यापन कोड: {code}. {minutes} मिनिटांसाठी वैध. हा कोड शेअर करू नका.",
    "gujarati": "તમારો {brand} વેરિફિકેશન કોડ: {code}. {minutes} મિનિટ માટે માન્ય. આ કોડ શેર ન કરો.",
    "kannada": "ನಿಮ್ಮ {brand} ಪರಿಶೀಲನೆ ಕೋಡ್: {code}. {minutes} ನಿಮಿಷಗಳವರೆಗೆ ಮಾನ್ಯ. ಈ ಕೋಡ್ ಅನ್ನು ಹಂಚಿಕೊಳ್ಳಬೇಡಿ.",
    "malayalam": "നിങ്ങളുടെ {brand} സ്ഥിരീകരണ കോഡ്: {code}. {minutes} മിനിറ്റ് സാധുവാണ്. ഈ കോഡ് പങ്കിടരുത്.",
    "punjabi": "ਤੁਹਾਡਾ {brand} ਪੁਸ਼ਟੀਕਰਨ ਕੋਡ: {code}। {minutes} ਮਿੰਟਾਂ ਲਈ ਵੈਧ। ਇਹ ਕੋਡ ਸਾਂਝਾ ਨਾ ਕਰੋ।",
    "odia": "ଆପଣଙ୍କର {brand} ଯାଞ୍ଚ କୋଡ୍: {code}। {minutes} ମିନିଟ୍ ପାଇଁ ବୈଧ। ଏହି କୋଡ୍ ସେୟାର କରନ୍ତୁ ନାହିଁ।",
    "assamese": "আপোনাৰ {brand} সত্যাপন ক'ড: {code}। {minutes} মিনিটৰ বাবে বৈধ। এই ক'ডটো শ্বেয়াৰ নকৰিব।",
}

EMAIL_SUBJECT = "{brand} - Email Verification Code"

EMAIL_BODY = (
    "Your {brand} verification code is: {code}.\n\n"
    "This code will expire in {minutes} minutes.\n\n"
    "If you did not request this code, you can ignore this email."
)


def _minutes(ttl_seconds: int) -> int:
    return max(1, ttl_seconds // 60)


def supported_languages() -> Tuple[str, ...]:
    return tuple(SMS_TEMPLATES)


def render_sms(code: str, language: str = DEFAULT_LANGUAGE, brand: str = "EasyMedPro", ttl_seconds: int = 600) -> str:
    """Render the OTP SMS, falling back to English for unknown languages."""
    template = SMS_TEMPLATES.get((language or DEFAULT_LANGUAGE).lower(), SMS_TEMPLATES[DEFAULT_LANGUAGE])
    return template.format(brand=brand, code=code, minutes=_minutes(ttl_seconds))


def render_email(code: str, brand: str = "EasyMedPro", ttl_seconds: int = 600) -> Tuple[str, str]:
    """Render the OTP email as ``(subject, body)``."""
    return (
        EMAIL_SUBJECT.format(brand=brand),
        EMAIL_BODY.format(brand=brand, code=code, minutes=_minutes(ttl_seconds)),
    )
