"""Medical disclaimer and fallback wording.

Every assistant reply ends with the disclaimer. The generation service is
told to add it, and ``ensure_disclaimer`` appends it when the model did
not. For other languages the disclaimer is split off before translation
and re-attached from ``VETTED_DISCLAIMERS`` so a translation provider
can never drop or garble it.
"""

import re

from ayursutra.services.language import primary_subtag

DISCLAIMER = (
    "This is AI-generated advice. Please consult your Vaidya (doctor) "
    "for any medical decisions."
)

VETTED_DISCLAIMERS = {
    "en": DISCLAIMER,
    "hi": "यह AI द्वारा तैयार की गई सलाह है। किसी भी चिकित्सीय निर्णय के लिए कृपया अपने वैद्य (डॉक्टर) से परामर्श करें।",
    "mr": "हा AI द्वारे तयार केलेला सल्ला आहे. कोणत्याही वैद्यकीय निर्णयासाठी कृपया आपल्या वैद्यांचा (डॉक्टरांचा) सल्ला घ्या.",
}

APOLOGY = "I'm having trouble connecting right now. Please try again."

APOLOGIES = {
    "en": APOLOGY,
    "hi": "मुझे अभी कनेक्ट करने में परेशानी हो रही है। कृपया फिर से प्रयास करें।",
    "mr": "मला आत्ता कनेक्ट होण्यात अडचण येत आहे. कृपया पुन्हा प्रयत्न करा.",
}

# Placeholder when the model answers with no text
EMPTY_REPLY = "Sorry, I couldn't process that."

# Models tend to quote or bold the sentence; tolerate both and any spacing
_DISCLAIMER_RE = re.compile(
    r'[\s*"“”]*' + r"\s+".join(re.escape(w) for w in DISCLAIMER.split()) + r'[*"“”]*',
    re.IGNORECASE,
)


def has_disclaimer(text: str) -> bool:
    return _DISCLAIMER_RE.search(text) is not None


def ensure_disclaimer(text: str) -> str:
    if has_disclaimer(text):
        return text
    return f"{text.rstrip()} {DISCLAIMER}".strip()


def strip_disclaimer(text: str) -> str:
    return _DISCLAIMER_RE.sub(" ", text).strip()


def vetted_disclaimer(language: str) -> str | None:
    return VETTED_DISCLAIMERS.get(primary_subtag(language))


def apology_for(language: str) -> str:
    """Fallback reply in the patient's language, without any network call."""
    return APOLOGIES.get(primary_subtag(language), APOLOGY)
