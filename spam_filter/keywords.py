import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

BUNDLED_KEYWORDS_FILE = Path(__file__).resolve().parent / "data" / "spam_keywords.txt"

DEFAULT_SPAM_KEYWORDS = (
    # Spanish
    "oferta especial", "click aqui", "ganar dinero", "trabajo desde casa",
    "inversion minima", "dinero facil", "urgente", "felicidades has ganado",
    "promocion limitada", "reclama ahora", "sin costo", "gratis total",
    # English
    "make money fast", "work from home", "click here now", "free money",
    "urgent response", "congratulations you won", "limited time offer",
    "act now", "risk free", "guaranteed income",
    # topik spam umum
    "viagra", "casino", "lottery", "inheritance", "bitcoin investment",
    "cryptocurrency", "forex trading", "mlm", "pyramid",
)

PROFANITY_WORDS = (
    "fuck", "shit", "asshole", "bitch", "bastard", "cunt", "dick",
    "idiota", "estupido", "imbecil", "tarado", "mierda", "puta", "pendejo",
)

_PROFANITY_PATTERNS = [re.compile(rf"\b{re.escape(w)}\b", re.IGNORECASE) for w in PROFANITY_WORDS]

DISPOSABLE_EMAIL_PATTERNS = (
    re.compile(r"@(10minutemail|guerrillamail|mailinator|tempmail|yopmail)", re.IGNORECASE),
    re.compile(r"@[0-9]+\.(com|net|org)\b", re.IGNORECASE),
    re.compile(r"@(test|fake|spam|example)\.", re.IGNORECASE),
)


def load_keywords_file(path):
    """Read one keyword per line; blank lines and ``#`` comments are skipped."""
    try:
        content = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        logger.error("Error loading spam keywords from %s: %s", path, e)
        return []
    keywords = []
    for line in content.splitlines():
        line = line.strip().lower()
        if line and not line.startswith("#"):
            keywords.append(line)
    return keywords


def build_keyword_list(extra_file=None, include_bundled=True):
    keywords = list(DEFAULT_SPAM_KEYWORDS)
    files = []
    if include_bundled:
        files.append(BUNDLED_KEYWORDS_FILE)
    if extra_file:
        files.append(extra_file)
    for path in files:
        keywords.extend(load_keywords_file(path))

    # urutan dipertahankan, duplikat dibuang
    seen = set()
    unique = []
    for keyword in keywords:
        if keyword not in seen:
            seen.add(keyword)
            unique.append(keyword)
    return tuple(unique)


def contains_profanity(text):
    return any(pattern.search(text) for pattern in _PROFANITY_PATTERNS)


def is_disposable_email(email):
    return any(pattern.search(email) for pattern in DISPOSABLE_EMAIL_PATTERNS)
