import re
from dataclasses import dataclass, field
from typing import List

from .keywords import build_keyword_list, contains_profanity, is_disposable_email

# Kelas pola mencurigakan, masing-masing +15 sekali saja.
SUSPICIOUS_PATTERNS = (
    ("repeated characters", re.compile(r"(.)\1{4,}", re.IGNORECASE)),
    ("uppercase run", re.compile(r"[A-Z]{10,}")),
    ("repeated sequence", re.compile(r"(.{1,3})\1{5,}", re.IGNORECASE)),
    ("card-like number", re.compile(r"\b\d{4,}\s*\d{4,}\b")),
    ("raw url", re.compile(r"https?://", re.IGNORECASE)),
)

URL_RE = re.compile(r"https?://\S+", re.IGNORECASE)
REPEATED_RUN_RE = re.compile(r"(.)\1{4,}")

KEYWORD_SCORE = 25
PROFANITY_SCORE = 20
PATTERN_SCORE = 15
URL_SCORE = 30
CAPITALS_SCORE = 20
EMAIL_SCORE = 25
SHORT_MESSAGE_SCORE = 10
REPEATED_RUN_SCORE = 15
WORD_REPETITION_SCORE = 20

MIN_MESSAGE_LENGTH = 20
MIN_UNIQUE_WORD_RATIO = 0.3
MIN_WORDS_FOR_RATIO = 10


@dataclass
class SpamAnalysisResult:
    score: int = 0
    reasons: List[str] = field(default_factory=list)
    triggered_keywords: List[str] = field(default_factory=list)
    is_spam: bool = False
    capital_percentage: float = 0.0
    url_count: int = 0
    unique_word_ratio: float = 1.0

    def to_dict(self):
        return {
            "score": self.score,
            "reasons": list(self.reasons),
            "triggered_keywords": list(self.triggered_keywords),
            "is_spam": self.is_spam,
        }


class SpamScorer:
    """
    Heuristic spam scoring for free-text form submissions.

    ``analyze`` is pure: the same (name, email, text) always gives the same
    score and reasons. Keyword, profanity and URL rules run on the
    lower-cased ``name + text``; the capital-letter rules need the original
    casing and run on the same text before lower-casing.
    """

    def __init__(
        self,
        keywords=None,
        spam_threshold=50,
        max_urls_allowed=0,
        max_capital_percentage=30.0,
        profanity_filter=True,
    ):
        self.keywords = tuple(k.lower() for k in keywords) if keywords is not None else build_keyword_list()
        self.spam_threshold = spam_threshold
        self.max_urls_allowed = max_urls_allowed
        self.max_capital_percentage = max_capital_percentage
        self.profanity_filter = profanity_filter

    @classmethod
    def from_config(cls, config):
        return cls(
            keywords=build_keyword_list(config.spam_keywords_file),
            spam_threshold=config.spam_threshold,
            max_urls_allowed=config.max_urls_allowed,
            max_capital_percentage=config.max_capital_percentage,
            profanity_filter=config.profanity_filter,
        )

    def analyze(self, name, email, text) -> SpamAnalysisResult:
        name = name or ""
        email = email or ""
        text = text or ""
        combined = f"{name} {text}"
        lowered = combined.lower()

        result = SpamAnalysisResult()

        for keyword in self.keywords:
            if keyword in lowered and keyword not in result.triggered_keywords:
                result.score += KEYWORD_SCORE
                result.reasons.append(f"Spam keyword: {keyword}")
                result.triggered_keywords.append(keyword)

        if self.profanity_filter and contains_profanity(lowered):
            result.score += PROFANITY_SCORE
            result.reasons.append("Profanity detected")

        for label, pattern in SUSPICIOUS_PATTERNS:
            if pattern.search(combined):
                result.score += PATTERN_SCORE
                result.reasons.append(f"Suspicious pattern: {label}")

        result.url_count = len(URL_RE.findall(lowered))
        if result.url_count > self.max_urls_allowed:
            result.score += URL_SCORE
            result.reasons.append(f"Too many URLs ({result.url_count})")

        letters = [c for c in combined if c.isascii() and c.isalpha()]
        if letters:
            capitals = sum(1 for c in letters if c.isupper())
            result.capital_percentage = capitals / len(letters) * 100
        if result.capital_percentage > self.max_capital_percentage:
            result.score += CAPITALS_SCORE
            result.reasons.append(f"Too many capital letters ({result.capital_percentage:.1f}%)")

        if email and is_disposable_email(email):
            result.score += EMAIL_SCORE
            result.reasons.append("Suspicious email provider")

        if len(text) < MIN_MESSAGE_LENGTH:
            result.score += SHORT_MESSAGE_SCORE
            result.reasons.append("Message too short")

        # sengaja terpisah dari kelas "repeated characters" di atas
        if REPEATED_RUN_RE.search(lowered):
            result.score += REPEATED_RUN_SCORE
            result.reasons.append("Repeated characters detected")

        words = text.split()
        if words:
            result.unique_word_ratio = len({w.lower() for w in words}) / len(words)
        if result.unique_word_ratio < MIN_UNIQUE_WORD_RATIO and len(words) > MIN_WORDS_FOR_RATIO:
            result.score += WORD_REPETITION_SCORE
            result.reasons.append("High word repetition")

        result.is_spam = result.score >= self.spam_threshold
        return result
