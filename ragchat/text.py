"""Language detection, stop-word filtering and stemming for lexical scoring."""

import re
import threading

import snowballstemmer
from langdetect import DetectorFactory, detect
from langdetect.detector_factory import init_factory
from langdetect.lang_detect_exception import LangDetectException
from snowballstemmer.basestemmer import BaseStemmer

from .config import config
from .stopwords import (
    DEFAULT_LANGUAGE,
    STEMMER_ALGORITHMS,
    get_stop_words,
    resolve_language,
)

logger = config.get_logger(__name__)

MIN_DETECTION_LENGTH = 10

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

# Profiles are loaded once per process; afterwards detection only reads them.
DetectorFactory.seed = 0
init_factory()

# Snowball stemmers keep the word being stemmed on the instance.
_stemmers = threading.local()


def get_stemmer(language: str | None) -> BaseStemmer:
    """Return this thread's Snowball stemmer for a language (English when unsupported)."""  # noqa: DOC201
    code = resolve_language(language)
    cache = getattr(_stemmers, "by_language", None)
    if cache is None:
        cache = _stemmers.by_language = {}
    stemmer = cache.get(code)
    if stemmer is None:
        stemmer = cache[code] = snowballstemmer.stemmer(STEMMER_ALGORITHMS[code])
    return stemmer


def normalize_text(text: str | None) -> str:
    """Replace punctuation with spaces, collapse whitespace and trim.

    Returns:
        The normalized text, or an empty string for empty input.
    """
    if not text:
        return ""
    text = _PUNCTUATION.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def detect_language(text: str | None) -> str:
    """Detect the language code of a text.

    Texts shorter than ``MIN_DETECTION_LENGTH`` characters after trimming,
    and any detection failure, resolve to the default language. Never raises.

    Returns:
        An ISO 639-1 style code as reported by the detector.
    """
    if text is None or len(text.strip()) < MIN_DETECTION_LENGTH:
        return DEFAULT_LANGUAGE

    try:
        return detect(text)
    except LangDetectException:
        logger.debug("Language detection failed; using %s", DEFAULT_LANGUAGE)
        return DEFAULT_LANGUAGE


def tokenize(text: str | None) -> list[str]:
    """Split text into lower-cased, stop-word filtered, stemmed tokens.

    Stop words are removed before stemming, so inflected forms such as
    "databases" and "database" reduce to the same token. Unsupported
    languages fall back to the default language's rules.

    Returns:
        Tokens in document order.
    """
    normalized = normalize_text(text)
    if not normalized:
        return []

    language = resolve_language(detect_language(normalized))
    stop_words = get_stop_words(language)

    words = [
        token
        for token in normalized.lower().split(" ")
        if token and token not in stop_words
    ]
    return get_stemmer(language).stemWords(words)
