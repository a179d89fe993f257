"""
Translation collaborator contract.

The ledger never translates anything itself. A TranslationService (cloud
translate API, on-device model, test double) is injected into
NegotiationService; whatever it returns is stored on the bid as-is.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from domain.bid import BidMessage, Language

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TranslationResult:
    text: str
    confidence: Optional[float] = None


class TranslationService(Protocol):
    def translate(self, text: str, source_lang: Language, target_lang: Language) -> TranslationResult: ...


def build_message(
    text: Optional[str],
    translator: Optional[TranslationService],
    source_lang: Optional[Language] = None,
    target_lang: Optional[Language] = None,
) -> Optional[BidMessage]:
    """
    Wrap caller text in a BidMessage, translating it when possible.

    Translation runs only when a translator is configured and both languages
    are given and differ. A failing translator leaves the message
    untranslated; the bid itself still goes through.
    """

    if text is None or not text.strip():
        return None

    message = BidMessage(original=text, source_lang=source_lang, target_lang=target_lang)
    if translator is None or source_lang is None or target_lang is None or source_lang == target_lang:
        return message

    try:
        result = translator.translate(text, source_lang, target_lang)
    except Exception:
        logger.warning(
            f"Translation {source_lang.value}->{target_lang.value} failed; storing original text only",
            exc_info=True,
            extra={"source_lang": source_lang.value, "target_lang": target_lang.value},
        )
        return message

    return BidMessage(
        original=text,
        translated=result.text,
        source_lang=source_lang,
        target_lang=target_lang,
        confidence=result.confidence,
    )


__all__ = ["TranslationResult", "TranslationService", "build_message"]
