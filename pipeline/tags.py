"""Tag extraction for ingested topics: names, quoted phrases, abbreviations, keywords."""

from __future__ import annotations

import re
from collections import Counter
from typing import List, Optional, Set

from .similarity import tokenize

MIN_TAGS = 2
MAX_TAGS = 5

STOP_WORDS_EN = frozenset(
    """
    the a an and or but in on at to for of with by from as is are was were be been being have has had
    do does did will would could should may might must can this that these those it its they them their
    he she his her we you your our who which what when where why how all each every both few more most
    other some such no not only same so than too very just also now here there about after before between
    new first last year years day days time today says said told reports announces users found discovered
    revealed shows according sources officials into over under again still
    """.split()
)

STOP_WORDS_RU = frozenset(
    """
    и в на с по для от из как что это не но к за о об при а или так уже все его её их мы вы они он она оно
    был была было были быть есть будет стал стала стало стали того этого которые который которая которое
    также более самый только можно нужно надо даже ещё когда если чтобы после перед между года году год лет
    время день дней час часов минут сегодня вчера завтра теперь потом сначала затем новый новая новое новые
    сообщил сообщила сообщили заявил заявила заявили рассказал рассказала известно пользователи обнаружили
    нашли узнали показал показала получил получила получили решил решила решили начал начала начали
    первый первая первое второй вторая третий последний последняя против около через почему зачем откуда
    куда где кто чем свой своя свои этот эта эти тот та те
    """.split()
)

_UPPER = "A-ZА-ЯЁ"
_LOWER = "a-zа-яё"
_FULL_NAME = re.compile(rf"[{_UPPER}][{_LOWER}]+(?:\s+[{_UPPER}][{_LOWER}]+){{1,3}}")
_QUOTED = re.compile(r"[\"«“]([^\"»”]+)[\"»”]")
_QUOTED_PHRASE = re.compile(rf"[{_UPPER}][{_LOWER}]+(?:\s+[{_LOWER}{_UPPER}]+){{1,2}}")
_ABBREVIATION = re.compile(r"\b[A-Z]{2,6}(?:\s?\d+)?\b")
_BRAND_NUMBER = re.compile(r"\b[A-Z][A-Za-z]*\s?\d+\b")
_PROPER_NOUN = re.compile(rf"[{_UPPER}][{_LOWER}]{{3,}}")


class _TagSet:
    """Ordered tags where no two kept tags share a word."""

    def __init__(self, stop_words: frozenset) -> None:
        self.stop_words = stop_words
        self.tags: List[str] = []
        self._seen: Set[str] = set()
        self._words: Set[str] = set()

    def add(self, tag: str, *, allow_stop_words: bool = False) -> bool:
        text = re.sub(r"\s+", " ", str(tag or "")).strip()
        lowered = text.lower()
        if len(text) < 2 or len(text) > 30 or lowered in self._seen:
            return False
        if not allow_stop_words and lowered in self.stop_words:
            return False
        words = {word for word in lowered.split(" ") if word}
        if words & self._words:
            return False
        self._seen.add(lowered)
        self._words.update(words)
        self.tags.append(text)
        return True

    def __len__(self) -> int:
        return len(self.tags)


def extract_tags(title: str, body: Optional[str] = None, language: str = "en") -> List[str]:
    """Pick 2-5 tags for a topic.

    Priority: multi-word capitalised names (longest first), quoted phrases,
    abbreviations, brand+number tokens, single proper nouns, then the most
    frequent non-stop-word keywords of title and body as a top-up.
    """
    stop_words = STOP_WORDS_RU if language == "ru" else STOP_WORDS_EN
    both = stop_words | STOP_WORDS_EN | STOP_WORDS_RU
    found = _TagSet(both)
    title = str(title or "")

    for name in sorted(_FULL_NAME.findall(title), key=len, reverse=True):
        meaningful = [w for w in name.split() if w.lower() not in both]
        if len(meaningful) >= 2:
            found.add(name)

    for inner in _QUOTED.findall(title):
        for phrase in _QUOTED_PHRASE.findall(inner.strip()):
            if 5 <= len(phrase) <= 25 and 2 <= len(phrase.split()) <= 3:
                found.add(phrase, allow_stop_words=True)

    for abbr in _ABBREVIATION.findall(title):
        found.add(abbr)
    for brand in _BRAND_NUMBER.findall(title):
        found.add(brand)

    if len(found) < MIN_TAGS:
        for noun in _PROPER_NOUN.findall(title):
            if len(found) >= MAX_TAGS - 1:
                break
            found.add(noun)

    if len(found) < MIN_TAGS:
        for word in frequent_keywords(f"{title} {body or ''}", both):
            if len(found) >= MIN_TAGS + 1:
                break
            found.add(word)

    return found.tags[:MAX_TAGS]


def frequent_keywords(text: str, stop_words: frozenset, limit: int = 10) -> List[str]:
    counts = Counter(word for word in tokenize(text) if len(word) > 3 and word not in stop_words and not word.isdigit())
    return [word for word, _ in counts.most_common(limit)]
