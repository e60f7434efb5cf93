# services/tokenizer.py
"""
Tokenization Adapter
--------------------
Wraps whatever tokenizer the deployment provides behind one interface:
ordered token sequence and ordered, deduplicated token set.

The default tokenizer is a light, offline title splitter: keep Hangul,
ASCII letters and digits, lowercase, drop 1-character fragments and
stopwords. Morphological segmentation is the tokenizer's concern,
not the index's.
"""

import re

_NON_WORD = re.compile(r"[^0-9A-Za-z\u3131-\uD79D]+")

# Generic report-title vocabulary that never carries topical signal.
BASE_STOPWORDS = frozenset([
    "및", "등", "대한", "연구", "분석", "방안", "정책", "보고서", "사업",
    "활성화", "개선", "기반", "지역", "국가", "정부", "지자체", "협력",
    "지원", "현황", "사례", "조사", "전략", "계획", "발전", "효과", "평가",
    "추진", "체계", "모델", "제도", "운영", "관리", "활용", "혁신",
])


def tokenize_title(text, stopwords=frozenset()):
    """Default tokenizer: Tokenize(text, stopwords) -> list of tokens."""
    if not text:
        return []
    s = _NON_WORD.sub(" ", str(text)).lower()
    return [
        t for t in s.split()
        if len(t) >= 2 and t not in BASE_STOPWORDS and t not in stopwords
    ]


class TokenizationAdapter:
    def __init__(self, tokenizer=None):
        self.tokenizer = tokenizer or tokenize_title

    def tokens(self, text, stopwords=frozenset()):
        # external tokenizers are not trusted to honour the stopword set
        return [t for t in self.tokenizer(text or "", stopwords) if t and t not in stopwords]

    def token_set(self, text, stopwords=frozenset()):
        """Deduplicated tokens, first-seen order."""
        return tuple(dict.fromkeys(self.tokens(text, stopwords)))
