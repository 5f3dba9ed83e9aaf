"""Keyword and pattern tables used by the text heuristics.

Everything here is plain data. The parameter mapper and the reflection/vote
extractor read these tables, so they can be tuned or swapped in tests
without touching control flow.
"""

import re

# Personality vocabulary -> generation parameter nudges

CREATIVE_KEYWORDS: frozenset[str] = frozenset({
    "creative",
    "imaginative",
    "poetic",
    "expressive",
    "artistic",
    "playful",
    "curious",
    "intuitive",
    "dreamy",
    "metaphor",
    "story",
    "novel",
    "inventive",
    "whimsical",
    "exploratory",
    "vivid",
    "spontaneous",
})

ANALYTICAL_KEYWORDS: frozenset[str] = frozenset({
    "analytical",
    "logical",
    "precise",
    "rigorous",
    "systematic",
    "critical",
    "methodical",
    "structured",
    "evidence",
    "skeptical",
    "objective",
    "data",
    "accurate",
    "careful",
    "verification",
    "detail",
    "formal",
})

GENTLE_KEYWORDS: frozenset[str] = frozenset({
    "gentle",
    "warm",
    "kind",
    "empathetic",
    "compassionate",
    "caring",
    "soft",
    "calm",
    "patient",
    "friendly",
    "supportive",
    "humble",
    "considerate",
})

# Additive nudge applied once per matched keyword
CREATIVE_ADJUSTMENT = {"temperature": 0.05, "top_p": 0.01, "top_k": 5, "presence_penalty": 0.01}
ANALYTICAL_ADJUSTMENT = {"temperature": -0.05, "top_p": -0.01, "top_k": -5, "repetition_penalty": 0.02}
GENTLE_ADJUSTMENT = {"temperature": 0.02, "frequency_penalty": -0.01, "repetition_penalty": -0.01}

# Reflection sentiment

NEGATIVE_TERMS_EN: tuple[str, ...] = (
    "disagree",
    "however",
    "but",
    "although",
    "though",
    "not",
    "don't",
    "doesn't",
    "isn't",
    "can't",
    "cannot",
    "won't",
    "concern",
    "question",
    "doubt",
    "skeptical",
    "unclear",
    "problem",
    "issue",
    "challenge",
    "flaw",
    "overlook",
    "missing",
    "wrong",
    "instead",
    "on the other hand",
)

NEGATIVE_TERMS_JA: tuple[str, ...] = (
    "しかし",
    "だが",
    "けれど",
    "一方",
    "疑問",
    "懸念",
    "反対",
    "ない",
    "違う",
    "異なる",
    "問題",
    "課題",
    "不明",
    "とはいえ",
)

POSITIVE_TERMS_EN: tuple[str, ...] = (
    "agree",
    "support",
    "resonate",
    "appreciate",
    "valuable",
    "insightful",
    "excellent",
    "good point",
    "well said",
    "builds on",
    "aligns",
    "convincing",
    "like",
    "right",
    "interesting",
)

POSITIVE_TERMS_JA: tuple[str, ...] = (
    "賛成",
    "同意",
    "共感",
    "素晴らしい",
    "良い",
    "興味深い",
    "なるほど",
    "支持",
    "納得",
    "その通り",
)

NEGATIVE_TERMS: tuple[str, ...] = NEGATIVE_TERMS_EN + NEGATIVE_TERMS_JA
POSITIVE_TERMS: tuple[str, ...] = POSITIVE_TERMS_EN + POSITIVE_TERMS_JA

NO_ENGAGEMENT_REACTION = "No direct engagement with this agent's thought."
GENERIC_REACTION = "Referenced this agent's thought without a concise reaction."

MAX_QUESTIONS = 3
MIN_QUESTION_LENGTH = 5
REACTION_LENGTH_RANGE = (10, 200)

QUESTION_PATTERN = re.compile(r"[^.!?。！？\n]*[?？]")

# Vote declarations

# Labels that introduce a vote on the same line: "Vote: x", "Agent Vote: x", "投票：x"
VOTE_LABELS: tuple[str, ...] = (
    "agent vote",
    "vote",
    "finalizer",
    "should summarize",
    "recommend",
    "投票",
    "まとめ役",
)

VOTE_LABEL_PATTERN = re.compile(
    r"(?:^|[\s*#>\-_|])(?:" + "|".join(re.escape(label) for label in VOTE_LABELS) + r")\s*\**\s*[:：]\s*\**\s*(?P<rest>.*)$",
    re.IGNORECASE | re.MULTILINE,
)

BOLD_PATTERN = re.compile(r"\*\*\s*([^*\n]+?)\s*\*\*")
CODE_PATTERN = re.compile(r"`([^`\n]+)`")

REASON_LABEL_PATTERN = re.compile(
    r"^\s*[*_\-]*\s*(?:reason|reasoning|理由)\s*\**\s*[:：]\s*\**\s*(?P<reason>.+)$",
    re.IGNORECASE | re.MULTILINE,
)

MAX_VOTE_REASONING = 300
