"""Keyword and mention extraction from review text.

Pure and deterministic: the output depends only on the title and content
passed in. Keywords are the first 15 distinct non-stopword tokens of 3-20
characters; mentions are the keywords that are either curated business
terms or repeated in the text, capped at 10.
"""

import re
from collections import Counter

MAX_KEYWORDS = 15
MAX_MENTIONS = 10
MIN_TOKEN_LENGTH = 3
MAX_TOKEN_LENGTH = 20

# Words with inner hyphens or apostrophes stay whole ("user-friendly", "don't").
# Letters are any Unicode letters; digits never form part of a token.
_TOKEN_RE = re.compile(r"[^\W\d_]+(?:['\-][^\W\d_]+)*")

BUSINESS_TERMS = frozenset(
    {
        "automation",
        "integration",
        "workflow",
        "dashboard",
        "analytics",
        "reporting",
        "api",
        "security",
        "scalability",
        "user-friendly",
        "customization",
        "support",
        "pricing",
        "features",
        "performance",
        "reliable",
        "efficient",
        "intuitive",
        "flexible",
        "robust",
        "collaboration",
        "productivity",
        "crm",
        "erp",
        "saas",
        "cloud",
        "mobile",
        "interface",
        "deployment",
        "maintenance",
    }
)

ENGLISH_STOPWORDS = frozenset(
    {
        "a", "about", "above", "across", "after", "again", "against", "all", "almost",
        "along", "already", "also", "although", "always", "am", "among", "an", "and",
        "another", "any", "anyone", "anything", "are", "aren't", "around", "as", "at",
        "away", "back", "be", "became", "because", "become", "been", "before", "being",
        "below", "between", "both", "but", "by", "can", "can't", "cannot", "could",
        "couldn't", "did", "didn't", "do", "does", "doesn't", "doing", "don't", "done",
        "down", "during", "each", "either", "else", "enough", "even", "ever", "every",
        "few", "for", "from", "further", "get", "gets", "got", "had", "hadn't", "has",
        "hasn't", "have", "haven't", "having", "he", "her", "here", "hers", "herself",
        "him", "himself", "his", "how", "however", "i", "i'm", "i've", "if", "in",
        "into", "is", "isn't", "it", "it's", "its", "itself", "just", "least", "less",
        "let", "like", "made", "make", "many", "may", "me", "might", "more", "most",
        "much", "must", "my", "myself", "never", "no", "nor", "not", "now", "of", "off",
        "often", "on", "once", "one", "only", "or", "other", "others", "our", "ours",
        "ourselves", "out", "over", "own", "per", "perhaps", "quite", "rather", "really",
        "same", "seem", "seemed", "seems", "several", "she", "should", "shouldn't",
        "since", "so", "some", "something", "still", "such", "than", "that", "that's",
        "the", "their", "theirs", "them", "themselves", "then", "there", "there's",
        "these", "they", "they're", "thing", "things", "this", "those", "though",
        "through", "thus", "to", "too", "toward", "under", "until", "up", "upon", "us",
        "use", "used", "using", "very", "via", "was", "wasn't", "we", "we're", "we've",
        "well", "were", "weren't", "what", "when", "where", "whether", "which", "while",
        "who", "whom", "whose", "why", "will", "with", "within", "without", "won't",
        "would", "wouldn't", "yet", "you", "you're", "you've", "your", "yours",
        "yourself", "yourselves",
    }
)


def normalize(title: str | None, content: str | None) -> str:
    return f"{title or ''} {content or ''}".lower()


def tokenize(text: str) -> list[str]:
    """Split normalized text into candidate words, dropping stopwords."""
    return [token for token in _TOKEN_RE.findall(text) if token not in ENGLISH_STOPWORDS]


class KeywordExtractor:
    """Derives searchable keywords and mentions from a review's text."""

    def __init__(self, business_terms=BUSINESS_TERMS):
        self.business_terms = frozenset(business_terms)

    def extract(self, title: str | None, content: str | None) -> tuple[list[str], list[str]]:
        text = normalize(title, content)
        tokens = tokenize(text)
        occurrences = Counter(_TOKEN_RE.findall(text))

        keywords: list[str] = []
        seen: set[str] = set()
        for token in tokens:
            if not MIN_TOKEN_LENGTH <= len(token) <= MAX_TOKEN_LENGTH or token in seen:
                continue
            seen.add(token)
            keywords.append(token)
            if len(keywords) == MAX_KEYWORDS:
                break

        mentions = [word for word in keywords if word in self.business_terms or occurrences[word] >= 2]
        return keywords, mentions[:MAX_MENTIONS]

