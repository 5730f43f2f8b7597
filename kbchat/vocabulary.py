"""Closed vocabularies and trigger phrases used by query analysis."""

from .models import DocumentType, Intent

# Order matters: ties above the confidence floor go to the earlier intent.
INTENT_PATTERNS: dict[Intent, tuple[str, ...]] = {
    Intent.INFORMATION_RETRIEVAL: (
        "what is",
        "tell me about",
        "explain",
        "describe",
        "overview of",
        "information about",
        "details on",
        "help me understand",
        "how does",
        "what are the benefits",
    ),
    Intent.COMPARISON: (
        "compare",
        "versus",
        "vs",
        "difference between",
        "better than",
        "similar to",
        "alternatives to",
        "choose between",
        "which is",
    ),
    Intent.SUMMARIZATION: (
        "summary",
        "summarize",
        "key points",
        "main points",
        "brief overview",
        "highlights",
        "in short",
        "tldr",
    ),
    Intent.SPECIFIC_SEARCH: (
        "find documents",
        "search for",
        "look for",
        "show me documents",
        "examples of",
        "case studies about",
        "proposals for",
    ),
    Intent.GENERAL_QUESTION: (
        "how to",
        "best practices",
        "recommendations",
        "advice",
        "guidance",
        "should i",
        "can you help",
    ),
}

INDUSTRIES: tuple[str, ...] = (
    "healthcare",
    "finance",
    "financial services",
    "banking",
    "insurance",
    "manufacturing",
    "retail",
    "telecommunications",
    "telecom",
    "education",
    "government",
    "energy",
    "utilities",
    "automotive",
    "aerospace",
    "pharma",
    "pharmaceutical",
    "technology",
    "tech",
    "media",
    "entertainment",
)

TECHNOLOGIES: tuple[str, ...] = (
    "cloud",
    "azure",
    "aws",
    "gcp",
    "migration",
    "digital transformation",
    "ai",
    "artificial intelligence",
    "machine learning",
    "ml",
    "iot",
    "blockchain",
    "cybersecurity",
    "security",
    "data analytics",
    "big data",
    "crm",
    "erp",
    "salesforce",
    "microsoft",
    "oracle",
    "sap",
)

DOCUMENT_TYPE_TERMS: tuple[str, ...] = (
    "rfp",
    "proposal",
    "case study",
    "win loss",
    "analysis",
    "report",
    "presentation",
    "white paper",
    "implementation",
    "strategy",
)

STOP_WORDS: frozenset[str] = frozenset({
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "by", "is", "are", "was", "were", "be", "been", "being", "have", "has",
    "had", "do", "does", "did", "will", "would", "could", "should", "may",
    "might", "can", "this", "that", "these", "those", "a", "an", "as",
})  # fmt: skip

# Capitalized words never treated as proper-noun entities.
CAPITALIZED_COMMON_WORDS: frozenset[str] = frozenset({
    "The", "And", "Or", "But", "In", "On", "At", "To", "For", "Of", "With", "By",
})  # fmt: skip

DOCUMENT_TYPE_SYNONYMS: dict[str, DocumentType] = {
    "rfp": DocumentType.RFP,
    "proposal": DocumentType.PROPOSAL,
    "case study": DocumentType.CASE_STUDY,
    "win loss": DocumentType.WIN_LOSS_ANALYSIS,
}


def resolve_document_type(value: str) -> DocumentType | None:
    """Map a user-supplied type label to a ``DocumentType``.

    Returns:
        The matching type, or None when the label is unknown.
    """
    normalized = value.strip().lower()
    for doc_type in DocumentType:
        if doc_type.value.lower() == normalized:
            return doc_type
    normalized = normalized.replace("/", " ").replace("-", " ")
    normalized = " ".join(normalized.split())
    if normalized in {"win loss analysis", "winloss"}:
        return DocumentType.WIN_LOSS_ANALYSIS
    return DOCUMENT_TYPE_SYNONYMS.get(normalized)
