"""Grounded answer generation from retrieved documents."""

from openai import OpenAI, OpenAIError

from .config import config
from .errors import CompletionError
from .models import (
    Document,
    Intent,
    QueryAnalysis,
    RetrievalResult,
    SearchMethod,
)

logger = config.get_logger(__name__)

TRUNCATION_MARKER = "\n[Content truncated for length...]"
NO_CONTENT_TEXT = (
    "No content available - document may need to be re-uploaded in text format."
)
NO_DOCUMENTS_TEXT = (
    "No relevant documents found. Provide general guidance and suggest the user "
    "be more specific about their query."
)
EMPTY_RESPONSE_TEXT = "I apologize, but I couldn't generate a response."

INTENT_INSTRUCTIONS: dict[Intent, str] = {
    Intent.INFORMATION_RETRIEVAL: (
        "Give a thorough explanation drawn from the documents, with the key "
        "facts and figures they contain."
    ),
    Intent.COMPARISON: (
        "Structure the answer as a comparison: set the options side by side and "
        "call out similarities and differences explicitly."
    ),
    Intent.SUMMARIZATION: (
        "Answer with a concise summary in bullet points covering the key points."
    ),
    Intent.SPECIFIC_SEARCH: (
        "List the matching documents first, with a one-line description of each."
    ),
    Intent.GENERAL_QUESTION: (
        "Give practical guidance, grounded in the documents where they apply."
    ),
}

_METHOD_LABELS = {
    SearchMethod.VECTOR: "semantic similarity search",
    SearchMethod.ENHANCED_TEXT: "NLP-enhanced keyword search",
    SearchMethod.BASIC_TEXT: "keyword text search",
    SearchMethod.NONE: "no matching documents",
}


class AnswerSynthesizer:
    """Builds the grounded prompt and asks the chat model for an answer."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        *,
        client: OpenAI | None = None,
        max_document_chars: int | None = None,
    ) -> None:
        """Initialize the synthesizer.

        Args:
            api_key: OpenAI API key. If None, reads OPENAI_API_KEY.
            model: Chat model. If None, uses config.CHAT_MODEL.
            client: Preconfigured OpenAI client, mainly for tests.
            max_document_chars: Per-document content limit in the prompt. If
                None, uses config.MAX_DOCUMENT_CONTEXT_CHARS.
        """
        self.client = client or OpenAI(**config.openai_client_kwargs(api_key))
        self.model = model or config.CHAT_MODEL
        self.max_document_chars = (
            max_document_chars
            if max_document_chars is not None
            else config.MAX_DOCUMENT_CONTEXT_CHARS
        )

    def document_context(self, document: Document) -> str:
        """Content placed in the prompt for one document.

        Returns:
            Content cut to the configured limit, else the summary, else a note.
        """
        content = document.content
        if content and content.strip():
            if len(content) > self.max_document_chars:
                return content[: self.max_document_chars] + TRUNCATION_MARKER
            return content
        if document.summary:
            return document.summary
        return NO_CONTENT_TEXT

    @staticmethod
    def _analysis_section(analysis: QueryAnalysis) -> str:
        filters = analysis.filters.to_dict()
        filter_text = (
            "; ".join(
                f"{key}: {', '.join(value) if isinstance(value, list) else value}"
                for key, value in filters.items()
            )
            or "none"
        )
        return (
            "\n\nQUERY ANALYSIS:\n"
            f"Intent: {analysis.intent} (confidence {analysis.confidence:.2f})\n"
            f"Keywords: {', '.join(analysis.keywords) or 'none'}\n"
            f"Entities: {', '.join(analysis.entities) or 'none'}\n"
            f"Filters: {filter_text}\n\n"
            f"RESPONSE STRUCTURE:\n{INTENT_INSTRUCTIONS[analysis.intent]}"
        )

    def build_system_prompt(
        self,
        retrieval: RetrievalResult,
        analysis: QueryAnalysis | None = None,
    ) -> str:
        """Assemble instructions, analysis and document contents.

        Returns:
            The system prompt for the chat completion.
        """
        prompt = (
            "You are an expert knowledge assistant for a repository of business "
            "documents including RFPs, case studies, proposals and win/loss "
            "analyses.\n\n"
            "INSTRUCTIONS:\n"
            "1. Always prioritize information from the provided documents\n"
            "2. Quote specific sections when referencing document content\n"
            "3. If the documents are relevant, base your answer primarily on them\n"
            "4. Be specific and detailed when document content is available\n"
            "5. Clearly indicate which documents you are referencing by title\n\n"
            f"Search method: {retrieval.method} "
            f"({_METHOD_LABELS[retrieval.method]})\n"
            f"Confidence level: {retrieval.confidence:.2f}"
        )

        if analysis is not None:
            prompt += self._analysis_section(analysis)

        prompt += "\n\nAVAILABLE DOCUMENTS WITH CONTENT:"

        if retrieval.is_empty:
            return f"{prompt}\n\n{NO_DOCUMENTS_TEXT}"

        for index, (document, score) in enumerate(retrieval.matches, start=1):
            relevance = (
                f" ({round(score * 100)}% relevance)"
                if retrieval.method == SearchMethod.VECTOR
                else ""
            )
            prompt += (
                f'\n\nDOCUMENT {index}: "{document.title}"{relevance}\n'
                f"Type: {document.type} | Client: {document.client} | "
                f"Industry: {document.industry}\n"
                f"Geography: {document.geography} | Year: {document.year}\n\n"
                "FULL DOCUMENT CONTENT:\n"
                f"{self.document_context(document)}\n\n---"
            )
        return prompt

    def generate(
        self,
        query: str,
        retrieval: RetrievalResult,
        analysis: QueryAnalysis | None = None,
    ) -> str:
        """Generate the answer text for ``query``.

        Returns:
            The model's answer, or a fixed apology when it returned nothing.

        Raises:
            CompletionError: If the chat completion call fails.
        """
        system_prompt = self.build_system_prompt(retrieval, analysis)

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": query},
                ],
                max_tokens=config.CHAT_MAX_TOKENS,
                temperature=config.CHAT_TEMPERATURE,
            )
        except OpenAIError as exc:
            logger.exception("Error generating answer")
            msg = f"Completion request failed: {exc}"
            raise CompletionError(msg) from exc

        answer = response.choices[0].message.content
        if not answer or not answer.strip():
            return EMPTY_RESPONSE_TEXT
        return answer.strip()
