"""Query understanding: intent classification and retrieval-oriented rewrites.

The LLM answers in free text. Responses are parsed into a closed schema and
anything that does not fit is rejected with QueryAnalysisParseError rather
than silently defaulted.
"""
import json
import re
from typing import Dict, Optional

import structlog
from pydantic import ValidationError

from ragdesk import config
from ragdesk.exceptions import QueryAnalysisParseError
from ragdesk.llm_client import OllamaClient, ollama_client
from ragdesk.rag.models import QueryAnalysis, QueryType

logger = structlog.get_logger()

ANALYSIS_PROMPT = """You analyze user queries for a retrieval system that searches {domain}.

Classify the query into exactly one type:
- Factual: direct questions asking for a fact or a definition (e.g. "What is chocolate?", "When was chocolate discovered?")
- SmallTalk: greetings, jokes and other non-informational chat (e.g. "Tell me a joke", "How are you?")
- Ambiguous: the intent is unclear and needs disambiguation before searching

Then rewrite the query so that it retrieves the most relevant passages.

Respond with a single JSON object and nothing else:
{{"type": "Factual" | "SmallTalk" | "Ambiguous", "rewrittenQuery": "...", "reasoning": "..."}}

QUERY:
{query}
"""

FACTUAL_REWRITE_GUIDANCE = (
    "The query asks for facts. Rewrite it so that every fact aspect being "
    "requested (what, when, who, how much, definitions) is stated explicitly, "
    "using the precise terminology of {domain}."
)

AMBIGUOUS_REWRITE_GUIDANCE = (
    "The query is ambiguous. Rewrite it by adding context from {domain} so "
    "that it has one clear, searchable interpretation."
)

REWRITE_PROMPT = """You rewrite user queries to improve document retrieval.

{guidance}

Return only the rewritten query on a single line, with no commentary.

ORIGINAL QUERY:
{query}
"""

_CODE_FENCE = re.compile(r"```[a-zA-Z0-9_-]*\s*(.*?)\s*```", re.DOTALL)
_FIELD_LINE = re.compile(r"^\s*[\"']?([A-Za-z _-]+?)[\"']?\s*[:=]\s*(.*?)\s*,?\s*$")
_REWRITE_LABEL = re.compile(r"^\s*(rewritten\s*query|query)\s*:\s*", re.IGNORECASE)

# Normalized field name -> QueryAnalysis field
_FIELDS = {
    "type": "type",
    "rewrittenquery": "rewritten_query",
    "reasoning": "reasoning",
}


def strip_code_fences(text: str) -> str:
    """Return the body of the first fenced block, or the text minus stray fences."""
    match = _CODE_FENCE.search(text)
    if match:
        return match.group(1).strip()
    return text.replace("```", "").strip()


def _normalize_key(key: str) -> str:
    return "".join(ch for ch in key.lower() if ch.isalnum())


def _collect_fields(items) -> Dict[str, str]:
    fields = {}
    for key, value in items:
        name = _FIELDS.get(_normalize_key(str(key)))
        if name is not None:
            fields[name] = "" if value is None else str(value).strip()
    return fields


def _unquote(value: str) -> str:
    return value.strip().strip("\"'").strip()


def parse_analysis(raw: str, query: str) -> QueryAnalysis:
    """Parse an analysis response into a QueryAnalysis.

    Accepted shapes, after code fences are removed:
    - a JSON object with type/rewrittenQuery/reasoning keys
    - one ``field: value`` line per field
    - a bare type label such as ``Factual``

    Field names and type labels match case-insensitively.

    Raises:
        QueryAnalysisParseError: If no valid type can be read, or a structured
            response lacks the rewritten query
    """
    text = strip_code_fences(raw or "")
    if not text:
        raise QueryAnalysisParseError("Empty analysis response", raw_response=raw or "")

    bare = QueryType.parse(_unquote(text).rstrip("."))
    if bare is not None:
        return QueryAnalysis(type=bare, rewritten_query=query, reasoning="")

    fields: Dict[str, str] = {}
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        try:
            data = json.loads(text[start : end + 1])
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            fields = _collect_fields(data.items())

    if not fields:
        pairs = []
        for line in text.splitlines():
            match = _FIELD_LINE.match(line)
            if match:
                pairs.append((match.group(1), _unquote(match.group(2))))
        fields = _collect_fields(pairs)

    if "type" not in fields:
        raise QueryAnalysisParseError(
            "Analysis response has no 'type' field", raw_response=raw
        )

    query_type = QueryType.parse(fields["type"])
    if query_type is None:
        raise QueryAnalysisParseError(
            f"Unknown query type: {fields['type']!r}", raw_response=raw
        )

    if "rewritten_query" not in fields:
        raise QueryAnalysisParseError(
            "Analysis response has no 'rewrittenQuery' field", raw_response=raw
        )

    try:
        return QueryAnalysis(
            type=query_type,
            rewritten_query=fields["rewritten_query"] or query,
            reasoning=fields.get("reasoning", ""),
        )
    except ValidationError as e:
        raise QueryAnalysisParseError(str(e), raw_response=raw) from e


def clean_rewrite(raw: str) -> str:
    """Strip fences, labels and wrapping quotes from a rewrite response."""
    text = strip_code_fences(raw or "")
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        return ""
    return _unquote(_REWRITE_LABEL.sub("", lines[0]))


class QueryAnalyzer:
    """Classifies queries and rewrites them for retrieval."""

    def __init__(
        self,
        llm: Optional[OllamaClient] = None,
        domain: str = None,
        model: str = None,
    ):
        """Initialize the analyzer.

        Args:
            llm: Chat client with an async ``complete(prompt, ...)`` method
            domain: Short description of the searchable corpus, used in prompts
            model: Chat model override
        """
        self.llm = llm or ollama_client
        self.domain = domain or config.QUERY_DOMAIN
        self.model = model

    async def analyze(self, query: str) -> QueryAnalysis:
        """Classify a query and get a first retrieval rewrite.

        Raises:
            QueryAnalysisParseError: If the query is blank or the response
                does not fit the schema
        """
        if not query or not query.strip():
            raise QueryAnalysisParseError("Cannot analyze an empty query")

        prompt = ANALYSIS_PROMPT.format(domain=self.domain, query=query)
        raw = await self.llm.complete(prompt, model=self.model, temperature=0.0)

        try:
            analysis = parse_analysis(raw, query)
        except QueryAnalysisParseError:
            logger.warning(
                "query_analysis_parse_failed",
                query_preview=query[:100],
                response_preview=(raw or "")[:200],
            )
            raise

        logger.info(
            "query_analyzed",
            query_type=analysis.type.value,
            query_length=len(query),
            rewritten_length=len(analysis.rewritten_query),
        )
        return analysis

    async def rewrite(self, query: str, analysis: Optional[QueryAnalysis] = None) -> str:
        """Rewrite a query according to its classified type.

        SmallTalk queries are returned unchanged. An empty rewrite falls back
        to the original query.
        """
        if analysis is None:
            analysis = await self.analyze(query)

        if analysis.type is QueryType.SMALL_TALK:
            logger.debug("rewrite_skipped_small_talk")
            return query

        template = (
            FACTUAL_REWRITE_GUIDANCE
            if analysis.type is QueryType.FACTUAL
            else AMBIGUOUS_REWRITE_GUIDANCE
        )
        prompt = REWRITE_PROMPT.format(
            guidance=template.format(domain=self.domain),
            query=query,
        )

        raw = await self.llm.complete(prompt, model=self.model, temperature=0.0)
        rewritten = clean_rewrite(raw)

        if not rewritten:
            logger.warning("empty_rewrite_using_original", query_type=analysis.type.value)
            return query

        logger.info(
            "query_rewritten",
            query_type=analysis.type.value,
            original_length=len(query),
            rewritten_length=len(rewritten),
        )
        return rewritten
