"""Primary analyzer: generative partner recommendations with boundary validation.

Architecture
------------
One LLM call per project.  The prompt embeds the project's name, description,
development stage, funding stage and categories together with a three-part
rubric:

- **Mission alignment**: how closely the partner's goals match the project's.
- **Technical synergy**: whether the two technology stacks complement each other.
- **Strategic value**: community, funding and market-expansion upside.

The backend is asked for exactly five partners as JSON.  Its output is treated
as untrusted: ``parse_analysis`` rejects anything without a string ``summary``
and a ``partners`` list, and ``normalize_partner`` fills missing fields and
clamps every score into [1, 100], so callers only ever see a valid
``AnalysisResult``.

Failures surface as ``BackendError`` with a ``BackendErrorKind``; the
orchestrator in ``ecosync.services`` decides which kinds fall back to the
offline generator.
"""
from __future__ import annotations

import enum
import json
import logging
import math
import os
import re
from typing import Any

from ecosync.schemas import (
    MAX_SCORE,
    MIN_SCORE,
    PARTNER_COUNT,
    AnalysisResult,
    PartnerCandidate,
    ProjectInput,
)
from ecosync.utils import round_half_up

log = logging.getLogger(__name__)

DEFAULT_SCORE = 50
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 3000

SCORE_KEYS = ("matchScore", "missionScore", "technicalScore", "strategicScore")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class BackendErrorKind(str, enum.Enum):
    AUTH_INVALID = "auth_invalid"
    QUOTA_EXCEEDED = "quota_exceeded"
    MALFORMED = "malformed"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


_RECOVERABLE = {BackendErrorKind.QUOTA_EXCEEDED, BackendErrorKind.MALFORMED, BackendErrorKind.TIMEOUT}


class BackendError(Exception):
    """Generative backend call failed or returned unusable output."""
    def __init__(self, message: str, kind: BackendErrorKind = BackendErrorKind.UNKNOWN):
        super().__init__(message)
        self.kind = kind

    @property
    def recoverable(self) -> bool:
        """True when the offline generator is an acceptable substitute."""
        return self.kind in _RECOVERABLE


_QUOTA_MARKERS = ("429", "quota", "rate limit", "rate_limit", "too many requests")
_AUTH_MARKERS = ("401", "invalid api key", "incorrect api key", "unauthorized", "authentication")


def classify_backend_error(
    exc: BaseException, timeout_types: tuple[type[BaseException], ...] = (),
) -> BackendErrorKind:
    """Map a backend exception to a ``BackendErrorKind``.

    Structured signals win: timeout exception types, then the HTTP status code
    the OpenAI and Anthropic SDKs attach as ``status_code``.  Only exceptions
    without a status code are classified by message text.
    """
    if isinstance(exc, BackendError):
        return exc.kind
    if isinstance(exc, (TimeoutError, *timeout_types)):
        return BackendErrorKind.TIMEOUT

    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        if status == 429:
            return BackendErrorKind.QUOTA_EXCEEDED
        if status in (401, 403):
            return BackendErrorKind.AUTH_INVALID
        return BackendErrorKind.UNKNOWN

    message = str(exc).lower()
    if any(marker in message for marker in _QUOTA_MARKERS):
        return BackendErrorKind.QUOTA_EXCEEDED
    if any(marker in message for marker in _AUTH_MARKERS):
        return BackendErrorKind.AUTH_INVALID
    return BackendErrorKind.UNKNOWN


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = (
    "You are Ecosync AI, a Web3 partnership recommendation expert. Analyze projects "
    "and suggest strategic partners based on mission alignment, technical synergy, "
    "and strategic value. Always respond with valid JSON."
)

ANALYSIS_PROMPT = """\
You are Ecosync AI, an intelligent and specialized AI agent built to assist Web3 \
founders in finding the most suitable ecosystem partners for their decentralized \
projects. Analyze the project's description, goals, and technologies, then \
recommend partner DAOs, protocols, or Web3 projects that align with it.

Select recommendations on three criteria:

1. **Mission Alignment** - How closely the goals and philosophies of the partner \
match the founder's project. A DAO focused on decentralized education aligns with \
a protocol working on credential verification or education funding.

2. **Technical Synergy** - Whether the technologies complement each other: shared \
identity standards, shared token ecosystems, or common blockchain infrastructure \
that makes integrations and technical collaboration practical.

3. **Strategic Value** - Mutual benefit in community growth, funding opportunities, \
user acquisition, or market expansion: access to each other's users, \
cross-promotion, or strategic funding connections.

**Project to Analyze:**
- Name: {name}
- Description: {description}
- Development Stage: {stage}
- Funding Stage: {funding_stage}
- Primary Categories: {categories}

**Analysis Requirements:**
- Recommend exactly 5 strategic partners that are real, established Web3 projects
- Focus on practical, actionable partnerships that advance fundraising, community \
growth, and technical development
- Prioritize partners with demonstrated traction and active communities
- Consider the project's current stage and funding needs

For each partner provide:
- name: Real partner project name
- type: DAO, DeFi Protocol, Infrastructure, Funding Platform, Social Platform, \
NFT Platform, Identity Protocol, etc.
- description: What they do (2-3 sentences max)
- reasoning: Why this partnership makes strategic sense (2-3 sentences, concrete benefits)
- matchScore: Overall compatibility (1-100, be realistic - perfect matches are rare)
- missionScore: Mission alignment (1-100)
- technicalScore: Technical synergy (1-100)
- strategicScore: Strategic partnership value (1-100)
- community: Approximate community size if known (e.g. "25K+ Discord")
- tvl: TVL, funding raised, or market metrics if relevant (e.g. "$180M TVL")

Also write a summary paragraph that assesses the project's partnership potential, \
highlights the most promising opportunities, suggests next steps for engaging the \
partners, and notes challenges to consider.

Respond with ONLY valid JSON:
{{
  "summary": "<paragraph>",
  "partners": [
    {{
      "name": "<string>",
      "type": "<string>",
      "description": "<string>",
      "reasoning": "<string>",
      "matchScore": <1-100>,
      "missionScore": <1-100>,
      "technicalScore": <1-100>,
      "strategicScore": <1-100>,
      "community": "<string>",
      "tvl": "<string>"
    }}
  ]
}}
"""


def build_analysis_prompt(project: ProjectInput) -> str:
    """Fill the analysis prompt with the project's fields."""
    return ANALYSIS_PROMPT.format(
        name=project.name,
        description=project.description,
        stage=project.stage,
        funding_stage=project.funding_stage,
        categories=", ".join(project.categories),
    )


# ---------------------------------------------------------------------------
# LLM Client
# ---------------------------------------------------------------------------


def _anthropic_text(response: Any) -> str:
    """First text block of a Messages response, unwrapped from a ```json fence."""
    blocks = getattr(response, "content", None) or []
    text = getattr(blocks[0], "text", None) if blocks else None
    if not isinstance(text, str):
        raise BackendError("Backend response has no text content", BackendErrorKind.MALFORMED)
    text = text.strip()
    m = re.search(r'```(?:json)?\s*(\{.*\})\s*```', text, re.DOTALL)
    if m:
        text = m.group(1)
    return text


def _openai_text(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        raise BackendError("Backend response has no choices", BackendErrorKind.MALFORMED)
    return choices[0].message.content or ""


class LLMClient:
    """Unified async LLM client supporting OpenAI (default) and Anthropic."""

    def __init__(
        self,
        provider: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        self.provider = provider or os.environ.get("LLM_PROVIDER", "openai")
        self.model = model or os.environ.get("LLM_MODEL", "")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._api_key = api_key
        self._base_url = base_url
        self._client: Any = None
        self._timeout_types: tuple[type[BaseException], ...] = ()
        self._init_client()

    def _init_client(self) -> None:
        if self.provider == "anthropic":
            import anthropic
            self.model = self.model or "claude-haiku-4-5-20251001"
            key = self._api_key or os.environ.get("ANTHROPIC_API_KEY")
            if not key:
                raise BackendError("ANTHROPIC_API_KEY is not set", BackendErrorKind.AUTH_INVALID)
            self._client = anthropic.AsyncAnthropic(api_key=key)
            self._timeout_types = (anthropic.APITimeoutError,)
        elif self.provider in ("openai", "openai_compatible"):
            import openai
            self.model = self.model or "gpt-4o"
            key = self._api_key or os.environ.get("OPENAI_API_KEY")
            if not key:
                raise BackendError("OPENAI_API_KEY is not set", BackendErrorKind.AUTH_INVALID)
            kwargs: dict[str, Any] = {"api_key": key}
            url = self._base_url or os.environ.get("OPENAI_BASE_URL")
            if url:
                kwargs["base_url"] = url
            self._client = openai.AsyncOpenAI(**kwargs)
            self._timeout_types = (openai.APITimeoutError,)
        else:
            raise ValueError(f"Unknown LLM provider: {self.provider!r}")

    async def complete(self, system: str, user: str) -> str:
        """Send system+user message to the LLM in JSON mode, return the raw text."""
        try:
            if self.provider == "anthropic":
                response = await self._client.messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    system=system,
                    messages=[{"role": "user", "content": user}],
                )
            else:
                response = await self._client.chat.completions.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    response_format={"type": "json_object"},
                    messages=[
                        {"role": "system", "content": system},
                        {"role": "user", "content": user},
                    ],
                )
        except BackendError:
            raise
        except Exception as exc:
            kind = classify_backend_error(exc, self._timeout_types)
            raise BackendError(f"Failed to analyze project: {exc}", kind) from exc
        if self.provider == "anthropic":
            return _anthropic_text(response)
        return _openai_text(response)


# ---------------------------------------------------------------------------
# Parsing and normalization
# ---------------------------------------------------------------------------


def _clamp_score(val: Any) -> int:
    """Clamp a score into [1, 100]. Missing, non-numeric, NaN or zero become 50."""
    if isinstance(val, bool):
        return DEFAULT_SCORE
    try:
        num = float(val)
    except (TypeError, ValueError):
        return DEFAULT_SCORE
    if math.isnan(num) or num == 0:
        return DEFAULT_SCORE
    return round_half_up(max(MIN_SCORE, min(MAX_SCORE, num)))


def _text(val: Any, default: str = "") -> str:
    if val is None:
        return default
    return str(val).strip() or default


def normalize_partner(raw: dict[str, Any]) -> PartnerCandidate:
    """Build a PartnerCandidate from one backend partner entry, filling gaps."""
    return PartnerCandidate(
        name=_text(raw.get("name"), "Unknown Partner"),
        type=_text(raw.get("type"), "Unknown"),
        description=_text(raw.get("description")),
        reasoning=_text(raw.get("reasoning")),
        match_score=_clamp_score(raw.get("matchScore")),
        mission_score=_clamp_score(raw.get("missionScore")),
        technical_score=_clamp_score(raw.get("technicalScore")),
        strategic_score=_clamp_score(raw.get("strategicScore")),
        community=_text(raw.get("community")),
        tvl=_text(raw.get("tvl")),
    )


def parse_analysis(text: str | None) -> AnalysisResult:
    """Parse and validate backend output into an AnalysisResult.

    Raises ``BackendError(MALFORMED)`` when the text is not JSON, lacks a
    non-empty string ``summary`` or a ``partners`` list, or holds fewer than
    five partner objects.  Extra partners beyond five are dropped.
    """
    try:
        raw = json.loads(text or "")
    except (ValueError, RecursionError) as exc:
        raise BackendError(
            f"Backend returned invalid JSON: {(text or '')[:200]}", BackendErrorKind.MALFORMED,
        ) from exc

    if not isinstance(raw, dict):
        raise BackendError("Backend JSON is not an object", BackendErrorKind.MALFORMED)
    summary = raw.get("summary")
    partners = raw.get("partners")
    if not isinstance(summary, str) or not summary.strip():
        raise BackendError("Backend JSON has no summary", BackendErrorKind.MALFORMED)
    if not isinstance(partners, list):
        raise BackendError("Backend JSON has no partners list", BackendErrorKind.MALFORMED)

    entries = [normalize_partner(p) for p in partners if isinstance(p, dict)]
    if len(entries) < PARTNER_COUNT:
        raise BackendError(
            f"Backend returned {len(entries)} partners, expected {PARTNER_COUNT}",
            BackendErrorKind.MALFORMED,
        )
    if len(entries) > PARTNER_COUNT:
        log.warning("Backend returned %d partners, keeping the first %d", len(entries), PARTNER_COUNT)

    return AnalysisResult(summary=summary.strip(), partners=entries[:PARTNER_COUNT], is_demo=False)


# ---------------------------------------------------------------------------
# Analyze one project
# ---------------------------------------------------------------------------


async def analyze_project(project: ProjectInput, client: LLMClient) -> AnalysisResult:
    """Run the generative analysis for a project.

    Args:
        project: Validated project input.
        client: LLM client for the backend call.

    Raises:
        BackendError: on auth, quota, timeout, malformed output or any other failure.
    """
    text = await client.complete(SYSTEM_PROMPT, build_analysis_prompt(project))
    result = parse_analysis(text)
    log.info("Analyzed %s with %s: %d partners", project.name, client.model, len(result.partners))
    return result
