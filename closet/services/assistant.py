"""
Listing Assistant - Generative helpers for sellers and shoppers.

Wraps a hosted language model behind a fixed request/response contract:
- Description writing for a new listing
- NSFW pre-screen of a listing (text + image)
- Natural language catalog search
- Price range and shipping cost suggestions
- Listing draft from a photo

Every call may fail. Failures (transport errors, missing API key,
malformed or out-of-schema responses) surface internally as
ExternalServiceFailure and are converted into neutral fallback values,
so a listing or bid flow is never aborted by the assistant. The
marketplace core never awaits these calls.

Backends:
- GeminiBackend: REST ``generateContent`` calls through httpx
- StaticBackend: canned responses for tests and the offline demo
"""

from __future__ import annotations

import json
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, Field, ValidationError

from closet.core.catalog.models import Product, ProductCondition
from closet.core.config import MarketConfig
from closet.core.errors import ExternalServiceFailure, InvalidInput
from closet.utils.logger import get_logger

if TYPE_CHECKING:
    import httpx

logger = get_logger("assistant")

GEMINI_API_BASE = "https://generativelanguage.googleapis.com"

SEARCH_FALLBACK_SUMMARY = (
    "Sorry, I had trouble with that search. Please try rephrasing your query."
)
PRICE_FALLBACK_REASONING = (
    "Sorry, I couldn't generate a price suggestion at this time. Please try again."
)

_DATA_URL = re.compile(r"^data:(?P<mime>[\w/+.-]+)?(;[\w=-]+)*;base64,(?P<data>.+)$", re.S)


# =============================================================================
# Results
# =============================================================================


@dataclass
class SearchResult:
    """Outcome of a catalog search. ``matched_ids`` is in relevance order."""
    summary: str
    matched_ids: List[str]
    is_fallback: bool = False


@dataclass
class PriceSuggestion:
    low: Decimal
    high: Decimal
    reasoning: str
    is_fallback: bool = False


@dataclass
class ListingAnalysis:
    title: str
    category: str
    description: str
    is_fallback: bool = False


@dataclass
class InlineImage:
    """Image payload decoded from a ``data:`` URL."""
    mime_type: str
    data: str

    @classmethod
    def from_data_url(cls, data_url: str) -> "InlineImage":
        match = _DATA_URL.match(data_url or "")
        if not match:
            raise ExternalServiceFailure("Invalid base64 data URL")
        return cls(mime_type=match.group("mime") or "image/jpeg", data=match.group("data"))


# =============================================================================
# Response Schemas
# =============================================================================


class _SearchResponse(BaseModel):
    summary: str
    product_ids: List[str] = Field(alias="productIds")


class _PriceResponse(BaseModel):
    low: float = Field(alias="suggestedPriceLow", ge=0)
    high: float = Field(alias="suggestedPriceHigh", ge=0)
    reasoning: str


class _ShippingResponse(BaseModel):
    cost: float = Field(alias="suggestedShippingCost", ge=0)


class _AnalysisResponse(BaseModel):
    title: str
    category: str
    description: str


SEARCH_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "summary": {"type": "STRING"},
        "productIds": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["summary", "productIds"],
}

PRICE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "suggestedPriceLow": {"type": "NUMBER"},
        "suggestedPriceHigh": {"type": "NUMBER"},
        "reasoning": {"type": "STRING"},
    },
    "required": ["suggestedPriceLow", "suggestedPriceHigh", "reasoning"],
}

SHIPPING_SCHEMA = {
    "type": "OBJECT",
    "properties": {"suggestedShippingCost": {"type": "NUMBER"}},
    "required": ["suggestedShippingCost"],
}

ANALYSIS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "category": {"type": "STRING"},
        "description": {"type": "STRING"},
    },
    "required": ["title", "category", "description"],
}


# =============================================================================
# Backends
# =============================================================================


class AssistantBackend(ABC):
    """Base class for model backends."""

    @abstractmethod
    async def generate(
        self,
        task: str,
        prompt: str,
        model: str,
        image: Optional[InlineImage] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Return the raw text of the model's answer."""

    async def close(self) -> None:
        return None


class GeminiBackend(AssistantBackend):
    """
    Google Gemini REST backend.

    The HTTP client is created lazily and reused across calls.
    """

    def __init__(
        self,
        api_key: Optional[str],
        api_base: str = GEMINI_API_BASE,
        timeout: float = 30.0,
        transport: Optional["httpx.AsyncBaseTransport"] = None,
    ):
        self._api_key = api_key
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> "httpx.AsyncClient":
        import httpx
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            )
        return self._http_client

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def generate(
        self,
        task: str,
        prompt: str,
        model: str,
        image: Optional[InlineImage] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        if not self._api_key:
            raise ExternalServiceFailure("GEMINI_API_KEY is not set")

        parts: List[Dict[str, Any]] = []
        if image is not None:
            parts.append({"inlineData": {"mimeType": image.mime_type, "data": image.data}})
        parts.append({"text": prompt})

        payload: Dict[str, Any] = {"contents": [{"parts": parts}]}
        if response_schema is not None:
            payload["generationConfig"] = {
                "responseMimeType": "application/json",
                "responseSchema": response_schema,
            }

        url = f"{self._api_base}/v1beta/models/{model}:generateContent"
        headers = {"x-goog-api-key": self._api_key, "Content-Type": "application/json"}

        start_time = time.monotonic()
        response = await self._get_client().post(url, headers=headers, json=payload)
        response.raise_for_status()
        data = response.json()
        latency_ms = (time.monotonic() - start_time) * 1000

        candidates = data.get("candidates") or []
        if not candidates:
            raise ExternalServiceFailure(f"{task}: response has no candidates")

        text = "".join(
            part.get("text", "")
            for part in candidates[0].get("content", {}).get("parts", [])
        )
        logger.debug(f"{task} via {model} answered in {latency_ms:.0f}ms")
        return text


Responder = Union[str, Callable[[str], str], Exception]


class StaticBackend(AssistantBackend):
    """
    Canned responses by task name.

    A response may be a string, a callable receiving the prompt, or an
    exception instance to raise. Unknown tasks raise ExternalServiceFailure.
    """

    def __init__(self, responses: Optional[Mapping[str, Responder]] = None):
        self.responses: Dict[str, Responder] = dict(responses or {})
        self.calls: List[str] = []

    async def generate(
        self,
        task: str,
        prompt: str,
        model: str,
        image: Optional[InlineImage] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        self.calls.append(task)
        if task not in self.responses:
            raise ExternalServiceFailure(f"No canned response for {task}")
        responder = self.responses[task]
        if isinstance(responder, Exception):
            raise responder
        if callable(responder):
            return responder(prompt)
        return responder


# =============================================================================
# Assistant
# =============================================================================


class ListingAssistant:
    """
    High-level assistant used by listing and search flows.

    Usage:
        assistant = ListingAssistant.from_config(load_config())
        text = await assistant.generate_description("Denim Jacket", "Outerwear", "Good")
    """

    def __init__(
        self,
        backend: AssistantBackend,
        model: str = "gemini-2.5-flash",
        long_model: str = "gemini-2.5-pro",
    ):
        self._backend = backend
        self._model = model
        self._long_model = long_model

    @classmethod
    def from_config(cls, config: MarketConfig) -> "ListingAssistant":
        backend = GeminiBackend(
            api_key=config.assistant_api_key,
            timeout=config.assistant_timeout,
        )
        return cls(backend, config.assistant_model, config.assistant_long_model)

    async def close(self) -> None:
        await self._backend.close()

    async def _call(
        self,
        task: str,
        prompt: str,
        model: str,
        image: Optional[InlineImage] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Run one backend call; every failure becomes ExternalServiceFailure."""
        try:
            return await self._backend.generate(task, prompt, model, image, response_schema)
        except ExternalServiceFailure:
            raise
        except Exception as exc:
            raise ExternalServiceFailure(f"{task} failed: {exc}") from exc

    @staticmethod
    def _parse(task: str, text: str, schema: type) -> Any:
        try:
            return schema.model_validate_json(text)
        except (ValidationError, ValueError) as exc:
            raise ExternalServiceFailure(f"{task}: malformed response: {exc}") from exc

    # =========================================================================
    # Contract
    # =========================================================================

    async def generate_description(
        self,
        title: str,
        category: str,
        condition: Union[ProductCondition, str],
    ) -> str:
        """Single-paragraph listing description; "" on failure."""
        condition = ProductCondition(condition).value
        prompt = (
            "You are an expert e-commerce copywriter for second-hand fashion. "
            "Write one enthusiastic but honest paragraph describing the item, "
            "highlighting quality and occasions to wear it. No hashtags or emojis.\n\n"
            f"Title: {title}\nCategory: {category}\nCondition: {condition}"
        )
        try:
            text = (await self._call("description", prompt, self._long_model)).strip()
            if not text:
                raise ExternalServiceFailure("description: empty response")
            return text
        except ExternalServiceFailure as exc:
            logger.warning(f"Description fallback: {exc}")
            return ""

    async def check_content_flag(
        self,
        title: str,
        description: str,
        image_data_url: str,
    ) -> bool:
        """
        NSFW pre-screen. True flags the listing for moderation.

        Fails safe to False: manual reports still catch missed content.
        """
        prompt = (
            "Is this marketplace listing (image and text) not safe for work, "
            "sexually suggestive, explicit, or otherwise inappropriate for a "
            "general audience? Respond with only YES or NO.\n\n"
            f'Title: "{title}"\nDescription: "{description}"'
        )
        try:
            image = InlineImage.from_data_url(image_data_url)
            answer = await self._call("content_flag", prompt, self._model, image=image)
        except ExternalServiceFailure as exc:
            logger.warning(f"Content check fallback: {exc}")
            return False

        flagged = answer.strip().upper() == "YES"
        logger.info(f"Content check for {title!r}: {'flagged' if flagged else 'clear'}")
        return flagged

    async def search_catalog(self, query: str, candidates: Sequence[Product]) -> SearchResult:
        """
        Match a natural language query against candidate listings.

        Matched ids are restricted to the candidates, in the model's order.
        """
        catalog = [
            {
                "id": p.id,
                "title": p.title,
                "description": p.description,
                "price": float(p.price),
                "condition": p.condition.value,
            }
            for p in candidates
        ]
        prompt = (
            "You are a shopping assistant for the marketplace 'Closet Swap AI'. "
            "Understand the query (category, price, condition, keywords) and return "
            "a one-sentence 'summary' of what is being searched for and the "
            "'productIds' of every matching product, best match first.\n\n"
            f'User Query: "{query}"\n\nAvailable Products:\n{json.dumps(catalog)}'
        )
        try:
            text = await self._call(
                "search", prompt, self._long_model, response_schema=SEARCH_SCHEMA
            )
            parsed = self._parse("search", text, _SearchResponse)
        except ExternalServiceFailure as exc:
            logger.warning(f"Search fallback: {exc}")
            return SearchResult(SEARCH_FALLBACK_SUMMARY, [], is_fallback=True)

        known = {p.id for p in candidates}
        matched: List[str] = []
        for pid in parsed.product_ids:
            if pid in known and pid not in matched:
                matched.append(pid)
        return SearchResult(parsed.summary, matched)

    async def suggest_price_range(
        self,
        title: str,
        category: str,
        condition: Union[ProductCondition, str],
        description: str,
        market_sample: Sequence[Product],
    ) -> PriceSuggestion:
        """Competitive price range from comparable available listings."""
        market = [
            {"title": p.title, "price": float(p.price), "condition": p.condition.value}
            for p in market_sample
            if p.is_available
        ]
        prompt = (
            "You are a pricing analyst for a second-hand fashion marketplace. "
            "Suggest a reasonable low and high price for the item and justify it "
            "in one sentence.\n\n"
            f'Title: "{title}"\nCategory: "{category}"\n'
            f'Condition: "{ProductCondition(condition).value}"\nDescription: "{description}"\n\n'
            f"Current Market Items:\n{json.dumps(market)}"
        )
        try:
            text = await self._call("price", prompt, self._model, response_schema=PRICE_SCHEMA)
            parsed = self._parse("price", text, _PriceResponse)
            if parsed.high < parsed.low:
                raise ExternalServiceFailure("price: high below low")
        except ExternalServiceFailure as exc:
            logger.warning(f"Price suggestion fallback: {exc}")
            return PriceSuggestion(
                Decimal("0"), Decimal("0"), PRICE_FALLBACK_REASONING, is_fallback=True
            )

        return PriceSuggestion(
            Decimal(str(parsed.low)), Decimal(str(parsed.high)), parsed.reasoning
        )

    async def suggest_shipping_cost(self, title: str, category: str, description: str) -> Decimal:
        """Estimated domestic shipping cost in USD; 0 on failure."""
        prompt = (
            "You estimate domestic US shipping costs for a second-hand marketplace. "
            "Consider the likely size, weight and fragility of the item.\n\n"
            f'Title: "{title}"\nCategory: "{category}"\nDescription: "{description}"'
        )
        try:
            text = await self._call(
                "shipping", prompt, self._model, response_schema=SHIPPING_SCHEMA
            )
            parsed = self._parse("shipping", text, _ShippingResponse)
        except ExternalServiceFailure as exc:
            logger.warning(f"Shipping suggestion fallback: {exc}")
            return Decimal("0")

        return Decimal(str(parsed.cost))

    async def analyze_image(
        self,
        image_data_url: str,
        allowed_categories: Sequence[str],
    ) -> ListingAnalysis:
        """
        Draft a listing from a photo.

        A category outside ``allowed_categories`` is replaced by the first one.
        """
        if not allowed_categories:
            raise InvalidInput("allowed_categories must not be empty")
        default_category = allowed_categories[0]

        prompt = (
            "You are a merchandiser for a second-hand fashion marketplace. Based only "
            "on the image, write a concise title, choose the single best category "
            f"from: {', '.join(allowed_categories)}, and write a one-paragraph "
            "description. No hashtags or emojis."
        )
        try:
            image = InlineImage.from_data_url(image_data_url)
            text = await self._call(
                "analyze_image", prompt, self._model, image=image,
                response_schema=ANALYSIS_SCHEMA,
            )
            parsed = self._parse("analyze_image", text, _AnalysisResponse)
        except ExternalServiceFailure as exc:
            logger.warning(f"Image analysis fallback: {exc}")
            return ListingAnalysis("", default_category, "", is_fallback=True)

        category = parsed.category
        if category not in allowed_categories:
            logger.warning(f"Assistant suggested unknown category {category!r}")
            category = default_category
        return ListingAnalysis(parsed.title, category, parsed.description)
