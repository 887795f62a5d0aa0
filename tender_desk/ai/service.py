"""AI-backed tender actions.

``generate_content`` is the single entry point to a provider: it validates
the config, dispatches to the matching agno adapter and turns provider
failures into ``AIServiceError``/``InvalidAPIKeyError``. The business
functions below build a prompt and a ``SchemaSpec``, call ``generate``
(injectable, so tests can pass a fake) and map the JSON back onto the
workspace records.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from bs4 import BeautifulSoup

from ..api.client import FeedClient
from ..config import AI_PROMPT_TEXT_LIMIT
from ..exceptions import (
    AIConfigurationError,
    AIServiceError,
    InvalidAPIKeyError,
    TenderDeskError,
)
from ..models.records import AIConfig, AIProvider
from ..models.types import AIInsights, DocumentAnalysis, ManagedDocument, RiskAssessment, Tender
from ..services.documents import TECH_SPEC_FIELDS
from . import prompts
from .adapters import GOOGLE_SEARCH_TOOL, InlinePart, Prompt, create_adapter, normalize_prompt
from .schema import SchemaSpec, array_schema, coerce_json, number_schema, object_schema, string_schema

logger = logging.getLogger(__name__)

GenerateFn = Callable[[Prompt, AIConfig, Optional[SchemaSpec]], Awaitable[str]]

MIN_PAGE_TEXT_CHARS = 100
_MAIN_CONTENT_SELECTOR = "main, article, .content, .main, .post, #main, #content, [role=main]"


def _provider_name(config: AIConfig) -> str:
    provider = config.provider
    return provider.value if isinstance(provider, AIProvider) else str(provider)


def classify_error(provider: str, error: BaseException) -> AIServiceError:
    message = str(error) or "An unknown error occurred"
    lowered = message.lower()
    if "api key" in lowered or "authentication" in lowered:
        return InvalidAPIKeyError(provider)
    return AIServiceError(provider, f"Failed to get a response from {provider} due to an API error: {message}")


async def generate_content(prompt: Prompt, config: AIConfig, schema: Optional[SchemaSpec] = None) -> str:
    """Send ``prompt`` to the configured provider and return its text.

    Raises:
        AIConfigurationError: no API key or no model configured.
        InvalidAPIKeyError: the provider rejected the credentials.
        AIServiceError: any other provider failure, or unusable JSON when a
            schema was requested.
    """
    provider = _provider_name(config)
    if not config.api_key:
        raise AIConfigurationError(provider, f"API key for {provider} is not configured. Please add it in Settings.")
    if not config.model:
        raise AIConfigurationError(provider, f"Model for {provider} is not configured. Please select one in Settings.")

    adapter = create_adapter(config)
    try:
        text = await adapter.generate(normalize_prompt(prompt), schema)
    except AIServiceError:
        raise
    except Exception as e:
        logger.exception("Error calling %s API", provider)
        raise classify_error(provider, e) from e

    if schema is None:
        return text
    try:
        return coerce_json(text)
    except ValueError as e:
        raise AIServiceError(provider, f"{provider} returned a response that is not valid JSON.") from e


def _load_json(text: str, config: AIConfig) -> Any:
    try:
        return json.loads(coerce_json(text))
    except ValueError as e:
        provider = _provider_name(config)
        raise AIServiceError(provider, f"{provider} returned a response that is not valid JSON.") from e


def _file_prompt(file_data: str | None, mime_type: str | None, text: str, tools: list | None = None) -> dict:
    if not file_data or not mime_type:
        raise ValueError("Document content or mimeType is missing.")
    prompt: dict = {"parts": [InlinePart.from_file_data(file_data, mime_type).to_part(), {"text": text}]}
    if tools:
        prompt["tools"] = tools
    return prompt


# ── Schemas ─────────────────────────────────────────────────────────

TENDER_DETAILS_SCHEMA = object_schema(
    {
        "title": string_schema("The official title of the tender."),
        "summary": string_schema("A concise summary of the tender's scope and objective."),
        "closingDate": string_schema("The submission deadline in YYYY-MM-DD format."),
    },
    required=["title", "summary", "closingDate"],
)

INSIGHTS_SCHEMA = object_schema(
    {
        "keywords": array_schema(string_schema(), "List of 3-5 most relevant keywords or technologies."),
        "estimatedValue": string_schema("The estimated budget or value if explicitly mentioned in the text."),
    },
    required=["keywords"],
)

RISK_SCHEMA = object_schema(
    {
        "overallRisk": string_schema(enum=["Low", "Medium", "High"]),
        "identifiedRisks": array_schema(string_schema()),
        "mitigationStrategies": array_schema(string_schema()),
        "confidenceScore": number_schema(),
    },
    required=["overallRisk", "identifiedRisks", "mitigationStrategies", "confidenceScore"],
)

ANALYSIS_SCHEMA = object_schema(
    {
        "summary": string_schema(),
        "keyRequirements": array_schema(string_schema()),
        "deadlines": array_schema(string_schema()),
        "risksOrRedFlags": array_schema(string_schema()),
    },
    required=["summary", "keyRequirements", "deadlines", "risksOrRedFlags"],
)

CATALOG_ITEMS_SCHEMA = array_schema(
    object_schema(
        {
            "itemName": string_schema(),
            "description": string_schema(),
            "cost": number_schema(),
            "uom": string_schema(),
            "manufacturer": string_schema(),
            "model": string_schema(),
            "hsnCode": string_schema(),
            "technicalSpecs": array_schema(
                object_schema(
                    {"specName": string_schema(), "specValue": string_schema()},
                    required=["specName", "specValue"],
                )
            ),
        },
        required=["itemName", "description", "cost"],
    )
)

TECH_SPECS_SCHEMA = object_schema({key: string_schema() for key, _ in TECH_SPEC_FIELDS})

_TECH_FIELD_LIST = ", ".join(f'"{label}" (key: {key})' for key, label in TECH_SPEC_FIELDS)


# ── Result types ────────────────────────────────────────────────────


@dataclass
class ExtractedTenderDetails:
    title: str
    summary: str
    closing_date: str
    link: str = ""


@dataclass
class ExtractedCatalogItem:
    item_name: str
    description: str
    cost: float
    uom: str | None = None
    manufacturer: str | None = None
    model: str | None = None
    hsn_code: str | None = None
    technical_specs: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> ExtractedCatalogItem:
        specs = {
            s.get("specName", ""): s.get("specValue", "")
            for s in data.get("technicalSpecs") or []
            if isinstance(s, dict) and s.get("specName")
        }
        try:
            cost = float(data.get("cost") or 0)
        except (TypeError, ValueError):
            cost = 0.0
        return cls(
            item_name=data.get("itemName", ""),
            description=data.get("description", ""),
            cost=cost,
            uom=data.get("uom"),
            manufacturer=data.get("manufacturer"),
            model=data.get("model"),
            hsn_code=data.get("hsnCode"),
            technical_specs=specs,
        )


# ── Page text ───────────────────────────────────────────────────────


def page_text(html: str) -> str:
    """Readable text of a web page, preferring its main content block."""
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    node = soup.select_one(_MAIN_CONTENT_SELECTOR) or soup.body or soup
    return re.sub(r"\s\s+", " ", node.get_text(" ")).strip()


async def fetch_page_text(url: str, client: FeedClient | None = None) -> str:
    """Fetch ``url`` through the CORS proxy and return its readable text.

    Raises:
        FeedFetchError: the page answered with a non-2xx status.
        TenderDeskError: the page holds too little text to work with.
    """
    own_client = client is None
    client = client or FeedClient()
    try:
        html = await client.fetch_feed(url)
    finally:
        if own_client:
            await client.close()
    text = page_text(html)
    if len(text) < MIN_PAGE_TEXT_CHARS:
        raise TenderDeskError("Could not extract meaningful text from the tender page.")
    return text


# ── Business functions ──────────────────────────────────────────────


async def categorize_tender(tender: Tender, config: AIConfig, *, generate: GenerateFn = generate_content) -> str:
    prompt = prompts.CATEGORIZE_TENDER.format(title=tender.title, summary=tender.summary)
    category = await generate(prompt, config, None)
    return re.sub(r'["\n.]', "", category).strip()


async def extract_tender_insights(
    tender: Tender, config: AIConfig, *, generate: GenerateFn = generate_content
) -> AIInsights:
    """Keywords and an estimated value; an empty result when the call fails."""
    prompt = prompts.TENDER_INSIGHTS.format(title=tender.title, summary=tender.summary)
    try:
        data = _load_json(await generate(prompt, config, INSIGHTS_SCHEMA), config)
    except TenderDeskError as e:
        logger.error("Failed to extract tender insights: %s", e)
        return AIInsights()
    if not isinstance(data, dict):
        logger.error("Failed to extract tender insights: expected an object")
        return AIInsights()
    return AIInsights.from_dict(data)


async def assess_tender_risk(
    tender: Tender, quote_value: float, config: AIConfig, *, generate: GenerateFn = generate_content
) -> RiskAssessment:
    prompt = prompts.RISK_ASSESSMENT.format(
        title=tender.title,
        summary=tender.summary,
        closing_date=tender.closing_date,
        quote_value=quote_value,
    )
    data = _load_json(await generate(prompt, config, RISK_SCHEMA), config)
    if not isinstance(data, dict):
        raise AIServiceError(_provider_name(config), "Risk assessment response is not an object.")
    level = data.get("overallRisk", data.get("overall_risk"))
    if isinstance(level, str):
        data["overallRisk"] = level.strip().capitalize()
        data.pop("overall_risk", None)
    try:
        return RiskAssessment.from_dict(data)
    except ValueError as e:
        raise AIServiceError(_provider_name(config), f"Unexpected risk level: {level!r}") from e


async def analyze_document(
    document: ManagedDocument, config: AIConfig, *, generate: GenerateFn = generate_content
) -> DocumentAnalysis:
    prompt = _file_prompt(document.file_data, document.mime_type, prompts.DOCUMENT_ANALYSIS)
    data = _load_json(await generate(prompt, config, ANALYSIS_SCHEMA), config)
    if not isinstance(data, dict):
        raise AIServiceError(_provider_name(config), "Document analysis response is not an object.")
    return DocumentAnalysis.from_dict(data)


async def summarize_text(text: str, config: AIConfig, *, generate: GenerateFn = generate_content) -> str:
    prompt = prompts.SUMMARIZE_TEXT.format(text=text[:AI_PROMPT_TEXT_LIMIT])
    return await generate(prompt, config, None)


async def summarize_live_page(
    url: str,
    config: AIConfig,
    *,
    generate: GenerateFn = generate_content,
    client: FeedClient | None = None,
) -> str:
    if not url or not url.startswith("http"):
        raise ValueError("A valid tender URL is required for summarization.")
    text = await fetch_page_text(url, client)
    return await summarize_text(text, config, generate=generate)


async def generate_workspace_summary(
    tender: Tender,
    config: AIConfig,
    *,
    generate: GenerateFn = generate_content,
    client: FeedClient | None = None,
) -> str:
    """Summary of the live tender page, or of title and summary when there is no link."""
    if not tender.link or not tender.link.startswith("http"):
        return await summarize_text(f"{tender.title}\n\n{tender.summary}", config, generate=generate)
    return await summarize_live_page(tender.link, config, generate=generate, client=client)


def _tender_details(data: Any, config: AIConfig, link: str) -> ExtractedTenderDetails:
    if not isinstance(data, dict):
        raise AIServiceError(_provider_name(config), "Tender details response is not an object.")
    return ExtractedTenderDetails(
        title=data.get("title", ""),
        summary=data.get("summary", ""),
        closing_date=data.get("closingDate", data.get("closing_date", "")),
        link=link,
    )


async def extract_tender_details_from_url(
    url: str,
    config: AIConfig,
    *,
    generate: GenerateFn = generate_content,
    client: FeedClient | None = None,
) -> ExtractedTenderDetails:
    if not url or not url.startswith("http"):
        raise ValueError("A valid URL is required.")
    text = await fetch_page_text(url, client)
    prompt = prompts.TENDER_DETAILS_FROM_PAGE.format(text=text[:AI_PROMPT_TEXT_LIMIT])
    data = _load_json(await generate(prompt, config, TENDER_DETAILS_SCHEMA), config)
    return _tender_details(data, config, url)


async def extract_tender_details_from_document(
    file_data: str, mime_type: str, config: AIConfig, *, generate: GenerateFn = generate_content
) -> ExtractedTenderDetails:
    prompt = _file_prompt(file_data, mime_type, prompts.TENDER_DETAILS_FROM_DOCUMENT)
    data = _load_json(await generate(prompt, config, TENDER_DETAILS_SCHEMA), config)
    return _tender_details(data, config, "")


async def extract_catalog_items_from_document(
    file_data: str, mime_type: str, config: AIConfig, *, generate: GenerateFn = generate_content
) -> list[ExtractedCatalogItem]:
    """Line items of a vendor quotation.

    JSON-mode providers may only return objects, so a top-level object is
    unwrapped to its first list value.
    """
    prompt = _file_prompt(file_data, mime_type, prompts.CATALOG_EXTRACTION)
    data = _load_json(await generate(prompt, config, CATALOG_ITEMS_SCHEMA), config)
    if isinstance(data, dict):
        data = next((v for v in data.values() if isinstance(v, list)), [])
    return [ExtractedCatalogItem.from_dict(item) for item in data if isinstance(item, dict)]


def _spec_values(data: Any) -> dict[str, str]:
    if not isinstance(data, dict):
        return {}
    known = {key for key, _ in TECH_SPEC_FIELDS}
    return {k: str(v) for k, v in data.items() if k in known and v}


async def fill_technical_specs(
    manufacturer: str, model: str, config: AIConfig, *, generate: GenerateFn = generate_content
) -> dict[str, str]:
    """Technical details for a product, keyed like ``QuoteItem.technical_details``."""
    prompt: dict = {
        "parts": [{"text": prompts.TECHNICAL_SPECS.format(
            manufacturer=manufacturer, model=model, fields=_TECH_FIELD_LIST,
        )}],
    }
    if AIProvider(config.provider) == AIProvider.GEMINI:
        prompt["tools"] = [GOOGLE_SEARCH_TOOL]
    return _spec_values(_load_json(await generate(prompt, config, TECH_SPECS_SCHEMA), config))


async def fill_technical_specs_from_document(
    file_data: str,
    mime_type: str,
    item_name: str,
    config: AIConfig,
    *,
    generate: GenerateFn = generate_content,
) -> dict[str, str]:
    text = prompts.TECHNICAL_SPECS_FROM_DOCUMENT.format(item_name=item_name, fields=_TECH_FIELD_LIST)
    prompt = _file_prompt(file_data, mime_type, text)
    return _spec_values(_load_json(await generate(prompt, config, TECH_SPECS_SCHEMA), config))
