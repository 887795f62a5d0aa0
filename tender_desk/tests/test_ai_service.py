"""Tests for the AI boundary, with the provider replaced by fakes."""

import asyncio
import json

import httpx
import pytest

from tender_desk.ai import service
from tender_desk.ai.adapters import (
    GOOGLE_SEARCH_TOOL,
    AgnoAdapter,
    AnthropicAdapter,
    DeepSeekAdapter,
    GeminiAdapter,
    InlinePart,
    create_adapter,
    normalize_prompt,
)
from tender_desk.ai.schema import array_schema, coerce_json, object_schema, string_schema
from tender_desk.api.client import FeedClient
from tender_desk.exceptions import AIConfigurationError, AIServiceError, InvalidAPIKeyError, TenderDeskError
from tender_desk.models.records import AIConfig, AIProvider
from tender_desk.models.types import AIInsights, DocumentCategory, ManagedDocument, RiskLevel, Tender

CONFIG = AIConfig(provider=AIProvider.GEMINI, api_key="key", model="gemini-2.5-flash")
TENDER = Tender(
    id="t-1", title="Supply of laptops", summary="50 laptops for field offices", published_date="2025-06-01",
    closing_date="2025-07-15", is_closing_date_estimated=False, link="https://example.org/t-1", source="Feed",
)


def _fake(*responses):
    calls = []
    queue = list(responses)

    async def generate(prompt, config, schema):
        calls.append((prompt, config, schema))
        return queue.pop(0)

    return generate, calls


# ── Schema and JSON coercion ─────────────────────────────────────────


def test_schema_dialects():
    schema = object_schema({"tags": array_schema(string_schema("A tag"))}, required=["tags"])
    assert schema.to_json_schema() == {
        "type": "object",
        "properties": {"tags": {"type": "array", "items": {"type": "string", "description": "A tag"}}},
        "required": ["tags"],
    }
    assert schema.to_gemini_schema()["properties"]["tags"]["items"]["type"] == "STRING"


def test_coerce_json():
    assert coerce_json('{"a": 1}') == '{"a": 1}'
    assert json.loads(coerce_json('```json\n{"a": 1}\n```')) == {"a": 1}
    assert json.loads(coerce_json('Here you go: [1, 2] hope it helps')) == [1, 2]
    with pytest.raises(ValueError):
        coerce_json("no json here")


def test_normalize_prompt():
    part = InlinePart.from_file_data("data:application/pdf;base64,QUJD", "application/pdf")
    assert part.data == "QUJD"
    prompt = normalize_prompt({"parts": [{"text": "first"}, part.to_part(), {"text": "second"}], "tools": ["x"]})
    assert prompt.text == "first\n\nsecond"
    assert prompt.inline == [part]
    assert prompt.tools == ["x"]
    assert normalize_prompt("plain").text == "plain"


def test_adapter_per_provider():
    assert isinstance(create_adapter(CONFIG), GeminiAdapter)
    deepseek = create_adapter(AIConfig(provider=AIProvider.DEEPSEEK, api_key="k", model="deepseek-chat"))
    assert isinstance(deepseek, DeepSeekAdapter)
    claude = create_adapter(AIConfig(provider=AIProvider.ANTHROPIC, api_key="k", model="claude-sonnet-4"))
    assert isinstance(claude, AnthropicAdapter)
    with pytest.raises(TypeError):
        AgnoAdapter(CONFIG)


# ── generate_content ─────────────────────────────────────────────────


def test_missing_key_or_model_is_a_configuration_error():
    with pytest.raises(AIConfigurationError, match="API key for Google Gemini is not configured"):
        asyncio.run(service.generate_content("hi", AIConfig(api_key="", model="m")))
    with pytest.raises(AIConfigurationError, match="Model for OpenAI"):
        asyncio.run(service.generate_content("hi", AIConfig(provider=AIProvider.OPENAI, api_key="k")))


def test_classify_error():
    assert isinstance(service.classify_error("OpenAI", Exception("Incorrect API key provided")), InvalidAPIKeyError)
    assert isinstance(service.classify_error("OpenAI", Exception("Authentication failed")), InvalidAPIKeyError)
    error = service.classify_error("OpenAI", Exception("timeout"))
    assert type(error) is AIServiceError
    assert str(error) == "Failed to get a response from OpenAI due to an API error: timeout"


class _Adapter:
    def __init__(self, result=None, error=None):
        self.result, self.error = result, error

    async def generate(self, prompt, schema):
        if self.error:
            raise self.error
        return self.result


def test_generate_content_classifies_provider_errors(monkeypatch):
    monkeypatch.setattr(service, "create_adapter", lambda config: _Adapter(error=RuntimeError("invalid api key")))
    with pytest.raises(InvalidAPIKeyError):
        asyncio.run(service.generate_content("hi", CONFIG))


def test_generate_content_coerces_json_when_schema_given(monkeypatch):
    monkeypatch.setattr(service, "create_adapter", lambda config: _Adapter(result='```json\n{"keywords": []}\n```'))
    text = asyncio.run(service.generate_content("hi", CONFIG, service.INSIGHTS_SCHEMA))
    assert json.loads(text) == {"keywords": []}

    monkeypatch.setattr(service, "create_adapter", lambda config: _Adapter(result="sorry, no"))
    with pytest.raises(AIServiceError, match="not valid JSON"):
        asyncio.run(service.generate_content("hi", CONFIG, service.INSIGHTS_SCHEMA))

    assert asyncio.run(service.generate_content("hi", CONFIG)) == "sorry, no"


# ── Business functions ───────────────────────────────────────────────


def test_categorize_strips_punctuation():
    generate, calls = _fake('"Medical Equipment."\n')
    assert asyncio.run(service.categorize_tender(TENDER, CONFIG, generate=generate)) == "Medical Equipment"
    prompt, _, schema = calls[0]
    assert "Supply of laptops" in prompt
    assert schema is None


def test_insights_parsed():
    generate, _ = _fake('{"keywords": ["laptops", "IT"], "estimatedValue": "$40,000"}')
    insights = asyncio.run(service.extract_tender_insights(TENDER, CONFIG, generate=generate))
    assert insights == AIInsights(keywords=["laptops", "IT"], estimated_value="$40,000")


def test_insights_failure_returns_empty():
    async def failing(prompt, config, schema):
        raise AIServiceError("Google Gemini", "boom")

    assert asyncio.run(service.extract_tender_insights(TENDER, CONFIG, generate=failing)) == AIInsights()

    generate, _ = _fake("not json at all")
    assert asyncio.run(service.extract_tender_insights(TENDER, CONFIG, generate=generate)) == AIInsights()


def test_risk_assessment_normalises_level():
    generate, calls = _fake(json.dumps({
        "overallRisk": "medium", "identifiedRisks": ["a"], "mitigationStrategies": ["b"], "confidenceScore": 0.7,
    }))
    risk = asyncio.run(service.assess_tender_risk(TENDER, 1234.5, CONFIG, generate=generate))
    assert risk.overall_risk == RiskLevel.MEDIUM
    assert risk.confidence_score == 0.7
    assert "$1234.50" in calls[0][0]
    assert calls[0][2] is service.RISK_SCHEMA


def test_risk_assessment_rejects_unknown_level():
    generate, _ = _fake(json.dumps({"overallRisk": "Extreme"}))
    with pytest.raises(AIServiceError, match="Unexpected risk level"):
        asyncio.run(service.assess_tender_risk(TENDER, 0.0, CONFIG, generate=generate))


def test_analyze_document_sends_inline_file():
    document = ManagedDocument(
        id="d1", name="rfq.pdf", category=DocumentCategory.CLIENT, uploaded_by="A", uploaded_at="",
        file_data="data:application/pdf;base64,JVBERi0=", mime_type="application/pdf",
    )
    generate, calls = _fake(json.dumps({
        "summary": "An RFQ", "keyRequirements": ["ISO 9001"], "deadlines": ["2025-07-15"], "risksOrRedFlags": [],
    }))
    analysis = asyncio.run(service.analyze_document(document, CONFIG, generate=generate))
    assert analysis.summary == "An RFQ"
    assert analysis.key_requirements == ["ISO 9001"]

    parts = calls[0][0]["parts"]
    assert parts[0] == {"inline_data": {"data": "JVBERi0=", "mime_type": "application/pdf"}}


def test_analyze_document_without_content():
    document = ManagedDocument(id="d1", name="x", category=DocumentCategory.CLIENT, uploaded_by="", uploaded_at="")
    with pytest.raises(ValueError, match="Document content or mimeType is missing"):
        asyncio.run(service.analyze_document(document, CONFIG, generate=_fake()[0]))


def test_catalog_extraction_unwraps_objects():
    payload = {"items": [{
        "itemName": "Laptop", "description": "14 inch", "cost": "450",
        "technicalSpecs": [{"specName": "RAM", "specValue": "16GB"}],
    }]}
    generate, _ = _fake(json.dumps(payload))
    (item,) = asyncio.run(service.extract_catalog_items_from_document(
        "QUJD", "application/pdf", CONFIG, generate=generate,
    ))
    assert item.item_name == "Laptop"
    assert item.cost == 450.0
    assert item.technical_specs == {"RAM": "16GB"}


def test_technical_specs_use_search_only_on_gemini():
    response = json.dumps({"manufacturerName": "Acme", "warranty": "", "unknownKey": "x"})
    generate, calls = _fake(response, response)

    specs = asyncio.run(service.fill_technical_specs("Acme", "X1", CONFIG, generate=generate))
    assert specs == {"manufacturerName": "Acme"}
    assert calls[0][0]["tools"] == [GOOGLE_SEARCH_TOOL]

    openai = AIConfig(provider=AIProvider.OPENAI, api_key="k", model="gpt-4o")
    asyncio.run(service.fill_technical_specs("Acme", "X1", openai, generate=generate))
    assert "tools" not in calls[1][0]


def test_workspace_summary_fetches_live_page():
    html = "<html><body><nav>menu</nav><main>" + "The ministry invites bids for laptops. " * 5 + "</main></body></html>"
    requested = []

    def handler(request):
        requested.append(request.url.params.get("url"))
        return httpx.Response(200, text=html)

    async def scenario():
        client = FeedClient(proxy_base="https://proxy.test/?url=", transport=httpx.MockTransport(handler))
        generate, calls = _fake("Summary.")
        result = await service.generate_workspace_summary(TENDER, CONFIG, generate=generate, client=client)
        await client.close()
        return result, calls

    result, calls = asyncio.run(scenario())
    assert result == "Summary."
    assert requested == ["https://example.org/t-1"]
    assert "invites bids" in calls[0][0]
    assert "menu" not in calls[0][0]


def test_short_page_is_an_error():
    async def scenario():
        client = FeedClient(
            proxy_base="https://proxy.test/?url=",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<p>tiny</p>")),
        )
        try:
            await service.fetch_page_text("https://example.org/t-1", client)
        finally:
            await client.close()

    with pytest.raises(TenderDeskError, match="meaningful text"):
        asyncio.run(scenario())


def test_summarize_live_page_requires_http_url():
    with pytest.raises(ValueError):
        asyncio.run(service.summarize_live_page("ftp://x", CONFIG, generate=_fake()[0]))


def test_tender_details_from_document():
    generate, _ = _fake(json.dumps({"title": "Road works", "summary": "12km", "closingDate": "2025-08-01"}))
    details = asyncio.run(service.extract_tender_details_from_document(
        "data:application/pdf;base64,QUJD", "application/pdf", CONFIG, generate=generate,
    ))
    assert (details.title, details.closing_date, details.link) == ("Road works", "2025-08-01", "")
