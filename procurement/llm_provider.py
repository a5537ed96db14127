"""
OpenAI-compatible analysis provider.

Sends the at-risk slice of the inventory to an LLM and asks for a short
health summary plus replenishment requisitions grouped by supplier.  Also
generates demo inventory data for seeding an empty store.

Works with any OpenAI-compatible backend:
  - Ollama (local):  LLM_BASE_URL=http://localhost:11434/v1   LLM_API_KEY=ollama
  - OpenAI:          LLM_BASE_URL=https://api.openai.com/v1   LLM_API_KEY=sk-...
  - Groq:            LLM_BASE_URL=https://api.groq.com/openai/v1  LLM_API_KEY=gsk_...

The provider only returns parsed JSON.  Nothing it says is trusted: the
response goes through SuggestionIngestor (or seeding.build_seed_data) before
it can touch the store.  Every request is bounded by `timeout`; a timeout is
raised as ProviderTimeout and is not retried.
"""
import json
import logging
import re
from typing import Optional, Protocol

from openai import OpenAI, APITimeoutError, OpenAIError

from models.product import Product
from models.supplier import Supplier
from .errors import ProviderFailure, ProviderTimeout

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

_PROMPT_ANALYSIS = """You are an inventory replenishment analyst. Analyze the inventory data below (a subset of items needing attention).
Note: {healthy_count} other items are healthy and excluded from this list.

Identify items below or near their reorder points and create Purchase Requisitions to replenish stock.
Group items into logical requisitions, usually by their existing supplier.
Provide a short executive summary (2-3 sentences) of the inventory health.

IMPORTANT RULES:
- Return ONLY the JSON object -- no markdown, no explanation, no code fences
- productId and suggestedSupplierId must be ids from the data below
- quantity must be a positive whole number
- Do not include prices

Return a JSON object with exactly this structure:
{{
  "summary": "string",
  "requisitions": [
    {{
      "suggestedSupplierId": "string or null",
      "reason": "string",
      "items": [
        {{ "productId": "string", "quantity": number }}
      ]
    }}
  ]
}}

Inventory: {inventory_json}
Suppliers: {suppliers_json}"""


_PROMPT_GENERATE = """Generate a realistic inventory dataset for {business}.
Create {supplier_count} suppliers and {product_count} products distributed among them.
Ensure stock levels vary (some low, some high).

IMPORTANT RULES:
- Return ONLY the JSON object -- no markdown, no explanation, no code fences
- supplierName must match one of the generated supplier names
- All numbers must be plain numbers (no currency symbols, no commas)

Return a JSON object with exactly this structure:
{{
  "suppliers": [
    {{ "name": "string", "contactEmail": "string", "leadTimeDays": number }}
  ],
  "products": [
    {{
      "sku": "string",
      "name": "string",
      "category": "string",
      "stockLevel": number,
      "reorderPoint": number,
      "unitPrice": number,
      "supplierName": "string"
    }}
  ]
}}"""


class AnalysisProvider(Protocol):
    """Anything that can turn inventory data into raw replenishment suggestions."""

    def analyze(
        self,
        products: list[Product],
        suppliers: list[Supplier],
        healthy_count: int = 0,
    ) -> dict: ...


def inventory_context(products: list[Product]) -> list[dict]:
    """The product fields the provider is allowed to see."""
    return [
        {
            "id": p.id,
            "name": p.name,
            "currentStock": p.stock_level,
            "reorderPoint": p.reorder_point,
            "supplierId": p.supplier_id,
        }
        for p in products
    ]


def supplier_context(suppliers: list[Supplier]) -> list[dict]:
    return [{"id": s.id, "name": s.name} for s in suppliers]


def parse_json_response(raw: str) -> Optional[dict]:
    """
    Extract a JSON object from a model response.
    Handles markdown code fences and attempts basic JSON repair.
    """
    raw = re.sub(r"^```(?:json)?\s*", "", (raw or "").strip(), flags=re.IGNORECASE)
    raw = re.sub(r"\s*```$", "", raw)
    raw = raw.strip()

    start = raw.find("{")
    end = raw.rfind("}") + 1
    if start == -1 or end == 0:
        logger.warning("No JSON object found in LLM response")
        return None

    json_str = raw[start:end]
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        logger.warning("JSON decode error: %s", e)
        # Attempt repair: remove trailing commas before } or ]
        json_str = re.sub(r",\s*([}\]])", r"\1", json_str)
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError:
            logger.error("Could not repair JSON from LLM response")
            return None

    return data if isinstance(data, dict) else None


class LLMAnalysisProvider:
    """
    Analysis provider backed by any OpenAI-compatible chat completions API.

    Defaults to a local Ollama endpoint.  Switch backends with LLM_BASE_URL,
    LLM_MODEL and LLM_API_KEY.
    """

    def __init__(
        self,
        model: str = "llama3.2",
        base_url: str = "http://localhost:11434/v1",
        api_key: str = "ollama",
        timeout: float = 60.0,
        max_attempts: int = 3,
        client=None,
    ):
        self.model        = model
        self.base_url     = base_url
        self.api_key      = api_key
        self.timeout      = timeout
        self.max_attempts = max_attempts
        self._client      = client

    def _get_client(self):
        """Lazily initialise the OpenAI client."""
        if self._client is None:
            self._client = OpenAI(
                base_url=self.base_url,
                api_key=self.api_key,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def analyze(
        self,
        products: list[Product],
        suppliers: list[Supplier],
        healthy_count: int = 0,
    ) -> dict:
        """
        Ask the model for a summary and requisition groupings.

        Raises ProviderTimeout if a request exceeds the timeout and
        ProviderFailure if the backend errors or never returns a JSON object.
        """
        prompt = _PROMPT_ANALYSIS.format(
            healthy_count=healthy_count,
            inventory_json=json.dumps(inventory_context(products)),
            suppliers_json=json.dumps(supplier_context(suppliers)),
        )
        logger.info(
            "Requesting replenishment analysis for %d product(s) (model=%s)",
            len(products), self.model,
        )
        return self._complete_json(prompt)

    def generate_inventory(
        self,
        business: str = "a high-end electronics and accessories store",
        supplier_count: int = 5,
        product_count: int = 15,
    ) -> dict:
        """Ask the model for a demo dataset of suppliers and products."""
        prompt = _PROMPT_GENERATE.format(
            business=business,
            supplier_count=supplier_count,
            product_count=product_count,
        )
        logger.info(
            "Requesting generated inventory: %d suppliers, %d products (model=%s)",
            supplier_count, product_count, self.model,
        )
        return self._complete_json(prompt)

    def _complete_json(self, prompt: str) -> dict:
        client = self._get_client()
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            logger.debug("LLM request attempt %d (model=%s)", attempt, self.model)
            try:
                response = client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=0.0,
                    timeout=self.timeout,
                )
            except APITimeoutError as e:
                raise ProviderTimeout(
                    f"LLM did not respond within {self.timeout:g}s", cause=e
                ) from e
            except OpenAIError as e:
                logger.warning("LLM attempt %d failed: %s", attempt, e)
                last_error = e
                continue

            content = response.choices[0].message.content or ""
            data = parse_json_response(content)
            if data is not None:
                logger.info("LLM request succeeded on attempt %d", attempt)
                return data
            logger.warning("LLM attempt %d returned no usable JSON", attempt)

        raise ProviderFailure(
            f"LLM failed to return valid JSON after {self.max_attempts} attempts",
            cause=last_error,
        )

    def check_connection(self) -> dict:
        """
        Verify the LLM endpoint is reachable and the configured model is available.
        """
        try:
            client = self._get_client()
            models_response = client.models.list()
            available = [m.id for m in models_response.data]
            model_available = any(self.model in m for m in available)
            return {
                "ok": True,
                "base_url": self.base_url,
                "model_available": model_available,
                "available_models": available,
            }
        except OpenAIError as e:
            return {
                "ok": False,
                "base_url": self.base_url,
                "error": str(e),
                "model_available": False,
            }
