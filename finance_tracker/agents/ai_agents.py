"""
AI Agents for Finance Tracker

Two thin adapters over Gemini:

1. ADVISORY AGENT:
   - Input: the month's Summary plus a reduced view of its transactions
   - Output: short markdown advice in Portuguese
   - CANNOT: change any transaction or goal

2. RECEIPT EXTRACTION AGENT:
   - Input: an image/PDF payload and its MIME type
   - Output: PROPOSED form values (description, amount, date, category)
   - CANNOT: save anything; the user submits the form as usual

DESIGN DECISION: The Gemini model object is injectable. Production code
builds it from settings; tests pass an in-process fake exposing the
same `generate_content_async` coroutine.

Both agents raise their own error type on network or service failure.
The flows turn those into fixed, user-facing fallback messages.
"""

import base64
import binascii
import json
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

import google.generativeai as genai
import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_tracker.config import GeminiSettings, get_settings
from finance_tracker.models.ledger import (
    CENT,
    MAX_AMOUNT,
    ReceiptExtraction,
    Summary,
    Transaction,
    TransactionCategory,
    match_category,
    parse_iso_date,
)


logger = structlog.get_logger(__name__)


class AdvisoryError(Exception):
    """The advisory service could not produce an answer."""
    pass


class ReceiptExtractionError(Exception):
    """The receipt service could not be reached or failed."""
    pass


def _build_model(settings: GeminiSettings, temperature: float, **generation_config) -> Any:
    """Configure Google Generative AI and create a model."""
    genai.configure(api_key=settings.api_key)
    return genai.GenerativeModel(
        model_name=settings.model_name,
        generation_config={
            "temperature": temperature,
            "max_output_tokens": settings.max_tokens,
            **generation_config,
        },
    )


def _extract_json_object(text: str) -> Optional[dict]:
    """Find and parse the outermost JSON object in a model answer."""
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        return None
    try:
        data = json.loads(text[start:end])
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _response_text(response: Any) -> str:
    """
    Text of a Gemini response, or "" when there is none.

    `response.text` raises ValueError when the answer was blocked or
    has no candidates.
    """
    try:
        return (response.text or "").strip()
    except ValueError:
        return ""


# =============================================================================
# ADVISORY
# =============================================================================

ADVICE_PROMPT = """Você é um consultor financeiro pessoal especializado em finanças domésticas brasileiras.
Analise o seguinte resumo financeiro e lista de transações do mês atual.

Dados:
{data}

Por favor, forneça uma análise curta, amigável e direta em formato MARKDOWN (use negrito, listas).
Estrutura da resposta:
1. 📊 **Panorama Rápido**: Um comentário sobre o saldo líquido e a saúde financeira.
2. ⚠️ **Pontos de Atenção**: Identifique categorias onde o gasto parece excessivo (se houver).
3. 💡 **Dica de Ouro**: Uma sugestão prática e acionável para economizar com base nesses dados específicos.

Se não houver transações, dê apenas uma dica genérica de economia.
"""


def build_advice_payload(summary: Summary, transactions: list[Transaction]) -> dict:
    """
    Data sent to the advisory model.

    Transactions are reduced to description, amount, category, type and
    date; ids, goal links and attachments never leave the app.
    """
    return {
        "summary": {
            key: float(value)
            for key, value in summary.model_dump(by_alias=True).items()
        },
        "transactions": [
            {
                "desc": t.description,
                "val": float(t.amount),
                "cat": t.category.value,
                "type": t.type.value,
                "date": t.date,
            }
            for t in transactions
        ],
    }


class AdvisoryAgent:
    """
    Generates monthly financial advice.

    BOUNDARIES:
    - Only sees aggregated totals and reduced transactions
    - Its answer is displayed as-is and never parsed into data
    """

    def __init__(
        self,
        model: Any = None,
        settings: Optional[GeminiSettings] = None,
    ):
        if model is None:
            settings = settings or get_settings().gemini
            model = _build_model(settings, temperature=settings.temperature)
        self._model = model

    def build_prompt(self, summary: Summary, transactions: list[Transaction]) -> str:
        data = json.dumps(
            build_advice_payload(summary, transactions),
            ensure_ascii=False,
            indent=2,
        )
        return ADVICE_PROMPT.format(data=data)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _generate(self, prompt: str) -> Any:
        return await self._model.generate_content_async(prompt)

    async def get_financial_advice(
        self,
        summary: Summary,
        transactions: list[Transaction],
    ) -> str:
        """
        Ask the model for advice on a period.

        Returns:
            Markdown advice, or "" when the model answered nothing

        Raises:
            AdvisoryError: On service failure
        """
        prompt = self.build_prompt(summary, transactions)
        try:
            response = await self._generate(prompt)
        except Exception as e:
            logger.error("advice_request_failed", error=str(e))
            raise AdvisoryError(f"Advisory request failed: {e}") from e

        text = _response_text(response)
        if not text:
            logger.warning("advice_empty_response")
            return ""

        logger.info(
            "advice_generated",
            transaction_count=len(transactions),
            length=len(text),
        )
        return text


# =============================================================================
# RECEIPT EXTRACTION
# =============================================================================

RECEIPT_PROMPT = """Analise esta imagem de comprovante/recibo financeiro.
Extraia os dados para preencher um formulário.
Retorne APENAS um JSON com os seguintes campos:
- description: Uma descrição curta do gasto (Nome do estabelecimento ou produto principal).
- amount: O valor total (número float).
- date: A data da transação no formato YYYY-MM-DD. Se não encontrar o ano, assuma o ano {year}.
- category: A categoria que melhor se encaixa na lista abaixo. Se não tiver certeza, use "Não Categorizado".

Lista de Categorias Permitidas:
{categories}
"""


def decode_payload(payload: Union[bytes, str]) -> bytes:
    """
    Raw bytes of a receipt payload.

    Accepts bytes as-is, or base64 text with or without a
    `data:<mime>;base64,` prefix.
    """
    if isinstance(payload, bytes):
        return payload

    _, _, encoded = payload.rpartition(",")
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ReceiptExtractionError(f"Receipt payload is not valid base64: {e}") from e


def mime_type_from_data_url(payload: str) -> Optional[str]:
    """`data:image/png;base64,...` -> `image/png`."""
    if not payload.startswith("data:") or ";" not in payload:
        return None
    return payload[len("data:"):payload.index(";")] or None


def _parse_amount(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip().replace("R$", "").strip()
    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount < 0 or amount > MAX_AMOUNT:
        return None
    return amount.quantize(CENT)


def _parse_date(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    try:
        parse_iso_date(value.strip())
    except ValueError:
        return None
    return value.strip()


def parse_receipt_data(data: dict) -> ReceiptExtraction:
    """Turn a loosely typed model answer into a ReceiptExtraction."""
    description = data.get("description")
    description = description.strip() if isinstance(description, str) else ""
    raw_category = data.get("category")
    raw_category = raw_category.strip() if isinstance(raw_category, str) else None

    return ReceiptExtraction(
        description=description or None,
        amount=_parse_amount(data.get("amount")),
        date=_parse_date(data.get("date")),
        category=match_category(raw_category),
        raw_category=raw_category,
    )


class ReceiptExtractionAgent:
    """
    Reads form values off a receipt image or PDF.

    CRITICAL: Output is a proposal. Missing or unreadable fields stay
    empty; nothing is guessed on the model's behalf.
    """

    def __init__(
        self,
        model: Any = None,
        settings: Optional[GeminiSettings] = None,
    ):
        if model is None:
            settings = settings or get_settings().gemini
            model = _build_model(
                settings,
                temperature=0.1,  # Low temperature for consistency
                response_mime_type="application/json",
            )
        self._model = model

    def build_prompt(self, year: Optional[int] = None) -> str:
        return RECEIPT_PROMPT.format(
            year=year or datetime.now().year,
            categories=", ".join(category.value for category in TransactionCategory),
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _generate(self, contents: list) -> Any:
        return await self._model.generate_content_async(contents)

    async def extract(
        self,
        payload: Union[bytes, str],
        mime_type: Optional[str] = None,
    ) -> Optional[ReceiptExtraction]:
        """
        Extract proposed transaction fields from a receipt.

        Args:
            payload: Raw bytes, or base64 text (optionally a data URL)
            mime_type: Declared type; read from the data URL when omitted

        Returns:
            The extraction, or None when nothing usable came back

        Raises:
            ReceiptExtractionError: On an undecodable payload or service failure
        """
        if mime_type is None and isinstance(payload, str):
            mime_type = mime_type_from_data_url(payload)
        mime_type = mime_type or "image/png"

        contents = [
            {"mime_type": mime_type, "data": decode_payload(payload)},
            self.build_prompt(),
        ]

        try:
            response = await self._generate(contents)
        except Exception as e:
            logger.error("receipt_request_failed", mime_type=mime_type, error=str(e))
            raise ReceiptExtractionError(f"Receipt extraction failed: {e}") from e

        data = _extract_json_object(_response_text(response))
        if data is None:
            logger.warning("receipt_unparseable_response", mime_type=mime_type)
            return None

        extraction = parse_receipt_data(data)
        if extraction.is_empty:
            logger.info("receipt_nothing_extracted", mime_type=mime_type)
            return None

        logger.info(
            "receipt_extracted",
            mime_type=mime_type,
            has_amount=extraction.amount is not None,
            has_date=extraction.date is not None,
            category_matched=extraction.category is not None,
        )
        return extraction
