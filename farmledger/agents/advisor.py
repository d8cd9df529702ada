"""
Farm Advisor

DESIGN DECISION: The advisor is a read-only assistant. It receives a
compact text summary of recent transactions and answers in Vietnamese,
the language the farm's staff work in. It never writes to the ledger.

The summary is capped (50 transactions by default) to keep prompts small.
Any model error is turned into a fixed message instead of an exception.
"""

from typing import Optional

import google.generativeai as genai

from farmledger.audit.logger import get_logger
from farmledger.config import GeminiSettings, get_settings
from farmledger.models.ledger import Transaction


NO_ANSWER_MESSAGE = "Không thể phân tích dữ liệu lúc này."
CONNECTION_ERROR_MESSAGE = "Lỗi khi kết nối với trợ lý AI. Vui lòng kiểm tra API Key."

DEFAULT_QUESTION = (
    "Hãy phân tích tình hình tài chính của nông trại. Đưa ra nhận xét về lợi "
    "nhuận, các khoản chi lớn nhất cần tối ưu, và dự báo ngắn gọn."
)


def format_transaction_line(tx: Transaction, currency: str = "VND") -> str:
    """One transaction as a prompt line."""
    return f"{tx.date}: {tx.type.value} - {tx.category} - {tx.amount:,.0f} {currency} ({tx.note})"


def build_prompt(
    transactions: list[Transaction],
    question: Optional[str] = None,
    limit: int = 50,
    currency: str = "VND",
) -> str:
    """Build the advisor prompt from the most recent transactions."""
    summary = "\n".join(
        format_transaction_line(tx, currency) for tx in transactions[:limit]
    )
    ask = f'Người dùng hỏi: "{question}"' if question else DEFAULT_QUESTION

    return f"""Bạn là một chuyên gia quản lý nông trại gà. Dưới đây là dữ liệu giao dịch gần đây của nông trại:
---
{summary}
---

{ask}

Trả lời bằng tiếng Việt, ngắn gọn, súc tích, chuyên nghiệp. Định dạng Markdown."""


class FarmAdvisor:
    """Gemini-backed analysis of the farm's finances."""

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model=None,
        transaction_limit: Optional[int] = None,
    ):
        app_settings = get_settings().app
        self._currency = app_settings.currency
        self._limit = transaction_limit or app_settings.advisor_max_transactions
        self._logger = get_logger(__name__)

        if model is not None:
            self._model = model
        else:
            self._settings = settings or get_settings().gemini
            self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    async def analyze(
        self,
        transactions: list[Transaction],
        question: Optional[str] = None,
    ) -> str:
        """
        Analyse the given transactions, optionally answering a question.

        Transactions are expected newest first, as the ledger returns them.
        """
        prompt = build_prompt(
            transactions,
            question=question,
            limit=self._limit,
            currency=self._currency,
        )
        try:
            response = await self._model.generate_content_async(prompt)
            text = (response.text or "").strip()
        except Exception as e:
            self._logger.error("advisor_failed", error=str(e))
            return CONNECTION_ERROR_MESSAGE

        return text or NO_ANSWER_MESSAGE
