import requests
from typing import Dict, List, Sequence
from warehouse import config
from warehouse.utils.logger import get_logger

logger = get_logger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

SYSTEM_INSTRUCTION = (
    "შენ ხარ საწყობის მართვის AI ასისტენტი. ეხმარები მომხმარებელს საწყობის "
    "მენეჯმენტში, პროდუქციის აღრიცხვაში, გაყიდვებსა და შესყიდვებში. "
    "პასუხი გაეცი ქართულად. იყავი მოკლე და ზუსტი."
)
EMPTY_REPLY = "პასუხი ვერ მოიძებნა (Empty Response)"


class AssistantNotConfigured(RuntimeError):
    """GEMINI_API_KEY が未設定"""


class AssistantError(RuntimeError):
    def __init__(self, status_code: int, message: str, details: str = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


def build_contents(messages: Sequence) -> List[Dict]:
    """チャット履歴を Gemini の contents 形式に変換（assistant → model）"""
    return [
        {
            "role": "model" if m.role == "assistant" else "user",
            "parts": [{"text": m.content}],
        }
        for m in messages
    ]


def ask_assistant(messages: Sequence) -> str:
    """会話履歴を送信してアシスタントの返答テキストを返す"""
    if not config.GEMINI_API_KEY:
        raise AssistantNotConfigured("GEMINI_API_KEY is not configured")

    contents = build_contents(messages)
    logger.info("calling Gemini for %d messages", len(contents))

    try:
        response = requests.post(
            GEMINI_URL.format(model=config.GEMINI_MODEL),
            params={"key": config.GEMINI_API_KEY},
            json={
                "contents": contents,
                "systemInstruction": {"parts": [{"text": SYSTEM_INSTRUCTION}]},
            },
            timeout=config.GEMINI_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.error("Gemini request failed: %s", e)
        raise AssistantError(502, "Gemini API unreachable", str(e)) from e

    if not response.ok:
        logger.error("Gemini API error (%s): %s", response.status_code, response.text[:500])
        raise AssistantError(response.status_code, "Gemini API Error", response.text)

    try:
        data = response.json()
    except ValueError as e:
        logger.error("Gemini API returned invalid JSON: %s", response.text[:500])
        raise AssistantError(502, "Gemini API returned invalid JSON", response.text) from e
    if not isinstance(data, dict):
        raise AssistantError(502, "Gemini API returned an unexpected payload", response.text)

    block_reason = (data.get("promptFeedback") or {}).get("blockReason")
    if block_reason:
        raise AssistantError(400, f"Content blocked: {block_reason}")

    try:
        return data["candidates"][0]["content"]["parts"][0]["text"] or EMPTY_REPLY
    except (KeyError, IndexError, TypeError):
        return EMPTY_REPLY
