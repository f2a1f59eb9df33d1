import logging

from ..errors import InputValidationError, ThreatDeskError, UpstreamAuthError, UpstreamUnavailable
from .http_client import fetch_json
from .results import ChatReply, ServiceError

logger = logging.getLogger(__name__)

SERVICE = "OpenAI"
COMPLETIONS_URL = "https://api.openai.com/v1/chat/completions"

SYSTEM_PROMPT = """You are a cybersecurity AI assistant specializing in:
- SIEM query generation (Splunk, Sentinel, Elasticsearch, QRadar)
- Incident response procedures and playbooks
- Security configuration and hardening
- Threat intelligence analysis
- Security tool automation and scripting
- Cloud security best practices (AWS, Azure, GCP)
- Vulnerability management and assessment
- Network security monitoring and analysis
- Malware analysis and reverse engineering
- Digital forensics and incident investigation
- Compliance frameworks (SOC2, ISO 27001, NIST, PCI-DSS)
- Zero Trust architecture implementation

Provide practical, actionable responses with code examples when appropriate.
Format code blocks with proper syntax highlighting using triple backticks and language specification.
Keep responses focused on cybersecurity topics and provide step-by-step guidance when possible.
Include relevant security best practices and explain potential risks or considerations."""


def build_payload(message: str, model: str) -> dict:
    return {
        "model": model,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": message},
        ],
        "max_tokens": 3000,
        "temperature": 0.7,
        "presence_penalty": 0.1,
        "frequency_penalty": 0.1,
        "stream": False,
    }


def ask_assistant(message: str, api_key: str, model: str, timeout: int = 30):
    """Send one chat message to the assistant. Returns ChatReply or ServiceError."""
    text = (message or "").strip()
    try:
        if not text:
            raise InputValidationError("Message is required")
        if not api_key:
            raise UpstreamAuthError("AI assistant not configured. Set OPENAI_API_KEY on the server.")

        _, data = fetch_json(
            COMPLETIONS_URL,
            method="POST",
            headers={"Authorization": f"Bearer {api_key}"},
            json_body=build_payload(text, model),
            timeout=timeout,
            service=SERVICE,
        )
        choices = (data or {}).get("choices") or []
        content = ((choices[0] if choices else {}).get("message") or {}).get("content")
        if not content:
            logger.warning("Unexpected OpenAI response format")
            raise UpstreamUnavailable("Invalid response from AI service")
    except ThreatDeskError as exc:
        return ServiceError.from_exception(exc, SERVICE)

    usage = data.get("usage")
    if usage:
        logger.info("OpenAI usage: prompt=%s completion=%s total=%s",
                    usage.get("prompt_tokens"), usage.get("completion_tokens"), usage.get("total_tokens"))
    return ChatReply(response=content, model=data.get("model") or model, usage=usage)
