# utils/ai_client.py
import asyncio
import json
import logging
import re
from typing import Any, Callable, Dict, Optional

import httpx

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class AIClientError(Exception):
    pass


class AIAuthError(AIClientError):
    """Rejected credential. Not retried."""


class AIQuotaError(AIClientError):
    """Rate limit or quota exhausted."""


def _is_gemini(api_url: str) -> bool:
    return "generativelanguage.googleapis.com" in api_url


def _raise_for_status(resp: httpx.Response) -> None:
    if resp.status_code == 200:
        return
    body = resp.text
    if resp.status_code in (401, 403) or "API key not valid" in body:
        raise AIAuthError(f"API key not valid (status {resp.status_code}): {body}")
    if resp.status_code == 429:
        raise AIQuotaError(f"AI provider quota exceeded: {body}")
    raise AIClientError(f"AI provider returned status {resp.status_code}: {body}")


async def _fetch_openai_like(
    prompt: str,
    api_url: str,
    api_key: str,
    model: str,
    response_schema: Optional[Dict[str, Any]] = None,
    timeout: float = 120.0,
) -> str:
    async with httpx.AsyncClient(timeout=timeout) as client:
        # Detect provider based on URL
        if _is_gemini(api_url):
            url = api_url.format(model=model)
            payload = {"contents": [{"parts": [{"text": prompt}]}]}
            if response_schema is not None:
                payload["generationConfig"] = {
                    "responseMimeType": "application/json",
                    "responseSchema": response_schema,
                }
            resp = await client.post(url, params={"key": api_key}, json=payload)
        else:
            headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
            if response_schema is not None:
                prompt = f"{prompt}\n\nReturn only a JSON object matching this schema:\n{json.dumps(response_schema, ensure_ascii=False)}"
            payload = {"model": model, "messages": [{"role": "user", "content": prompt}]}
            if response_schema is not None:
                payload["response_format"] = {"type": "json_object"}
            resp = await client.post(api_url, headers=headers, json=payload)

        _raise_for_status(resp)
        try:
            data = resp.json()
        except ValueError as e:
            raise AIClientError(f"AI provider returned a non-JSON body: {resp.text[:200]}") from e

        # Normalize output for both providers
        try:
            if _is_gemini(api_url):
                return data["candidates"][0]["content"]["parts"][0]["text"]
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AIClientError(f"Unexpected response shape from AI provider: {e}")


def _extract_json_from_text(text: str) -> Optional[Dict[str, Any]]:
    """
    Try to extract a JSON object from a text blob.
    First, attempt to parse the whole string. If that fails, locate the first {...} block.
    """
    text = text.strip()
    # Handle markdown code blocks
    if text.startswith("```json"):
        text = text[7:].rstrip("`").strip()
    elif text.startswith("```"):
        text = text[3:].rstrip("`").strip()

    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    matches = re.search(r"\{.*\}", text, re.DOTALL)
    if matches:
        try:
            parsed = json.loads(matches.group(0))
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass  # Failed to parse the extracted block
    logger.warning("Failed to extract any valid JSON from the AI response.")
    return None


async def call_ai_model(
    prompt: str,
    *,
    api_url: str,
    api_key: str,
    response_schema: Optional[Dict[str, Any]] = None,
    schema_parser: Optional[Callable[[Dict[str, Any]], Any]] = None,
    max_retries: int = 2,
    backoff_base: float = 1.0,
    timeout: float = 120.0,
    model: str = "gemini-2.5-flash",
) -> Any:
    """
    Call the AI provider and return the parsed JSON object, or the result of
    `schema_parser` applied to it.

    Connection failures, bad status codes and unparseable output are retried
    with exponential backoff; a rejected API key is raised immediately.
    """
    if not api_key:
        raise AIAuthError("AI API key is not configured")

    last_exc = None
    for attempt in range(1, max_retries + 2):
        try:
            logger.info("AI call attempt %d (model=%s)", attempt, model)
            raw_text = await _fetch_openai_like(
                prompt, api_url, api_key, model, response_schema=response_schema, timeout=timeout
            )

            logger.debug("AI raw response (truncated): %s", raw_text[:1000])

            parsed = _extract_json_from_text(raw_text)
            if parsed is None:
                raise AIClientError("Failed to extract valid JSON from the AI's response text.")

            if schema_parser:
                try:
                    return schema_parser(parsed)
                except Exception as e:
                    logger.warning("Schema parser rejected AI output: %s", e)
                    raise AIClientError(f"Schema validation failed: {e}")

            return parsed

        except AIAuthError:
            raise
        except (AIClientError, httpx.RequestError) as e:
            logger.warning("AI call failed on attempt %d: %s", attempt, e)
            last_exc = e
            if attempt <= max_retries:
                sleep_time = backoff_base * (2 ** (attempt - 1))
                await asyncio.sleep(sleep_time)
            else:
                break

    if isinstance(last_exc, AIQuotaError):
        raise AIQuotaError(f"AI call failed after retries. Last error: {last_exc}")
    raise AIClientError(f"AI call failed after retries. Last error: {last_exc}")
