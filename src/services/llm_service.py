"""
LLM Service for interfacing with Google Gemini

Handles message conversion, tool declarations, API calls with a bounded
timeout, and JSON response parsing
"""

import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional

from google import genai
from google.genai import types
from pydantic import BaseModel, Field

from src.config.settings import get_settings
from src.models.conversation import Message

logger = logging.getLogger(__name__)


class ToolCall(BaseModel):
    """Function call requested by the model"""

    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class LLMReply(BaseModel):
    """Text and tool calls returned by one model call"""

    text: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)


class LLMService:
    """Service for interacting with LLM providers"""

    def __init__(
        self,
        client: Optional[genai.Client] = None,
        default_model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        """
        Initialize LLM service

        Args:
            client: Optional preconfigured genai client. Built from settings if not provided
            default_model: Model used when a call does not name one
            timeout_seconds: Upper bound for a single model call
        """
        settings = get_settings()

        self.client = client if client is not None else genai.Client(api_key=settings.google_api_key)
        self.default_model = default_model or settings.google_model
        self.timeout_seconds = timeout_seconds or settings.llm_timeout_seconds
        self.embedding_model = settings.embedding_model

    @staticmethod
    def to_contents(messages: List[Message]) -> List[types.Content]:
        """
        Convert a message log (without system messages) to genai contents

        Consecutive messages mapping to the same role are merged into one
        content so that parallel function calls and their responses stay paired.
        """
        contents: List[types.Content] = []

        for message in messages:
            if message.role == "system":
                continue

            if message.role == "assistant":
                role = "model"
                if message.tool_call:
                    part = types.Part.from_function_call(
                        name=message.tool_call.name,
                        args=message.tool_call.arguments,
                    )
                else:
                    part = types.Part.from_text(text=message.content)
            elif message.role == "tool":
                role = "user"
                try:
                    payload = json.loads(message.content) if message.content else {}
                except json.JSONDecodeError:
                    payload = {"result": message.content}
                if not isinstance(payload, dict):
                    payload = {"result": payload}
                part = types.Part.from_function_response(name=message.name or "tool", response=payload)
            else:
                role = "user"
                part = types.Part.from_text(text=message.content)

            if contents and contents[-1].role == role:
                contents[-1].parts.append(part)
            else:
                contents.append(types.Content(role=role, parts=[part]))

        return contents

    async def _generate(self, model: str, contents: Any, config: types.GenerateContentConfig):
        """Issue one generate_content call bounded by the configured timeout"""
        return await asyncio.wait_for(
            self.client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=config,
            ),
            timeout=self.timeout_seconds,
        )

    async def chat(
        self,
        system_prompt: str,
        messages: List[Message],
        model: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 2000,
        tools: Optional[List[Any]] = None,
    ) -> LLMReply:
        """
        Run one chat turn over an accumulated message log

        Args:
            system_prompt: System instruction for this call
            messages: Conversation log (system messages are ignored)
            model: Model to use
            temperature: Generation temperature
            max_tokens: Maximum tokens to generate
            tools: Optional AgentTool list exposed as function declarations

        Returns:
            LLMReply with the text and any requested tool calls

        Raises:
            asyncio.TimeoutError: If the call exceeds the timeout
            Exception: If the API call fails
        """
        model_name = model or self.default_model

        config_kwargs: Dict[str, Any] = {
            "system_instruction": system_prompt,
            "temperature": temperature,
            "max_output_tokens": max_tokens,
        }
        if tools:
            config_kwargs["tools"] = [
                types.Tool(function_declarations=[tool.to_declaration() for tool in tools])
            ]
            config_kwargs["automatic_function_calling"] = types.AutomaticFunctionCallingConfig(disable=True)

        logger.info(
            f"Chat call with model={model_name}, temp={temperature}, "
            f"messages={len(messages)}, tools={len(tools or [])}"
        )

        response = await self._generate(
            model_name,
            self.to_contents(messages),
            types.GenerateContentConfig(**config_kwargs),
        )

        tool_calls = [
            ToolCall(name=call.name, arguments=dict(call.args or {}))
            for call in (response.function_calls or [])
        ]
        text = (response.text or "").strip() if not tool_calls else ""

        self._log_usage(response)

        if not text and not tool_calls:
            raise ValueError("LLM returned empty response")

        return LLMReply(text=text, tool_calls=tool_calls)

    async def generate_text(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        model_name: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 2048
    ) -> str:
        """
        Generate text using LLM (for general purpose generation)

        Args:
            prompt: The prompt to send to the LLM
            system_prompt: Optional system instruction
            model_name: Model to use
            temperature: Generation temperature
            max_tokens: Maximum tokens to generate

        Returns:
            Generated text
        """
        try:
            model_name = model_name or self.default_model
            logger.info(f"Generating text with model={model_name}, temp={temperature}, max_tokens={max_tokens}")
            logger.debug(f"Prompt (first 500 chars): {prompt[:500]}")

            response = await self._generate(
                model_name,
                prompt,
                types.GenerateContentConfig(
                    system_instruction=system_prompt,
                    temperature=temperature,
                    max_output_tokens=max_tokens,
                ),
            )

            # Check finish_reason for debugging
            if getattr(response, "candidates", None):
                finish_reason = getattr(response.candidates[0], "finish_reason", None)
                if finish_reason and finish_reason != "STOP":
                    logger.warning(f"LLM finished with reason: {finish_reason} (not STOP)")

            if not response.text:
                raise ValueError("LLM returned empty response")

            result = response.text.strip()
            logger.info(f"Generated {len(result)} characters")
            self._log_usage(response)

            return result

        except Exception as e:
            logger.error(f"Text generation failed: {e}", exc_info=True)
            raise

    async def generate_json(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        model_name: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 1500
    ) -> Dict[str, Any]:
        """
        Generate a JSON object using LLM

        Raises:
            ValueError: If LLM returns invalid JSON
            Exception: If API call fails
        """
        json_instruction = "\n\nIMPORTANT: Return ONLY the JSON object with no additional text, explanations, or markdown formatting."

        response_text = await self.generate_text(
            prompt=prompt + json_instruction,
            system_prompt=system_prompt,
            model_name=model_name,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        parsed = parse_json_response(response_text)
        logger.info(f"Parsed JSON response with keys: {list(parsed.keys())}")
        return parsed

    async def embed(self, text: str) -> List[float]:
        """
        Generate an embedding vector for text

        Args:
            text: Query text to embed

        Returns:
            Embedding vector
        """
        result = await asyncio.wait_for(
            self.client.aio.models.embed_content(
                model=self.embedding_model,
                contents=text,
            ),
            timeout=self.timeout_seconds,
        )
        return list(result.embeddings[0].values)

    @staticmethod
    def _log_usage(response: Any) -> None:
        usage = getattr(response, "usage_metadata", None)
        if usage is not None:
            token_usage = {
                "prompt_tokens": getattr(usage, "prompt_token_count", None),
                "completion_tokens": getattr(usage, "candidates_token_count", None),
                "total_tokens": getattr(usage, "total_token_count", None)
            }
            logger.info(f"Token usage: {token_usage}")


def parse_json_response(response_text: str) -> Dict[str, Any]:
    """
    Parse a JSON object out of model output

    Strips markdown fences and applies repair strategies for truncated or
    loosely formatted JSON.

    Raises:
        ValueError: If no strategy yields a JSON object
    """
    text = response_text.strip()

    # Remove markdown code blocks if present
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    text = text.strip()

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(f"JSON parsing failed: {e}")
        logger.debug(f"Problematic JSON (first 500 chars): {text[:500]}")
        parsed = _repair_json(text, e)

    if not isinstance(parsed, dict):
        raise ValueError("LLM returned JSON that is not an object")

    return parsed


def _repair_json(text: str, original_error: json.JSONDecodeError) -> Any:
    repaired = text

    # Strategy 1: Extract JSON object if embedded in text
    json_match = re.search(r'\{.*\}', repaired, re.DOTALL)
    if json_match:
        repaired = json_match.group()
    elif '{' in repaired:
        # Strategy 2: Truncated response; cut back to the last complete pair
        repaired = repaired[repaired.index('{'):]
        last_valid_comma = -1
        in_string = False
        for i, char in enumerate(repaired):
            if char == '"' and (i == 0 or repaired[i - 1] != '\\'):
                in_string = not in_string
            elif char == ',' and not in_string:
                last_valid_comma = i

        if last_valid_comma > 0:
            logger.info(f"Truncating to last valid comma at position {last_valid_comma}")
            repaired = repaired[:last_valid_comma].rstrip()

        missing_braces = repaired.count('{') - repaired.count('}')
        if missing_braces > 0:
            logger.info(f"Adding {missing_braces} missing closing brace(s)...")
            repaired += '}' * missing_braces

    try:
        return json.loads(repaired)
    except json.JSONDecodeError:
        pass

    # Strategy 3: Remove trailing commas
    repaired = re.sub(r',(\s*[}\]])', r'\1', repaired)
    try:
        return json.loads(repaired)
    except json.JSONDecodeError:
        pass

    # Strategy 4: Replace single quotes with double quotes
    try:
        return json.loads(repaired.replace("'", '"'))
    except json.JSONDecodeError:
        logger.error("All repair strategies failed")
        raise ValueError(f"LLM returned invalid JSON: {original_error}")
