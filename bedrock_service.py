"""
Amazon Bedrock service module.
Handles all interactions with the Bedrock runtime API for the agent loop.
"""

import boto3
import json
import logging
from typing import List, Dict, Optional, Any
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError
from dataclasses import dataclass, field
from config import (
    aws_config,
    model_config,
    get_model_config,
    get_max_output_tokens,
    requires_inference_profile,
)


logger = logging.getLogger(__name__)

# Error codes that mean the credential itself is refused rather than the request
ACCESS_RESTRICTED_CODES = frozenset({
    "AccessDeniedException",
    "UnrecognizedClientException",
    "API_KEY_HTTP_REFERRER_BLOCKED",
})


class BedrockError(Exception):
    """Custom exception for Bedrock service errors"""

    def __init__(self, message: str, code: str = ""):
        super().__init__(message)
        self.code = code

    @property
    def access_restricted(self) -> bool:
        return self.code in ACCESS_RESTRICTED_CODES or any(
            c in str(self) for c in ACCESS_RESTRICTED_CODES
        )


@dataclass
class GenerationConfig:
    """Configuration for a single generation request"""
    max_tokens: int = 8000
    temperature: Optional[float] = None
    stop_sequences: Optional[List[str]] = None
    throughput_mode: str = "cross-region"


@dataclass
class ToolUseBlock:
    """Represents a tool_use block from the response"""
    id: str = ""
    name: str = ""
    input: Dict = field(default_factory=dict)


@dataclass
class GenerationResult:
    """Result from a generation request"""
    content: str = ""
    tool_uses: List[ToolUseBlock] = field(default_factory=list)
    content_blocks: List[Dict] = field(default_factory=list)
    stop_reason: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0


class BedrockService:
    """
    Service class for Amazon Bedrock interactions.
    One instance is shared by every session; the model is chosen per call.
    """

    def __init__(
        self,
        model_id: Optional[str] = None,
        region: Optional[str] = None
    ):
        self.model_id = model_id or model_config.model_id
        self.region = region or aws_config.region

        self._session = self._create_session()
        try:
            self.client = self._session.client("bedrock-runtime")
        except BotoCoreError as e:
            raise BedrockError(f"Failed to initialize Bedrock client: {e}")
        self._configured = self._resolve_credentials()
        logger.info(f"BedrockService initialized with model: {self.model_id}")
        if not self._configured:
            logger.warning("No AWS credentials found; requests will be rejected until settings change")

    def _create_session(self) -> boto3.Session:
        session_kwargs: Dict[str, Any] = {"region_name": self.region}

        if aws_config.has_profile():
            session_kwargs["profile_name"] = aws_config.profile_name
        elif aws_config.has_explicit_credentials():
            session_kwargs["aws_access_key_id"] = aws_config.access_key_id
            session_kwargs["aws_secret_access_key"] = aws_config.secret_access_key
            if aws_config.has_session_token():
                session_kwargs["aws_session_token"] = aws_config.session_token

        try:
            return boto3.Session(**session_kwargs)
        except BotoCoreError as e:
            raise BedrockError(f"Failed to initialize Bedrock client: {e}")

    def _resolve_credentials(self) -> bool:
        # Walks the whole provider chain (including instance metadata), so run it once
        try:
            return self._session.get_credentials() is not None
        except BotoCoreError:
            return False

    def is_configured(self) -> bool:
        """True when boto3 found some credential when this service was built."""
        return self._configured

    def _get_model_identifier(self, model_id: str, config: GenerationConfig) -> str:
        """Get the appropriate model identifier based on throughput mode"""
        if config.throughput_mode == "cross-region":
            if model_id.startswith(("us.", "eu.", "ap.")):
                return model_id
            elif requires_inference_profile(model_id):
                region_prefix = "eu" if self.region.startswith("eu-") else "us"
                return f"{region_prefix}.{model_id}"

        return get_model_config(model_id).get("base_id", model_id)

    def _format_request_body(
        self,
        messages: List[Dict],
        system_prompt: Optional[str],
        model_id: str,
        config: GenerationConfig,
        tools: Optional[List[Dict]] = None
    ) -> Dict[str, Any]:
        """Format request body for Anthropic Claude models with tool_use."""
        formatted_messages = []
        for msg in messages:
            content = msg.get("content")
            if isinstance(content, str) and not content.strip():
                content = "(no content)"
            elif isinstance(content, list) and not content:
                content = [{"type": "text", "text": "(no content)"}]
            formatted_messages.append({"role": msg["role"], "content": content})

        body: Dict[str, Any] = {
            "anthropic_version": "bedrock-2023-05-31",
            "max_tokens": min(config.max_tokens, get_max_output_tokens(model_id)),
            "messages": formatted_messages,
        }
        if config.temperature is not None:
            body["temperature"] = config.temperature
        if config.stop_sequences:
            body["stop_sequences"] = config.stop_sequences
        if system_prompt:
            body["system"] = system_prompt
        if tools:
            body["tools"] = tools
        return body

    def _parse_response(self, response_body: Dict) -> GenerationResult:
        """Parse the Anthropic response body, extracting text and tool_use blocks"""
        result = GenerationResult()

        try:
            for block in response_body.get("content", []):
                block_type = block.get("type", "")
                if block_type == "text":
                    result.content += block.get("text", "")
                    result.content_blocks.append(block)
                elif block_type == "tool_use":
                    result.tool_uses.append(ToolUseBlock(
                        id=block.get("id", ""),
                        name=block.get("name", ""),
                        input=block.get("input", {}),
                    ))
                    result.content_blocks.append(block)

            usage = response_body.get("usage", {})
            result.input_tokens = usage.get("input_tokens", 0)
            result.output_tokens = usage.get("output_tokens", 0)
            result.stop_reason = response_body.get("stop_reason")

        except (KeyError, IndexError, AttributeError) as e:
            logger.error(f"Error parsing response: {e}")
            raise BedrockError(f"Failed to parse model response: {e}")

        return result

    def generate_response(
        self,
        messages: List[Dict],
        system_prompt: Optional[str] = None,
        model_id: Optional[str] = None,
        config: Optional[GenerationConfig] = None,
        tools: Optional[List[Dict]] = None
    ) -> GenerationResult:
        """
        Generate a response using Amazon Bedrock.
        Returns a GenerationResult with text and any tool_use blocks.
        """
        current_model = model_id or self.model_id
        gen_config = config or GenerationConfig()

        try:
            model_identifier = self._get_model_identifier(current_model, gen_config)
            request_body = self._format_request_body(
                messages, system_prompt, current_model, gen_config, tools=tools
            )

            logger.info(f"Invoking model: {model_identifier}")

            response = self.client.invoke_model(
                modelId=model_identifier,
                body=json.dumps(request_body),
                contentType="application/json",
                accept="application/json"
            )

            response_body = json.loads(response["body"].read())
            return self._parse_response(response_body)

        except NoCredentialsError:
            raise BedrockError("AWS credentials not configured.", code="NoCredentials")
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            error_message = e.response.get('Error', {}).get('Message', str(e))
            logger.error(f"Bedrock API error: {error_code} - {error_message}")

            if error_code in ['ExpiredTokenException', 'InvalidSignatureException']:
                raise BedrockError("AWS credentials expired. Please refresh.", code=error_code)

            raise BedrockError(f"Bedrock API error: {error_message}", code=error_code)
        except BotoCoreError as e:
            logger.error(f"Bedrock transport error: {e}")
            raise BedrockError(f"Bedrock request failed: {e}", code=type(e).__name__)
