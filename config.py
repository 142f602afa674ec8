"""
Configuration module for Bedrock Remote.
Handles environment variables, model specifications, and application settings.
"""

import os
import logging
from dataclasses import dataclass
from typing import List, Dict, Any, Optional
from dotenv import load_dotenv, set_key

logger = logging.getLogger(__name__)

# .env.local holds settings written back by the /api/config endpoint and
# takes precedence over .env
ENV_LOCAL_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), ".env.local")

if os.path.exists(ENV_LOCAL_PATH):
    load_dotenv(ENV_LOCAL_PATH)
load_dotenv()


@dataclass
class AWSConfig:
    """AWS-specific configuration"""
    region: str = os.getenv("AWS_REGION", "us-east-1")
    access_key_id: str = os.getenv("AWS_ACCESS_KEY_ID", "")
    secret_access_key: str = os.getenv("AWS_SECRET_ACCESS_KEY", "")
    session_token: str = os.getenv("AWS_SESSION_TOKEN", "")
    profile_name: str = os.getenv("AWS_PROFILE", "")

    def has_explicit_credentials(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)

    def has_session_token(self) -> bool:
        return bool(self.session_token)

    def has_profile(self) -> bool:
        return bool(self.profile_name)


@dataclass
class ModelConfig:
    """Model-specific configuration"""
    model_id: str = os.getenv("BEDROCK_MODEL_ID", "us.anthropic.claude-sonnet-4-5-20250929-v1:0")
    # Target for requests naming a model family Bedrock does not serve
    fast_model: str = os.getenv("FAST_MODEL", "us.anthropic.claude-haiku-4-5-20251001-v1:0")
    # Target for attachments sent to a text-only model
    vision_model: str = os.getenv("VISION_MODEL", "us.anthropic.claude-sonnet-4-5-20250929-v1:0")
    max_tokens: int = int(os.getenv("MAX_TOKENS", "8000"))
    temperature: Optional[float] = float(os.getenv("TEMPERATURE", "1")) if os.getenv("TEMPERATURE") else None


@dataclass
class AppConfig:
    """Application-specific configuration"""
    title: str = "Bedrock Remote"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8787"))
    auth_token: str = os.getenv("AG_CONTROL_TOKEN", "")
    workspace_path: str = os.getenv("WORKSPACE_PATH", "")
    data_dir: str = os.getenv("DATA_DIR", os.path.join(os.path.expanduser("~"), ".bedrock-remote"))
    # Project list used when workspace_path is unset or missing
    projects_file: str = os.getenv("PROJECTS_FILE", os.path.join(os.path.dirname(os.path.abspath(__file__)), "projects.json"))
    max_tool_iterations: int = int(os.getenv("MAX_TOOL_ITERATIONS", "50"))
    # Change ledger depth per project
    ledger_capacity: int = int(os.getenv("LEDGER_CAPACITY", "10"))
    title_max_chars: int = int(os.getenv("TITLE_MAX_CHARS", "40"))
    # Seconds; 0 leaves run_command without a timeout
    command_timeout: int = int(os.getenv("COMMAND_TIMEOUT", "0"))


# ============================================================
# Model Specifications -- Anthropic Claude on Bedrock
# All models support tool_use which is required for the agent loop.
# ============================================================
AVAILABLE_MODELS: List[Dict[str, Any]] = [
    {
        "id": "us.anthropic.claude-opus-4-5-20251101-v1:0",
        "base_id": "anthropic.claude-opus-4-5-20251101-v1:0",
        "name": "Claude Opus 4.5",
        "description": "Flagship model, 200K ctx, 64K output",
        "context_window": 200000,
        "max_output_tokens": 64000,
        "requires_profile": True,
        "supports_vision": True,
    },
    {
        "id": "us.anthropic.claude-sonnet-4-5-20250929-v1:0",
        "base_id": "anthropic.claude-sonnet-4-5-20250929-v1:0",
        "name": "Claude Sonnet 4.5",
        "description": "Best for coding and complex agents, 200K ctx, 64K output",
        "context_window": 200000,
        "max_output_tokens": 64000,
        "requires_profile": True,
        "supports_vision": True,
    },
    {
        "id": "us.anthropic.claude-haiku-4-5-20251001-v1:0",
        "base_id": "anthropic.claude-haiku-4-5-20251001-v1:0",
        "name": "Claude Haiku 4.5",
        "description": "Fastest with near-frontier intelligence, 200K ctx, 64K output",
        "context_window": 200000,
        "max_output_tokens": 64000,
        "requires_profile": True,
        "supports_vision": True,
    },
    {
        "id": "us.anthropic.claude-sonnet-4-20250514-v1:0",
        "base_id": "anthropic.claude-sonnet-4-20250514-v1:0",
        "name": "Claude Sonnet 4",
        "description": "Balanced performance, 200K ctx, 64K output",
        "context_window": 200000,
        "max_output_tokens": 64000,
        "requires_profile": True,
        "supports_vision": True,
    },
    {
        "id": "anthropic.claude-3-5-haiku-20241022-v1:0",
        "base_id": "anthropic.claude-3-5-haiku-20241022-v1:0",
        "name": "Claude 3.5 Haiku",
        "description": "Fast and efficient, text only, 200K ctx, 8K output",
        "context_window": 200000,
        "max_output_tokens": 8192,
        "requires_profile": False,
        "supports_vision": False,
    },
]

# Model families clients may name that Bedrock does not serve here
UNSUPPORTED_MODEL_PREFIXES = ("gpt", "o1", "o3", "o4", "gemini", "claude", "llama", "mistral")


# Create global config instances
aws_config = AWSConfig()
model_config = ModelConfig()
app_config = AppConfig()


def get_model_by_id(model_id: str) -> Optional[Dict[str, Any]]:
    """Get model configuration by ID"""
    for model in AVAILABLE_MODELS:
        if model["id"] == model_id or model.get("base_id") == model_id:
            return model
    return None


def get_model_name(model_id: str) -> str:
    """Get the display name for a model ID"""
    model = get_model_by_id(model_id)
    return model["name"] if model else model_id


def get_model_config(model_id: str) -> Dict[str, Any]:
    """Get the full configuration for a model. Unknown IDs get a permissive fallback."""
    model = get_model_by_id(model_id)
    if model:
        return model
    return {
        "id": model_id,
        "base_id": model_id,
        "name": model_id,
        "context_window": 200000,
        "max_output_tokens": 8192,
        "requires_profile": False,
        "supports_vision": True,
    }


def get_max_output_tokens(model_id: str) -> int:
    return get_model_config(model_id).get("max_output_tokens", 4096)


def requires_inference_profile(model_id: str) -> bool:
    return get_model_config(model_id).get("requires_profile", False)


def supports_vision(model_id: str) -> bool:
    return get_model_config(model_id).get("supports_vision", False)


def is_unsupported_family(model_id: str) -> bool:
    """True for cosmetic model names from other vendors (e.g. 'gpt-4o', 'gemini-3-flash').

    Bedrock ids look like 'anthropic.claude-...' or 'us.anthropic.claude-...',
    so a bare 'claude-...' name is also a client-side alias.
    """
    mid = (model_id or "").strip().lower()
    return mid.startswith(UNSUPPORTED_MODEL_PREFIXES)


def resolve_model_id(requested: Optional[str], has_attachment: bool = False) -> str:
    """Map a client-requested model name to the Bedrock model that will serve it."""
    model_id = (requested or "").strip() or model_config.model_id
    if is_unsupported_family(model_id):
        logger.info(f"Model {model_id!r} is not served here; using {model_config.fast_model}")
        model_id = model_config.fast_model
    if has_attachment and not supports_vision(model_id):
        logger.info(f"Model {model_id!r} has no image input; using {model_config.vision_model}")
        model_id = model_config.vision_model
    return model_id


def get_credentials_info() -> str:
    if aws_config.has_profile():
        return f"Using AWS profile: {aws_config.profile_name}"
    elif aws_config.has_explicit_credentials():
        if aws_config.has_session_token():
            return "Using temporary credentials (with session token)"
        return "Using explicit credentials"
    return "Using default AWS credential chain"


# Maps /api/config payload keys to (env var, config object, attribute)
_SETTINGS_KEYS = {
    "authToken": ("AG_CONTROL_TOKEN", app_config, "auth_token"),
    "workspacePath": ("WORKSPACE_PATH", app_config, "workspace_path"),
    "awsRegion": ("AWS_REGION", aws_config, "region"),
    "awsAccessKeyId": ("AWS_ACCESS_KEY_ID", aws_config, "access_key_id"),
    "awsSecretAccessKey": ("AWS_SECRET_ACCESS_KEY", aws_config, "secret_access_key"),
    "modelId": ("BEDROCK_MODEL_ID", model_config, "model_id"),
}


def get_settings() -> Dict[str, str]:
    """Current values for the keys update_settings accepts."""
    return {key: getattr(obj, attr) for key, (_, obj, attr) in _SETTINGS_KEYS.items()}


def update_settings(values: Dict[str, Any], env_path: str = ENV_LOCAL_PATH) -> List[str]:
    """Persist non-empty settings to env_path and apply them to the running process.

    Returns the payload keys that changed.
    """
    changed: List[str] = []
    for key, raw in values.items():
        if key not in _SETTINGS_KEYS or raw is None:
            continue
        value = str(raw).strip()
        if not value:
            continue
        env_name, obj, attr = _SETTINGS_KEYS[key]
        if not os.path.exists(env_path):
            open(env_path, "a", encoding="utf-8").close()
        set_key(env_path, env_name, value, quote_mode="never")
        os.environ[env_name] = value
        setattr(obj, attr, value)
        changed.append(key)
    if changed:
        logger.info(f"Configuration updated and saved to {env_path}: {', '.join(changed)}")
    return changed
