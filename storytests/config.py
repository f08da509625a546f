import os
import re
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional, List
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "STORYTESTS_CONFIG"
DEFAULT_CONFIG_FILE = "config.yaml"

# Used when no config file is present; mirrors the shipped config.yaml
DEFAULT_CONFIG_TEMPLATE = """
llm:
  api_base: ${GROQ_API_BASE:https://api.groq.com/openai/v1}
  api_key: ${GROQ_API_KEY:}
  model: ${GROQ_MODEL:llama3-8b-8192}
  structured_temperature: 0.2
  raw_temperature: 0.6
  raw_max_tokens: 20000
  timeout: ${LLM_TIMEOUT:}

jira:
  server_url: ${JIRA_BASE_URL:}
  username: ${JIRA_USER_EMAIL:}
  api_token: ${JIRA_API_TOKEN:}
  search_max_results: 10
  request_timeout: 30

server:
  host: ${HOST:0.0.0.0}
  port: ${PORT:8090}
  api_prefix: /api
  environment: ${ENVIRONMENT:development}
  cors_origins: ${CORS_ORIGINS:http://localhost:5173,http://localhost:3000,http://localhost:8501}

logging:
  level: ${LOG_LEVEL:INFO}
"""


def _blank_to_default(value: Any, default: Any) -> Any:
    # YAML turns "key: " into None after substitution of an empty variable
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    return value


class LLMSettings(BaseModel):
    """Settings for the OpenAI-compatible chat-completion endpoint"""
    api_base: str = "https://api.groq.com/openai/v1"
    api_key: str = ""
    model: str = "llama3-8b-8192"
    structured_temperature: float = 0.2
    raw_temperature: float = 0.6
    raw_max_tokens: int = 20000
    timeout: Optional[float] = None

    @field_validator("api_key", mode="before")
    @classmethod
    def _empty_key(cls, v):
        return _blank_to_default(v, "")

    @field_validator("api_base", "model", mode="before")
    @classmethod
    def _strip(cls, v, info):
        return _blank_to_default(v, cls.model_fields[info.field_name].default)

    @field_validator("timeout", mode="before")
    @classmethod
    def _empty_timeout(cls, v):
        return _blank_to_default(v, None)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


class JiraSettings(BaseModel):
    """Jira Cloud credentials; there are no defaults for the three credentials"""
    server_url: str = ""
    username: str = ""
    api_token: str = ""
    search_max_results: int = Field(10, ge=1, le=100)
    request_timeout: float = 30

    @field_validator("server_url", "username", "api_token", mode="before")
    @classmethod
    def _empty_credential(cls, v):
        return str(_blank_to_default(v, "")).strip()

    @property
    def is_configured(self) -> bool:
        return bool(self.server_url and self.username and self.api_token)


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8090
    api_prefix: str = "/api"
    environment: str = "development"
    cors_origins: List[str] = Field(default_factory=list)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, v):
        v = _blank_to_default(v, [])
        if isinstance(v, str):
            return [o.strip() for o in v.split(',') if o.strip()]
        return v

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


class LoggingSettings(BaseModel):
    level: str = "INFO"


class Config:
    """Configuration manager for the story-to-tests service"""

    def __init__(self, config_path: Optional[str] = None):
        load_dotenv()
        self.config_path = self._resolve_path(config_path)
        self._config = self._load_config()

    @staticmethod
    def _resolve_path(config_path: Optional[str]) -> Optional[str]:
        if config_path:
            if not os.path.exists(config_path):
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return config_path

        env_path = os.getenv(CONFIG_PATH_ENV)
        if env_path:
            if not os.path.exists(env_path):
                raise FileNotFoundError(f"Configuration file not found: {env_path}")
            return env_path

        if Path(DEFAULT_CONFIG_FILE).exists():
            return DEFAULT_CONFIG_FILE
        return None

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file with environment variable substitution"""
        if self.config_path:
            with open(self.config_path, 'r') as file:
                config_content = file.read()
            logger.info(f"Loading configuration from {self.config_path}")
        else:
            config_content = DEFAULT_CONFIG_TEMPLATE
            logger.info("No configuration file found, using built-in defaults")

        config_content = self._substitute_env_vars(config_content)
        return yaml.safe_load(config_content) or {}

    def _substitute_env_vars(self, content: str) -> str:
        """Replace ${VAR_NAME} and ${VAR_NAME:default} with environment variables"""

        def replace_var(match):
            var_expr = match.group(1)
            if ':' in var_expr:
                var_name, default_value = var_expr.split(':', 1)
                return os.getenv(var_name, default_value)
            else:
                return os.getenv(var_expr, '')

        return re.sub(r'\$\{([^}]+)\}', replace_var, content)

    @property
    def llm(self) -> Dict[str, Any]:
        return self._config.get('llm') or {}

    @property
    def jira(self) -> Dict[str, Any]:
        return self._config.get('jira') or {}

    @property
    def server(self) -> Dict[str, Any]:
        return self._config.get('server') or {}

    @property
    def logging(self) -> Dict[str, Any]:
        return self._config.get('logging') or {}

    def get_llm_settings(self) -> LLMSettings:
        return LLMSettings(**self.llm)

    def get_jira_settings(self) -> JiraSettings:
        return JiraSettings(**self.jira)

    def get_server_settings(self) -> ServerSettings:
        return ServerSettings(**{k: v for k, v in self.server.items() if v is not None})

    def get_logging_settings(self) -> LoggingSettings:
        level = _blank_to_default(self.logging.get('level'), "INFO")
        return LoggingSettings(level=str(level).upper())

    def validate(self) -> List[str]:
        """Return warnings for missing optional credentials; nothing here is fatal"""
        warnings = []

        if not self.get_llm_settings().is_configured:
            warnings.append("GROQ_API_KEY not found in environment variables")

        if not self.get_jira_settings().is_configured:
            warnings.append("Jira credentials not configured (JIRA_BASE_URL, JIRA_USER_EMAIL, JIRA_API_TOKEN)")

        for warning in warnings:
            logger.warning(f"Configuration warning: {warning}")

        return warnings
