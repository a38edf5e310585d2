"""
Configuration management for the storefront RAG pipeline.

Loads config.yaml with validation and environment overrides. Secrets
(Shopify credentials) come from the environment, optionally via a .env file.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional
import yaml
from dotenv import load_dotenv


class ConfigError(Exception):
    """Raised when configuration is invalid."""
    pass


# Environment variable -> dot path in the config tree
ENV_OVERRIDES = {
    'SHOPIFY_STORE_URL': 'shopify.store_domain',
    'SHOPIFY_ADMIN_API_KEY': 'shopify.api_key',
    'SHOPIFY_ADMIN_API_PASSWORD': 'shopify.password',
    'SHOPIFY_API_VERSION': 'shopify.api_version',
    'STORE_URL': 'chat.store_url',
    'SYSTEM_PROMPT': 'chat.system_prompt',
}


class RAGConfig:
    """
    Configuration manager with strict validation.

    Enforces:
    - Required keys present
    - Known chunking strategy
    - Positive chunk budget, non-negative overlap
    """

    REQUIRED_KEYS = ['chunking', 'embedding', 'vector_store']

    SPLIT_STRATEGIES = ('char', 'token-overlap')

    def __init__(self, config_path: Optional[str] = None, env_file: Optional[str] = None):
        """
        Load and validate configuration.

        Args:
            config_path: Path to config.yaml. Defaults to ./configs/config.yaml
            env_file: Optional .env file; the default search is used if None

        Raises:
            ConfigError: If config invalid or file missing
        """
        load_dotenv(env_file)

        if config_path is None:
            config_path = os.getenv("STOREFRONT_RAG_CONFIG", "./configs/config.yaml")

        self.config_path = Path(config_path)

        if not self.config_path.exists():
            raise ConfigError(f"Config file not found: {self.config_path}")

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                self.data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}")

        if not isinstance(self.data, dict):
            raise ConfigError("Config root must be a mapping")

        self._apply_env_overrides()
        self._validate()

    def _apply_env_overrides(self):
        """Copy set environment variables into the config tree."""
        for env_name, path in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if not value:
                continue
            section, key = path.split('.')
            self.data.setdefault(section, {})[key] = value

    def _validate(self):
        """Validate configuration structure and values."""
        for key in self.REQUIRED_KEYS:
            if key not in self.data:
                raise ConfigError(f"Missing required config key: {key}")

        chunking = self.data['chunking'] or {}
        strategy = chunking.get('split_strategy', 'token-overlap')
        if strategy not in self.SPLIT_STRATEGIES:
            raise ConfigError(f"Invalid split strategy: {strategy}")

        max_size = chunking.get('max_size')
        if max_size is not None and (not isinstance(max_size, int) or max_size <= 0):
            raise ConfigError(f"chunking.max_size must be a positive integer: {max_size}")

        overlap = chunking.get('overlap', 0)
        if not isinstance(overlap, int) or overlap < 0:
            raise ConfigError(f"chunking.overlap must be a non-negative integer: {overlap}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get config value by dot-notation path.

        Args:
            key: Key path (e.g., 'chunking.max_size', 'shopify.api_version')
            default: Default value if not found

        Returns:
            Configuration value
        """
        keys = key.split('.')
        value = self.data

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value

    def get_chunking_config(self) -> Dict[str, Any]:
        """Get chunking configuration section."""
        return self.data.get('chunking') or {}

    def get_embedding_config(self) -> Dict[str, Any]:
        """Get embedding configuration section."""
        return self.data.get('embedding') or {}

    def get_vector_store_config(self) -> Dict[str, Any]:
        """Get vector store configuration section."""
        return self.data.get('vector_store') or {}

    def get_llm_config(self) -> Dict[str, Any]:
        """Get LLM configuration section."""
        return self.data.get('llm') or {}

    def get_shopify_config(self) -> Dict[str, Any]:
        """Get Shopify admin API configuration section."""
        return self.data.get('shopify') or {}

    def get_chat_config(self) -> Dict[str, Any]:
        """Get chat engine configuration section."""
        return self.data.get('chat') or {}

    def get_audit_config(self) -> Dict[str, Any]:
        """Get audit logging configuration section."""
        return self.data.get('audit_log', {'enabled': True, 'file': './audit.log'})

    def get_public_urls(self) -> list:
        """Get public storefront pages to ingest."""
        return self.get('sources.public_urls', [])

    def get_pdf_paths(self) -> list:
        """Get PDF manuals to ingest."""
        return self.get('sources.pdfs', [])

    def get_collections(self) -> Dict[str, list]:
        """Get static collection map (collection handle -> keywords)."""
        return self.get_chat_config().get('collections', {})


# Global config instance (lazy-loaded)
_config_instance: Optional[RAGConfig] = None


def load_config(config_path: Optional[str] = None) -> RAGConfig:
    """
    Load or retrieve cached configuration.

    Args:
        config_path: Optional override path

    Returns:
        RAGConfig instance
    """
    global _config_instance
    if _config_instance is None or config_path is not None:
        _config_instance = RAGConfig(config_path)
    return _config_instance
