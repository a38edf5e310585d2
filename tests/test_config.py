"""Tests for configuration loading and validation."""

import pytest
import yaml

from storefront_rag import config as config_module
from storefront_rag.config import ConfigError, RAGConfig, load_config


BASE_CONFIG = {
    'chunking': {'split_strategy': 'token-overlap', 'max_size': 800, 'overlap': 100},
    'embedding': {'backend': 'hash', 'fallback_dim': 64},
    'vector_store': {'path': './vectorstore/db'},
    'chat': {'collections': {'anillos': ['ring', 'anillo']}},
    'sources': {'public_urls': ['https://shop.example/'], 'pdfs': ['manual.pdf']},
}


@pytest.fixture
def write_config(tmp_path):
    def _write(data):
        path = tmp_path / 'config.yaml'
        path.write_text(yaml.safe_dump(data))
        return str(path)
    return _write


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ('SHOPIFY_STORE_URL', 'SHOPIFY_ADMIN_API_KEY', 'SHOPIFY_ADMIN_API_PASSWORD',
                 'SHOPIFY_API_VERSION', 'STORE_URL', 'SYSTEM_PROMPT'):
        # setenv first so values loaded from .env files are removed on teardown
        monkeypatch.setenv(name, '')
        monkeypatch.delenv(name)


def test_valid_config(write_config):
    cfg = RAGConfig(write_config(BASE_CONFIG))

    assert cfg.get('chunking.max_size') == 800
    assert cfg.get('chunking.missing', 'default') == 'default'
    assert cfg.get_chunking_config()['split_strategy'] == 'token-overlap'
    assert cfg.get_public_urls() == ['https://shop.example/']
    assert cfg.get_pdf_paths() == ['manual.pdf']
    assert cfg.get_collections() == {'anillos': ['ring', 'anillo']}
    assert cfg.get_shopify_config() == {}


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        RAGConfig(str(tmp_path / 'nope.yaml'))


def test_missing_required_key(write_config):
    data = dict(BASE_CONFIG)
    del data['vector_store']

    with pytest.raises(ConfigError, match='vector_store'):
        RAGConfig(write_config(data))


@pytest.mark.parametrize('chunking', [
    {'split_strategy': 'paragraph'},
    {'split_strategy': 'char', 'max_size': 0},
    {'split_strategy': 'char', 'max_size': 'big'},
    {'split_strategy': 'char', 'overlap': -1},
])
def test_invalid_chunking(write_config, chunking):
    data = dict(BASE_CONFIG, chunking=chunking)

    with pytest.raises(ConfigError):
        RAGConfig(write_config(data))


def test_invalid_yaml(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text('chunking: [unclosed')

    with pytest.raises(ConfigError):
        RAGConfig(str(path))


def test_environment_overrides(write_config, monkeypatch):
    monkeypatch.setenv('SHOPIFY_STORE_URL', 'shop.myshopify.com')
    monkeypatch.setenv('SHOPIFY_ADMIN_API_PASSWORD', 'shpat_secret')
    monkeypatch.setenv('STORE_URL', 'https://shop.example')

    cfg = RAGConfig(write_config(BASE_CONFIG))

    assert cfg.get('shopify.store_domain') == 'shop.myshopify.com'
    assert cfg.get('shopify.password') == 'shpat_secret'
    assert cfg.get_chat_config()['store_url'] == 'https://shop.example'
    assert cfg.get_chat_config()['collections'] == {'anillos': ['ring', 'anillo']}


def test_env_file_is_loaded(write_config, tmp_path):
    env_file = tmp_path / '.env'
    env_file.write_text('SYSTEM_PROMPT=You help customers of Ventura.\n')

    cfg = RAGConfig(write_config(BASE_CONFIG), env_file=str(env_file))

    assert cfg.get('chat.system_prompt') == 'You help customers of Ventura.'


def test_load_config_is_the_only_accessor(write_config, monkeypatch):
    monkeypatch.setattr(config_module, '_config_instance', None)
    path = write_config(BASE_CONFIG)

    first = load_config(path)

    assert load_config() is first
    assert load_config(path) is not first
    assert not hasattr(config_module, 'get_config')
