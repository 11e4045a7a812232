"""
Configuration Management for the Portfolio Assistant

Loads configuration from ~/.portfolio-assistant/config.json and environment
variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger("assistant.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".portfolio-assistant"
CONFIG_PATH = CONFIG_DIR / "config.json"
SUMMARIES_DIR = CONFIG_DIR / "summaries"

# Project paths (relative to this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent
PUBLIC_DIR = PROJECT_ROOT / "public"


@dataclass
class IndexConfig:
    """Where the offline-built index and the résumé dataset live"""
    assets_base: str = str(PUBLIC_DIR / "rag")  # directory or http(s) base URL
    dataset_path: str = str(PUBLIC_DIR / "data" / "resume.json")
    fetch_timeout: float = 30.0


@dataclass
class EmbeddingConfig:
    """Query embedding configuration (must match the model the index was built with)"""
    mode: str = "openai"  # "openai" or "femb" (fastembed, on-device)
    model: str = "text-embedding-3-large"


@dataclass
class LLMConfig:
    """Chat-completion provider configuration"""
    provider: str = "openai"
    openai_api_key: str = ""
    openai_model: str = "gpt-3.5-turbo"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    temperature: float = 0.2
    max_tokens: int = 900
    timeout: float = 30.0


@dataclass
class RetrieverConfig:
    """Retrieval and orchestration tunables"""
    topk: int = 10
    scoped_topk: int = 10
    max_chunk_chars: int = 1200
    history_turns: int = 6
    fallback_history_turns: int = 4
    max_iterations: int = 3
    self_project_id: str = "portfolio-chat"
    owner_name: str = "the developer"


@dataclass
class ServerConfig:
    """HTTP surface configuration"""
    host: str = "0.0.0.0"
    port: int = 8080
    summaries_dir: str = str(SUMMARIES_DIR)
    max_sessions: int = 1000  # least recently used sessions are evicted past this


@dataclass
class AssistantConfig:
    """Main assistant configuration"""
    index: IndexConfig = field(default_factory=IndexConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    retriever: RetrieverConfig = field(default_factory=RetrieverConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_index_config(data: dict) -> IndexConfig:
    """Parse index section from config dict"""
    index_data = data.get("index", {})
    defaults = IndexConfig()
    return IndexConfig(
        assets_base=index_data.get("assets_base", defaults.assets_base),
        dataset_path=index_data.get("dataset_path", defaults.dataset_path),
        fetch_timeout=index_data.get("fetch_timeout", defaults.fetch_timeout),
    )


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    """Parse embedding section from config dict"""
    embedding_data = data.get("embedding", {})
    return EmbeddingConfig(
        mode=embedding_data.get("mode", "openai"),
        model=embedding_data.get("model", "text-embedding-3-large"),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        provider=llm_data.get("provider", "openai"),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", "gpt-3.5-turbo"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", "claude-sonnet-4-20250514"),
        temperature=llm_data.get("temperature", 0.2),
        max_tokens=llm_data.get("max_tokens", 900),
        timeout=llm_data.get("timeout", 30.0),
    )


def _parse_retriever_config(data: dict) -> RetrieverConfig:
    """Parse retriever section from config dict"""
    retriever_data = data.get("retriever", {})
    return RetrieverConfig(
        topk=retriever_data.get("topk", 10),
        scoped_topk=retriever_data.get("scoped_topk", 10),
        max_chunk_chars=retriever_data.get("max_chunk_chars", 1200),
        history_turns=retriever_data.get("history_turns", 6),
        fallback_history_turns=retriever_data.get("fallback_history_turns", 4),
        max_iterations=retriever_data.get("max_iterations", 3),
        self_project_id=retriever_data.get("self_project_id", "portfolio-chat"),
        owner_name=retriever_data.get("owner_name", "the developer"),
    )


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server section from config dict"""
    server_data = data.get("server", {})
    return ServerConfig(
        host=server_data.get("host", "0.0.0.0"),
        port=server_data.get("port", 8080),
        summaries_dir=server_data.get("summaries_dir", str(SUMMARIES_DIR)),
        max_sessions=server_data.get("max_sessions", 1000),
    )


def load_config() -> AssistantConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.portfolio-assistant/config.json)
    3. Default values
    """
    config = AssistantConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.index = _parse_index_config(data)
            config.embedding = _parse_embedding_config(data)
            config.llm = _parse_llm_config(data)
            config.retriever = _parse_retriever_config(data)
            config.server = _parse_server_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file: %s", e)

    # Environment variable overrides
    if os.getenv("RAG_ASSETS_BASE"):
        config.index.assets_base = os.getenv("RAG_ASSETS_BASE")
    if os.getenv("RESUME_DATA_PATH"):
        config.index.dataset_path = os.getenv("RESUME_DATA_PATH")

    if os.getenv("EMBEDDING_MODE"):
        config.embedding.mode = os.getenv("EMBEDDING_MODE")
    if os.getenv("EMBEDDING_MODEL"):
        config.embedding.model = os.getenv("EMBEDDING_MODEL")

    if os.getenv("RAG_TOPK"):
        config.retriever.topk = int(os.getenv("RAG_TOPK"))
    if os.getenv("RAG_SCOPED_TOPK"):
        config.retriever.scoped_topk = int(os.getenv("RAG_SCOPED_TOPK"))
    if os.getenv("ASSISTANT_OWNER_NAME"):
        config.retriever.owner_name = os.getenv("ASSISTANT_OWNER_NAME")

    if os.getenv("ASSISTANT_PORT"):
        config.server.port = int(os.getenv("ASSISTANT_PORT"))

    # LLM env var overrides (track env-sourced keys)
    _env_llm_map = {
        "OPENAI_API_KEY": "openai_api_key",
        "LLM_MODEL": "openai_model",
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "ASSISTANT_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    return config


def save_config(config: AssistantConfig) -> None:
    """Save configuration to file.

    API key fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "provider": config.llm.provider,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "temperature": config.llm.temperature,
        "max_tokens": config.llm.max_tokens,
        "timeout": config.llm.timeout,
    }
    for key in ("openai_api_key", "anthropic_api_key"):
        if key in env_sourced:
            llm_section[key] = ""

    data = {
        "index": {
            "assets_base": config.index.assets_base,
            "dataset_path": config.index.dataset_path,
            "fetch_timeout": config.index.fetch_timeout,
        },
        "embedding": {
            "mode": config.embedding.mode,
            "model": config.embedding.model,
        },
        "llm": llm_section,
        "retriever": {
            "topk": config.retriever.topk,
            "scoped_topk": config.retriever.scoped_topk,
            "max_chunk_chars": config.retriever.max_chunk_chars,
            "history_turns": config.retriever.history_turns,
            "fallback_history_turns": config.retriever.fallback_history_turns,
            "max_iterations": config.retriever.max_iterations,
            "self_project_id": config.retriever.self_project_id,
            "owner_name": config.retriever.owner_name,
        },
        "server": {
            "host": config.server.host,
            "port": config.server.port,
            "summaries_dir": config.server.summaries_dir,
            "max_sessions": config.server.max_sessions,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)


def ensure_directories(config: AssistantConfig) -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    Path(config.server.summaries_dir).mkdir(parents=True, exist_ok=True)
