"""Load settings.yaml into typed dataclasses."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from roundtable.models import BackendId

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

_PROMPT_KEYS = ("proposer", "revision", "critic", "synthesis", "summary")


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int


@dataclass
class PromptsConfig:
    proposer: str
    revision: str
    critic: str
    synthesis: str
    summary: str


@dataclass
class DefaultsConfig:
    max_rounds: int
    output_dir: Path
    proposer_order: list[BackendId] = field(default_factory=list)
    critic_order: list[BackendId] = field(default_factory=list)
    synthesis_order: list[BackendId] = field(default_factory=list)


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[BackendId, ModelConfig]
    prompts: PromptsConfig


def _parse_order(raw: list[str], key: str) -> list[BackendId]:
    try:
        order = [BackendId(str(name)) for name in raw]
    except ValueError as exc:
        raise ValueError(f"Unknown backend in defaults.{key}: {exc}") from exc
    if len(set(order)) != len(order):
        raise ValueError(f"Duplicate backend in defaults.{key}")
    return order


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if the settings file is missing and ValueError
    on unknown backend ids. Missing API keys are logged, not raised.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    default_order = [b.value for b in BackendId]
    defaults = DefaultsConfig(
        max_rounds=int(defaults_raw.get("max_rounds", 5)),
        output_dir=Path(defaults_raw.get("output_dir", "./output")),
        proposer_order=_parse_order(defaults_raw.get("proposer_order", default_order), "proposer_order"),
        critic_order=_parse_order(defaults_raw.get("critic_order", default_order), "critic_order"),
        synthesis_order=_parse_order(defaults_raw.get("synthesis_order", default_order), "synthesis_order"),
    )
    if defaults.max_rounds < 1:
        raise ValueError("defaults.max_rounds must be at least 1")

    # Shared formatting instructions are appended to every prompt except the summary.
    formatting = raw.get("formatting", "")
    prompts_raw = raw["prompts"]
    prompt_values = {}
    for key in _PROMPT_KEYS:
        text = prompts_raw[key]
        if formatting and key != "summary":
            text = f"{text}\n\n{formatting}"
        prompt_values[key] = text
    prompts = PromptsConfig(**prompt_values)

    models: dict[BackendId, ModelConfig] = {}

    for provider_name, model_raw in raw["models"].items():
        try:
            backend_id = BackendId(provider_name)
        except ValueError as exc:
            raise ValueError(f"Unknown backend in models: {provider_name}") from exc
        model_cfg = ModelConfig(
            name=backend_id.value,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
        )
        models[backend_id] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider key not set: %s (set %s in .env)",
                provider_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
    )
