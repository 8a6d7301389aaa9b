"""Configuration management for the arbiter and its optimization runs."""

import json
import math
import os
from dataclasses import dataclass, field, fields, replace, asdict
from enum import Enum
from numbers import Real
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import ArbiterInputError, ConfigError
from .utils.logging import get_logger

logger = get_logger(__name__)

METRIC_COUNT = 5


class ArbiterMode(str, Enum):
    """Named threshold presets."""
    TECH = "tech"
    CREATIVE = "creative"
    CUSTOM = "custom"


@dataclass(frozen=True)
class ThresholdsConfig:
    """Per-metric cutoffs used by the convergence voter."""
    semantic: float  # similarity must be >= this
    lexical: float  # similarity must be >= this
    length: float  # relative length change must be <= this
    style: float  # style delta must be <= this
    efmn: float  # score-vector delta must be <= this


@dataclass(frozen=True)
class QualityGatesConfig:
    """Floor for the F, N and M axes, lowered by b_penalty * B."""
    min_fnm: float
    b_penalty: float


@dataclass(frozen=True)
class ConvergenceConfig:
    votes_required: int = 3  # out of METRIC_COUNT
    patience: int = 2  # consecutive converged iterations before stopping


@dataclass(frozen=True)
class BudgetConfig:
    max_tokens: int = 100000
    max_iterations: int = 10


def _check_number(name: str, value: Any, kind: type) -> None:
    """Reject strings, booleans and NaN where a threshold or count is expected."""
    if isinstance(value, bool) or not isinstance(value, kind):
        expected = "an integer" if kind is int else "a number"
        raise ArbiterInputError(f"{name} must be {expected}, got {value!r}")
    if not math.isfinite(value):
        raise ArbiterInputError(f"{name} must be finite, got {value!r}")


@dataclass(frozen=True)
class ArbiterConfig:
    """Immutable per-run arbiter configuration."""
    thresholds: ThresholdsConfig
    quality_gates: QualityGatesConfig
    convergence: ConvergenceConfig = field(default_factory=ConvergenceConfig)
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    mode: ArbiterMode = ArbiterMode.CUSTOM

    def __post_init__(self):
        for section in (self.thresholds, self.quality_gates):
            for f in fields(section):
                _check_number(f.name, getattr(section, f.name), Real)
        for section in (self.convergence, self.budget):
            for f in fields(section):
                _check_number(f.name, getattr(section, f.name), int)

        for f in fields(self.thresholds):
            if getattr(self.thresholds, f.name) < 0:
                raise ArbiterInputError(f"Threshold {f.name} must be non-negative")
        if self.quality_gates.b_penalty < 0:
            raise ArbiterInputError("b_penalty must be non-negative")
        if not 1 <= self.convergence.votes_required <= METRIC_COUNT:
            raise ArbiterInputError(
                f"votes_required must be between 1 and {METRIC_COUNT}, "
                f"got {self.convergence.votes_required}"
            )
        if self.convergence.patience < 1:
            raise ArbiterInputError("patience must be at least 1")
        if self.budget.max_tokens < 1 or self.budget.max_iterations < 1:
            raise ArbiterInputError("Budget limits must be positive")

    def with_overrides(
        self,
        thresholds: Optional[Mapping[str, Any]] = None,
        quality_gates: Optional[Mapping[str, Any]] = None,
        convergence: Optional[Mapping[str, Any]] = None,
        budget: Optional[Mapping[str, Any]] = None,
    ) -> "ArbiterConfig":
        """Return a copy with selected fields replaced.

        The result is tagged ``ArbiterMode.CUSTOM`` whenever anything changes.

        Raises:
            ArbiterInputError: If an override names an unknown field.
        """
        overrides = {
            "thresholds": thresholds,
            "quality_gates": quality_gates,
            "convergence": convergence,
            "budget": budget,
        }
        changes = {}
        for section, values in overrides.items():
            if not values:
                continue
            current = getattr(self, section)
            known = {f.name for f in fields(current)}
            unknown = set(values) - known
            if unknown:
                raise ArbiterInputError(
                    f"Unknown {section} override(s): {', '.join(sorted(unknown))}"
                )
            changes[section] = replace(current, **values)

        if not changes:
            return self
        return replace(self, mode=ArbiterMode.CUSTOM, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["mode"] = self.mode.value
        return data


TECH_PRESET = ArbiterConfig(
    mode=ArbiterMode.TECH,
    thresholds=ThresholdsConfig(
        semantic=0.985,
        lexical=0.98,
        length=0.03,
        style=0.05,
        efmn=0.05,
    ),
    quality_gates=QualityGatesConfig(min_fnm=0.70, b_penalty=0.30),
    convergence=ConvergenceConfig(votes_required=3, patience=2),
    budget=BudgetConfig(max_tokens=100000, max_iterations=10),
)

CREATIVE_PRESET = ArbiterConfig(
    mode=ArbiterMode.CREATIVE,
    thresholds=ThresholdsConfig(
        semantic=0.97,
        lexical=0.95,
        length=0.05,
        style=0.10,
        efmn=0.08,
    ),
    quality_gates=QualityGatesConfig(min_fnm=0.65, b_penalty=0.25),
    convergence=ConvergenceConfig(votes_required=3, patience=2),
    budget=BudgetConfig(max_tokens=100000, max_iterations=10),
)

_PRESETS = {
    ArbiterMode.TECH: TECH_PRESET,
    ArbiterMode.CREATIVE: CREATIVE_PRESET,
}


def get_default_config(mode: ArbiterMode = ArbiterMode.TECH) -> ArbiterConfig:
    """Get the preset for a mode.

    Args:
        mode: ``ArbiterMode.TECH`` or ``ArbiterMode.CREATIVE`` (or their
            string values).

    Raises:
        ArbiterInputError: For an unknown mode or ``custom``, which has no
            preset of its own.
    """
    try:
        mode = ArbiterMode(mode)
    except ValueError:
        raise ArbiterInputError(f"Unknown arbiter mode: {mode!r}")
    if mode not in _PRESETS:
        raise ArbiterInputError("Custom mode has no preset; use with_overrides() on a preset")
    return _PRESETS[mode]


@dataclass
class LLMProviderConfig:
    """Configuration for a specific LLM provider."""
    api_key: str = ""
    base_url: str = ""
    model: str = ""
    max_tokens: int = 4096
    temperature: float = 0.7
    timeout: int = 120


@dataclass
class LLMProviderRoles:
    """Which provider serves which role.

    - engine: produces the expand/compress rewrites and the quality scores
    - oracle: rates semantic similarity between consecutive snapshots
    """
    engine: str = "gateway"
    oracle: str = "gateway"


@dataclass
class LLMConfig:
    """Configuration for LLM providers."""
    provider: LLMProviderRoles = field(default_factory=LLMProviderRoles)
    providers: Dict[str, LLMProviderConfig] = field(default_factory=dict)
    max_retries: int = 5
    base_delay: float = 2.0
    max_delay: float = 60.0

    def get_provider_config(self, provider_name: str) -> LLMProviderConfig:
        """Get configuration for a specific provider."""
        if provider_name not in self.providers:
            raise ValueError(f"Unknown LLM provider: {provider_name}")
        return self.providers[provider_name]

    def get_engine_provider(self) -> str:
        return self.provider.engine

    def get_oracle_provider(self) -> str:
        return self.provider.oracle


@dataclass
class OracleConfig:
    """Semantic-similarity oracle selection."""
    kind: str = "llm"  # llm, embedding, lexical
    timeout: float = 8.0
    embedding_model: str = "all-MiniLM-L6-v2"

    def validate_kind(self) -> bool:
        return self.kind in {"llm", "embedding", "lexical"}


@dataclass
class EngineConfig:
    """Iteration engine prompt options."""
    use_efmnb_frame: bool = True
    stage: Optional[int] = None  # psychosocial lens 1-8 for the compress block


@dataclass
class Config:
    """Main configuration container."""
    arbiter: ArbiterConfig = field(default_factory=lambda: TECH_PRESET)
    llm: LLMConfig = field(default_factory=LLMConfig)
    oracle: OracleConfig = field(default_factory=OracleConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    log_level: str = "INFO"
    log_json: bool = False


def _resolve_env_vars(value: Any) -> Any:
    """Resolve environment variables in string values."""
    if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
        env_var = value[2:-1]
        resolved = os.environ.get(env_var, "")
        if not resolved:
            logger.warning(f"Environment variable {env_var} not set")
        return resolved
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(v) for v in value]
    return value


def _parse_llm_provider_config(data: Dict) -> LLMProviderConfig:
    """Parse LLM provider configuration."""
    return LLMProviderConfig(
        api_key=_resolve_env_vars(data.get("api_key", "")),
        base_url=data.get("base_url", ""),
        model=data.get("model", ""),
        max_tokens=data.get("max_tokens", 4096),
        temperature=data.get("temperature", 0.7),
        timeout=data.get("timeout", 120),
    )


def _parse_llm_config(data: Dict) -> LLMConfig:
    """Parse LLM configuration section."""
    providers = {}
    for name, provider_data in data.get("providers", {}).items():
        providers[name] = _parse_llm_provider_config(provider_data)

    retry_config = data.get("retry", {})
    provider_data = data.get("provider", {})

    provider_roles = LLMProviderRoles(
        engine=provider_data.get("engine", "gateway"),
        oracle=provider_data.get("oracle", "gateway"),
    )

    return LLMConfig(
        provider=provider_roles,
        providers=providers,
        max_retries=retry_config.get("max_attempts", 5),
        base_delay=retry_config.get("base_delay", 2.0),
        max_delay=retry_config.get("max_delay", 60.0),
    )


def _parse_arbiter_config(data: Dict) -> ArbiterConfig:
    """Parse the arbiter section: a preset name plus optional overrides."""
    base = get_default_config(data.get("mode", ArbiterMode.TECH.value))
    return base.with_overrides(
        thresholds=data.get("thresholds"),
        quality_gates=data.get("quality_gates"),
        convergence=data.get("convergence"),
        budget=data.get("budget"),
    )


def load_config(config_path: str = "config.json") -> Config:
    """Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Parsed configuration object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config file is invalid.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n"
            "Please copy config.json.sample to config.json and configure it."
        )

    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}")

    config = Config()

    if "arbiter" in data:
        try:
            config.arbiter = _parse_arbiter_config(data["arbiter"])
        except ArbiterInputError as e:
            raise ConfigError(f"Invalid arbiter section: {e}")

    if "llm" in data:
        config.llm = _parse_llm_config(data["llm"])

    if "oracle" in data:
        oracle_data = data["oracle"]
        config.oracle = OracleConfig(
            kind=oracle_data.get("kind", "llm"),
            timeout=oracle_data.get("timeout", 8.0),
            embedding_model=oracle_data.get("embedding_model", "all-MiniLM-L6-v2"),
        )
        if not config.oracle.validate_kind():
            logger.warning(f"Invalid oracle kind '{config.oracle.kind}', using 'llm'")
            config.oracle.kind = "llm"

    if "engine" in data:
        engine_data = data["engine"]
        config.engine = EngineConfig(
            use_efmnb_frame=engine_data.get("use_efmnb_frame", True),
            stage=engine_data.get("stage"),
        )
        if config.engine.stage is not None and config.engine.stage not in range(1, 9):
            logger.warning(f"Ignoring stage {config.engine.stage}: expected 1-8")
            config.engine.stage = None

    config.log_level = data.get("log_level", "INFO")
    config.log_json = data.get("log_json", False)

    logger.info(f"Loaded configuration from {config_path}")
    return config


def create_default_config() -> Dict:
    """Create a default configuration dictionary."""
    return {
        "arbiter": {
            "mode": "tech",
        },
        "llm": {
            "provider": {
                "engine": "gateway",
                "oracle": "gateway",
            },
            "providers": {
                "gateway": {
                    "api_key": "${LLM_GATEWAY_API_KEY}",
                    "base_url": "https://ai.gateway.lovable.dev/v1",
                    "model": "google/gemini-2.5-flash",
                    "max_tokens": 4096,
                    "temperature": 0.7,
                    "timeout": 120,
                },
            },
            "retry": {
                "max_attempts": 5,
                "base_delay": 2.0,
                "max_delay": 60.0,
            },
        },
        "oracle": {
            "kind": "llm",
            "timeout": 8.0,
            "embedding_model": "all-MiniLM-L6-v2",
        },
        "engine": {
            "use_efmnb_frame": True,
            "stage": None,
        },
        "log_level": "INFO",
        "log_json": False,
    }
