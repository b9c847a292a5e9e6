"""
Configuration management with INI files, environment overrides and
per-symbol YAML overrides
"""

import logging
import os
from configparser import ConfigParser
from dataclasses import asdict, dataclass, field, replace
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from trendwick.core.exceptions import ConfigurationError
from trendwick.models.timeframe import Timeframe

VALID_WICK_TIMEFRAMES = {Timeframe.FINE.value, Timeframe.MID.value}


@dataclass
class SignalConfig:
    """
    Signal pipeline configuration (one effective instance per symbol).

    Durations are in seconds.

    Validation Rules:
        - fine_duration < mid_duration < coarse_duration, all positive
        - mid_duration is a multiple of fine_duration and coarse_duration a
          multiple of mid_duration (buckets of every timeframe nest exactly)
        - trend_confirmation_count >= 2
        - wick_ratio_threshold > 0, doji_epsilon > 0, min_absolute_wick >= 0
        - cooldown_duration > 0
        - wick_timeframe: 'fine' or 'mid'
        - stale_after_multiple >= 1, stale_reset_after >= 0 (0 = never)
    """

    fine_duration: float = 10
    mid_duration: float = 60
    coarse_duration: float = 300
    trend_confirmation_count: int = 3
    wick_ratio_threshold: float = 2.0
    min_absolute_wick: float = 0.0
    doji_epsilon: float = 1e-9
    cooldown_duration: float = 60
    wick_timeframe: str = Timeframe.FINE.value
    stale_after_multiple: float = 3
    stale_reset_after: float = 0

    def __post_init__(self):
        if self.fine_duration <= 0:
            raise ConfigurationError(
                f"fine_duration must be positive, got {self.fine_duration}"
            )
        if not (self.fine_duration < self.mid_duration < self.coarse_duration):
            raise ConfigurationError(
                "Timeframe durations must be strictly increasing: "
                f"fine={self.fine_duration}, mid={self.mid_duration}, "
                f"coarse={self.coarse_duration}"
            )
        if self.mid_duration % self.fine_duration or self.coarse_duration % self.mid_duration:
            raise ConfigurationError(
                "Each timeframe duration must be a multiple of the one below it: "
                f"fine={self.fine_duration}, mid={self.mid_duration}, "
                f"coarse={self.coarse_duration}"
            )

        if self.trend_confirmation_count < 2:
            raise ConfigurationError(
                f"trend_confirmation_count must be >= 2, got {self.trend_confirmation_count}"
            )
        if self.wick_ratio_threshold <= 0:
            raise ConfigurationError(
                f"wick_ratio_threshold must be positive, got {self.wick_ratio_threshold}"
            )
        if self.min_absolute_wick < 0:
            raise ConfigurationError(
                f"min_absolute_wick cannot be negative, got {self.min_absolute_wick}"
            )
        if self.doji_epsilon <= 0:
            raise ConfigurationError(
                f"doji_epsilon must be positive, got {self.doji_epsilon}"
            )
        if self.cooldown_duration <= 0:
            raise ConfigurationError(
                f"cooldown_duration must be positive, got {self.cooldown_duration}"
            )

        if self.wick_timeframe not in VALID_WICK_TIMEFRAMES:
            raise ConfigurationError(
                f"Invalid wick_timeframe: {self.wick_timeframe}. "
                f"Must be one of {sorted(VALID_WICK_TIMEFRAMES)}"
            )

        if self.stale_after_multiple < 1:
            raise ConfigurationError(
                f"stale_after_multiple must be >= 1, got {self.stale_after_multiple}"
            )
        if self.stale_reset_after < 0:
            raise ConfigurationError(
                f"stale_reset_after cannot be negative, got {self.stale_reset_after}"
            )

    def duration_for(self, timeframe: Timeframe) -> timedelta:
        """Bucket length of a timeframe."""
        seconds = {
            Timeframe.FINE: self.fine_duration,
            Timeframe.MID: self.mid_duration,
            Timeframe.COARSE: self.coarse_duration,
        }[timeframe]
        return timedelta(seconds=seconds)

    @property
    def cooldown(self) -> timedelta:
        return timedelta(seconds=self.cooldown_duration)

    @property
    def stale_after(self) -> timedelta:
        """Silence after which the feed is reported stale."""
        return timedelta(seconds=self.fine_duration * self.stale_after_multiple)

    @property
    def wick_timeframe_enum(self) -> Timeframe:
        return Timeframe(self.wick_timeframe)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SignalParamsSchema(BaseModel):
    """Pydantic schema for per-symbol signal overrides (symbols.yaml)."""

    model_config = ConfigDict(extra="forbid")

    fine_duration: Optional[float] = Field(None, gt=0, description="Fine bucket (s)")
    mid_duration: Optional[float] = Field(None, gt=0, description="Mid bucket (s)")
    coarse_duration: Optional[float] = Field(None, gt=0, description="Coarse bucket (s)")
    trend_confirmation_count: Optional[int] = Field(None, ge=2)
    wick_ratio_threshold: Optional[float] = Field(None, gt=0)
    min_absolute_wick: Optional[float] = Field(None, ge=0)
    doji_epsilon: Optional[float] = Field(None, gt=0)
    cooldown_duration: Optional[float] = Field(None, gt=0)
    wick_timeframe: Optional[str] = None
    stale_after_multiple: Optional[float] = Field(None, ge=1)
    stale_reset_after: Optional[float] = Field(None, ge=0)


@dataclass
class FeedConfig:
    """Market data feed configuration"""

    symbols: List[str] = field(default_factory=lambda: ["BTCUSDT"])
    is_testnet: bool = True
    ws_url: Optional[str] = None

    def __post_init__(self):
        self.symbols = [s.strip().upper() for s in self.symbols if s and s.strip()]
        if len(self.symbols) == 0:
            raise ConfigurationError("At least one symbol is required")
        for symbol in self.symbols:
            if not symbol.isalnum():
                raise ConfigurationError(f"Invalid symbol format: {symbol}")
        if len(set(self.symbols)) != len(self.symbols):
            raise ConfigurationError(f"Duplicate symbols configured: {self.symbols}")


@dataclass
class LoggingConfig:
    """Logging system configuration"""

    log_level: str = "INFO"
    log_dir: str = "logs"
    log_signals: bool = True

    def __post_init__(self):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level.upper() not in valid_levels:
            raise ConfigurationError(
                f"Invalid log level: {self.log_level}. Must be one of {valid_levels}"
            )


class ConfigManager:
    """
    Manages system configuration from INI files with environment overrides.

    Files (under ``config_dir``):
        - trading_config.ini: [feed], [signals], [logging] sections (required)
        - symbols.yaml: optional per-symbol overrides of [signals] values

    Priority: ENV > symbols.yaml (per symbol) > INI > dataclass defaults
    """

    # --- Initialization ---

    def __init__(self, config_dir: str = "configs"):
        # Relative paths resolve against the project root, absolute ones are kept
        project_root = Path(__file__).resolve().parent.parent.parent
        self.config_dir = project_root / config_dir

        self._feed_config: Optional[FeedConfig] = None
        self._signal_config: Optional[SignalConfig] = None
        self._logging_config: Optional[LoggingConfig] = None
        self._symbol_overrides: Dict[str, Dict[str, Any]] = {}

        self._load_configs()

    def _load_configs(self):
        """Load all configuration files."""
        parser = self._read_ini()
        self._feed_config = self._load_feed_config(parser)
        self._signal_config = self._load_signal_config(parser)
        self._logging_config = self._load_logging_config(parser)
        self._symbol_overrides = self._load_symbol_overrides()

    # --- Public Properties ---

    @property
    def feed_config(self) -> FeedConfig:
        """Get feed configuration"""
        return self._feed_config

    @property
    def signal_config(self) -> SignalConfig:
        """Get base (non symbol-specific) signal configuration"""
        return self._signal_config

    @property
    def logging_config(self) -> LoggingConfig:
        """Get logging configuration"""
        return self._logging_config

    @property
    def is_testnet(self) -> bool:
        return self._feed_config.is_testnet

    # --- Public Methods ---

    def signal_config_for(self, symbol: str) -> SignalConfig:
        """
        Effective signal configuration for one symbol.

        Args:
            symbol: Trading pair (case-insensitive)

        Returns:
            Base SignalConfig with the symbol's YAML overrides applied

        Raises:
            ConfigurationError: If the merged values are invalid
        """
        overrides = self._symbol_overrides.get(symbol.upper())
        if not overrides:
            return self._signal_config
        return replace(self._signal_config, **overrides)

    def signal_configs(self) -> Dict[str, SignalConfig]:
        """Effective signal configuration for every configured symbol."""
        return {s: self.signal_config_for(s) for s in self._feed_config.symbols}

    def validate(self) -> bool:
        """
        Cross-config validation.

        Per-section validation happens in each dataclass __post_init__; this
        resolves every per-symbol config so bad overrides fail at startup.

        Returns:
            bool: True if all validations pass
        """
        logger = logging.getLogger(__name__)

        self.signal_configs()

        if self._feed_config.is_testnet:
            logger.info("Feed running against TESTNET endpoints")
        else:
            logger.info("Feed running against MAINNET endpoints")

        return True

    # --- Private Loaders (Helpers) ---

    def _read_ini(self) -> ConfigParser:
        config_file = self.config_dir / "trading_config.ini"
        if not config_file.exists():
            raise ConfigurationError(f"Trading configuration not found: {config_file}")

        config = ConfigParser()
        config.read(config_file)
        return config

    def _load_feed_config(self, config: ConfigParser) -> FeedConfig:
        """Load [feed] with TRENDWICK_SYMBOLS / TRENDWICK_USE_TESTNET overrides."""
        section = config["feed"] if "feed" in config else {}

        symbols_str = os.getenv("TRENDWICK_SYMBOLS") or section.get("symbols", "BTCUSDT")

        is_testnet_env = os.getenv("TRENDWICK_USE_TESTNET")
        if is_testnet_env is not None:
            is_testnet = is_testnet_env.lower() == "true"
        elif "feed" in config:
            is_testnet = config["feed"].getboolean("use_testnet", True)
        else:
            is_testnet = True

        ws_url = section.get("ws_url") or None

        return FeedConfig(
            symbols=symbols_str.split(","),
            is_testnet=is_testnet,
            ws_url=ws_url,
        )

    def _load_signal_config(self, config: ConfigParser) -> SignalConfig:
        """Load [signals]; missing keys fall back to dataclass defaults."""
        if "signals" not in config:
            return SignalConfig()

        section = config["signals"]
        defaults = SignalConfig()

        try:
            return SignalConfig(
                fine_duration=section.getfloat("fine_duration", defaults.fine_duration),
                mid_duration=section.getfloat("mid_duration", defaults.mid_duration),
                coarse_duration=section.getfloat("coarse_duration", defaults.coarse_duration),
                trend_confirmation_count=section.getint(
                    "trend_confirmation_count", defaults.trend_confirmation_count
                ),
                wick_ratio_threshold=section.getfloat(
                    "wick_ratio_threshold", defaults.wick_ratio_threshold
                ),
                min_absolute_wick=section.getfloat(
                    "min_absolute_wick", defaults.min_absolute_wick
                ),
                doji_epsilon=section.getfloat("doji_epsilon", defaults.doji_epsilon),
                cooldown_duration=section.getfloat(
                    "cooldown_duration", defaults.cooldown_duration
                ),
                wick_timeframe=section.get("wick_timeframe", defaults.wick_timeframe).lower(),
                stale_after_multiple=section.getfloat(
                    "stale_after_multiple", defaults.stale_after_multiple
                ),
                stale_reset_after=section.getfloat(
                    "stale_reset_after", defaults.stale_reset_after
                ),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in [signals]: {e}") from e

    def _load_logging_config(self, config: ConfigParser) -> LoggingConfig:
        """Load [logging] with TRENDWICK_LOG_LEVEL override."""
        env_level = os.getenv("TRENDWICK_LOG_LEVEL")

        if "logging" not in config:
            return LoggingConfig(log_level=env_level) if env_level else LoggingConfig()

        section = config["logging"]
        return LoggingConfig(
            log_level=env_level or section.get("log_level", "INFO"),
            log_dir=section.get("log_dir", "logs"),
            log_signals=section.getboolean("log_signals", True),
        )

    def _load_symbol_overrides(self) -> Dict[str, Dict[str, Any]]:
        """
        Load per-symbol overrides from symbols.yaml.

        Expected layout:
            symbols:
              BTCUSDT:
                wick_ratio_threshold: 2.5
                cooldown_duration: 120

        Returns:
            {SYMBOL: {field: value}} with only explicitly set fields
        """
        yaml_file = self.config_dir / "symbols.yaml"
        if not yaml_file.exists():
            return {}

        try:
            with open(yaml_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse {yaml_file}: {e}") from e

        symbols_section = data.get("symbols") or {}
        if not isinstance(symbols_section, dict):
            raise ConfigurationError(f"{yaml_file}: 'symbols' must be a mapping")

        overrides: Dict[str, Dict[str, Any]] = {}
        for symbol, params in symbols_section.items():
            symbol = str(symbol).upper()
            if symbol not in self._feed_config.symbols:
                raise ConfigurationError(
                    f"{yaml_file}: override for unconfigured symbol {symbol}"
                )
            try:
                schema = SignalParamsSchema(**(params or {}))
            except ValidationError as e:
                raise ConfigurationError(f"{yaml_file}: invalid overrides for {symbol}: {e}") from e

            values = schema.model_dump(exclude_none=True)
            if "wick_timeframe" in values:
                values["wick_timeframe"] = values["wick_timeframe"].lower()
            overrides[symbol] = values

        return overrides
