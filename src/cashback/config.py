"""Loading of per-chain configuration files."""

import tomllib
from pathlib import Path

from pydantic import ValidationError

from src.cashback.errors import ConfigError
from src.cashback.models import ChainConfig
from src.helpers.config import get_chain_config_dir
from src.helpers.logging import get_logger


logger = get_logger(__name__)


def load_chain_config(path: Path) -> ChainConfig:
    """Parse and validate a single chain TOML file.

    Args:
        path: Path to the TOML file

    Returns:
        ChainConfig: Validated chain settings

    Raises:
        ConfigError: If the file cannot be parsed or is missing fields
    """
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        msg = f"Cannot read chain config {path}: {e}"
        raise ConfigError(msg) from e

    try:
        config = ChainConfig.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid chain config {path}: {e}"
        raise ConfigError(msg) from e

    for problem in config.economics_problems():
        logger.warning("Chain config %s: %s", path.name, problem)

    return config


def load_chain_configs(config_dir: Path | None = None) -> list[ChainConfig]:
    """Load every ``*.toml`` chain config from a directory.

    Files are read in name order so the startup order is stable. A missing
    directory is not an error; the service simply monitors nothing.

    Args:
        config_dir: Directory to scan (defaults to CHAIN_CONFIG_DIR)

    Returns:
        list[ChainConfig]: One entry per TOML file

    Raises:
        ConfigError: If a file is invalid or two files declare the same chain
    """
    config_dir = config_dir or get_chain_config_dir()
    if not config_dir.is_dir():
        logger.warning("No chain config directory at %s", config_dir)
        return []

    configs: list[ChainConfig] = []
    seen: set[str] = set()
    for path in sorted(config_dir.iterdir()):
        if not path.is_file() or path.suffix.lower() != ".toml":
            continue
        config = load_chain_config(path)
        if config.currency_id in seen:
            msg = f"Chain {config.currency_id} is configured more than once ({path.name})"
            raise ConfigError(msg)
        seen.add(config.currency_id)
        configs.append(config)

    logger.info("Loaded %s chain config(s) from %s", len(configs), config_dir)
    return configs


__all__ = [
    "load_chain_config",
    "load_chain_configs",
]
