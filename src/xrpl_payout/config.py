import os
import tomllib
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, Field, NonNegativeFloat, NonNegativeInt, PositiveFloat, PositiveInt, ValidationError

from xrpl_payout.constants import XrplNetwork
from xrpl_payout.errors import ConfigurationError
from xrpl_payout.watcher import Backoff

pkg_root = Path(__file__).parent
config_file = pkg_root / "config.toml"

cfg = tomllib.loads(config_file.read_text())


class PayoutSettings(BaseModel):
    network: XrplNetwork
    rpc_url: str = Field(min_length=1)
    retry_limit: NonNegativeInt
    base_delay: NonNegativeFloat
    factor: float = Field(ge=1)
    max_delay: NonNegativeFloat
    rpc_timeout: PositiveFloat
    submit_timeout: PositiveFloat
    probe_retries: PositiveInt
    probe_delay: NonNegativeFloat
    audit_db: str | None = None

    @property
    def backoff(self) -> Backoff:
        return Backoff(base_delay=self.base_delay, factor=self.factor, max_delay=self.max_delay)


def _from_file(conf: Mapping[str, Any], network: str) -> dict[str, Any]:
    conf_net = conf["network"]
    confirm = conf["confirmation"]
    to = conf["timeout"]
    endpoints = conf_net["endpoints"]
    if network not in endpoints:
        raise ConfigurationError(f"No endpoint configured for network {network!r}")
    return {
        "network": network,
        "rpc_url": endpoints[network],
        "retry_limit": confirm["retry_limit"],
        "base_delay": confirm["base_delay"],
        "factor": confirm["factor"],
        "max_delay": confirm["max_delay"],
        "rpc_timeout": to["rpc"],
        "submit_timeout": to["submit"],
        "probe_retries": to["probe_retries"],
        "probe_delay": to["probe_delay"],
        "audit_db": conf.get("output", {}).get("audit_db"),
    }


def load_settings(
    overrides: Mapping[str, Any] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    conf: Mapping[str, Any] | None = None,
) -> PayoutSettings:
    """Merge packaged defaults, environment and explicit overrides (highest wins)."""
    env = os.environ if env is None else env
    conf = cfg if conf is None else conf
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}

    network = overrides.get("network") or env.get("PAYOUT_NETWORK") or conf["network"]["default"]
    try:
        values = _from_file(conf, str(network))
    except KeyError as e:
        raise ConfigurationError(f"config.toml is missing {e}") from e

    if url := env.get("PAYOUT_RPC_URL"):
        values["rpc_url"] = url
    if limit := env.get("PAYOUT_RETRY_LIMIT"):
        values["retry_limit"] = limit
    values.update(overrides)

    try:
        return PayoutSettings.model_validate(values)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e
