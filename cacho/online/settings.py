"""
Runtime settings of online rooms (RoomSettings)
===============================================

- Pacing delays of the timed transitions (bot thinking, reveal steps, round-over pause).
- Relay store limits: per-call timeout, queue bound, duplicate-detection window.
- Values can be overridden through the environment or a `.env` file, prefixed with `CACHO_`.

Example `.env`
--------------
CACHO_ROUND_OVER_DELAY=2.5
CACHO_RELAY_TIMEOUT=10
"""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RoomSettings(BaseSettings):
    # seconds before a bot announces it is thinking, then a random pause before it acts
    bot_think_delay: float = Field(0.5, ge=0)
    bot_action_delay_min: float = Field(1.0, ge=0)
    bot_action_delay_max: float = Field(2.0, ge=0)

    # reveal pacing: per seat, shorter for eliminated seats, then the final tally
    reveal_step_delay: float = Field(1.2, ge=0)
    reveal_skip_delay: float = Field(0.1, ge=0)
    finish_reveal_delay: float = Field(1.0, ge=0)

    # results stay on screen this long before the next round starts by itself
    round_over_delay: float = Field(4.0, ge=0)

    relay_timeout: float = Field(5.0, gt=0)
    max_pending_intents: int = Field(64, ge=1)
    dedup_window: int = Field(256, ge=1)

    model_config = SettingsConfigDict(env_prefix="CACHO_", env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = RoomSettings()
