"""Configuration management for note-engine."""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from note_engine.exceptions import ConfigurationError
from note_engine.models.enums import Interval, RegenerationPolicy


@dataclass
class ScheduleConfig:
    """Scheduling and money-rounding configuration."""

    money_quantum: Decimal = Decimal("0.01")
    rounding: str = ROUND_HALF_UP
    default_interval: Interval = Interval.MONTHLY
    regeneration_policy: RegenerationPolicy = RegenerationPolicy.GUARDED
    max_installments: int = 600  # 50 years of monthly installments
    installment_note_template: str = "Installment {number} of {count} ({interval})"

    def render_note(self, number: int, count: int, interval: Interval) -> str:
        """Render the auto-generated description of an installment."""
        return self.installment_note_template.format(
            number=number,
            count=count,
            interval=interval.value,
        )


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "notes"
    user: str = "postgres"
    password: str = "postgres"

    @property
    def connection_string(self) -> str:
        """Get connection string."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class NoteEngineConfig:
    """Main configuration for note-engine."""

    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    seed: int | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "NoteEngineConfig":
        """Create config from environment variables."""
        import os

        try:
            interval = Interval(os.getenv("NOTE_ENGINE_INTERVAL", "monthly").lower())
        except ValueError as e:
            raise ConfigurationError(
                f"NOTE_ENGINE_INTERVAL must be one of {[i.value for i in Interval]}"
            ) from e

        try:
            policy = RegenerationPolicy(os.getenv("NOTE_ENGINE_REGEN_POLICY", "guarded").lower())
        except ValueError as e:
            raise ConfigurationError(
                f"NOTE_ENGINE_REGEN_POLICY must be one of {[p.value for p in RegenerationPolicy]}"
            ) from e

        try:
            port = int(os.getenv("POSTGRES_PORT", "5432"))
            seed = int(os.getenv("SEED")) if os.getenv("SEED") else None
            max_installments = int(os.getenv("NOTE_ENGINE_MAX_INSTALLMENTS", "600"))
        except ValueError as e:
            raise ConfigurationError(f"Invalid integer in environment: {e}") from e

        schedule = ScheduleConfig(
            default_interval=interval,
            regeneration_policy=policy,
            max_installments=max_installments,
        )

        postgres = PostgresConfig(
            host=os.getenv("POSTGRES_HOST", "localhost"),
            port=port,
            database=os.getenv("POSTGRES_DB", "notes"),
            user=os.getenv("POSTGRES_USER", "postgres"),
            password=os.getenv("POSTGRES_PASSWORD", "postgres"),
        )

        return cls(
            schedule=schedule,
            postgres=postgres,
            seed=seed,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
