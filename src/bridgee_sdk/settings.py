"""SDK settings loaded from the environment."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration for the Bridgee attribution SDK.

    Tenant credentials are intentionally absent: the embedding application
    passes them to the factory explicitly.
    """

    # Match API
    api_base_url: str = "https://api.bridgee.ai"
    match_path: str = "match"

    # Match call time budget (milliseconds)
    connect_timeout_ms: int = 500
    read_timeout_ms: int = 1500

    # Request / event naming
    referrer_key: str = "install_referrer"
    first_open_event_name: str = "first_open"
    campaign_details_event_name: str = "campaign_details"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True
    configure_logging: bool = False

    model_config = SettingsConfigDict(env_prefix="BRIDGEE_")

    @property
    def match_url(self) -> str:
        """Absolute URL of the match endpoint."""
        return f"{self.api_base_url.rstrip('/')}/{self.match_path.lstrip('/')}"
