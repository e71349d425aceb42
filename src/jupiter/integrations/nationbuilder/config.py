"""NationBuilder connection settings resolved from application Settings."""

from dataclasses import dataclass

from src.jupiter.core.config import Settings, get_settings
from src.jupiter.integrations.nationbuilder.errors import ConfigurationError

USER_AGENT = "Jupiter OAuth Client/1.0"


@dataclass(frozen=True)
class NationBuilderConfig:
    nation_slug: str
    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: tuple[str, ...] = ("default",)
    timeout_seconds: float = 30.0

    @property
    def base_url(self) -> str:
        return f"https://{self.nation_slug}.nationbuilder.com"

    @property
    def scope(self) -> str:
        return " ".join(self.scopes)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "NationBuilderConfig":
        """Build from Settings, failing fast on missing credentials."""
        settings = settings or get_settings()
        missing = [
            name
            for name, value in (
                ("NATIONBUILDER_NATION_SLUG", settings.nationbuilder_nation_slug),
                ("NATIONBUILDER_CLIENT_ID", settings.nationbuilder_client_id),
                ("NATIONBUILDER_CLIENT_SECRET", settings.nationbuilder_client_secret),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"NationBuilder is not configured: missing {', '.join(missing)}",
                error_code="missing_configuration",
            )
        return cls(
            nation_slug=settings.nationbuilder_nation_slug,  # type: ignore[arg-type]
            client_id=settings.nationbuilder_client_id,  # type: ignore[arg-type]
            client_secret=settings.nationbuilder_client_secret,  # type: ignore[arg-type]
            redirect_uri=settings.nationbuilder_redirect_uri,
            scopes=tuple(settings.nationbuilder_scopes),
            timeout_seconds=settings.nationbuilder_http_timeout_seconds,
        )
