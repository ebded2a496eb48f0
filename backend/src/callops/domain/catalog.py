"""Supported telephony/voice providers and their configuration schemas."""

from __future__ import annotations

from dataclasses import dataclass, field

from callops.domain.enums import FieldType
from callops.domain.exceptions import UnknownProviderError
from callops.domain.value_objects import FieldDescriptor, FieldOption, ProviderSchema


@dataclass(frozen=True, slots=True)
class SupportedProvider:
    """Catalog entry: display metadata plus the field schema."""

    name: str
    label: str
    description: str
    schema: ProviderSchema
    features: tuple[str, ...] = ()
    languages: tuple[str, ...] = ()
    pricing: str = ""


_EXOTEL = SupportedProvider(
    name="exotel",
    label="Exotel",
    description="Cloud telephony for India and South-East Asia",
    features=("Inbound & outbound calls", "Call recording", "IVR flows", "Virtual numbers"),
    languages=("English", "Hindi", "Tamil", "Telugu"),
    pricing="Pay-as-you-go, per-minute billing",
    schema=ProviderSchema.of(
        "exotel",
        [
            FieldDescriptor(
                key="account_sid",
                label="Account SID",
                required=True,
                placeholder="your-exotel-sid",
                help="Found under API settings in the Exotel dashboard",
            ),
            FieldDescriptor(key="api_key", label="API Key", required=True),
            FieldDescriptor(
                key="api_token",
                label="API Token",
                type=FieldType.PASSWORD,
                required=True,
            ),
            FieldDescriptor(
                key="subdomain",
                label="Cluster",
                type=FieldType.SELECT,
                required=True,
                options=(
                    FieldOption("api.exotel.com", "Singapore (api.exotel.com)"),
                    FieldOption("api.in.exotel.com", "Mumbai (api.in.exotel.com)"),
                ),
            ),
            FieldDescriptor(
                key="caller_id",
                label="Exotel Phone Number",
                required=True,
                placeholder="+91XXXXXXXXXX",
            ),
            FieldDescriptor(
                key="max_concurrent_calls",
                label="Max Concurrent Calls",
                type=FieldType.NUMBER,
                min=1,
                max=500,
                step=1,
                placeholder="10",
            ),
        ],
    ),
)

_TWILIO = SupportedProvider(
    name="twilio",
    label="Twilio",
    description="Global programmable voice and messaging",
    features=("Global numbers", "Call recording", "Transcription", "SIP trunking"),
    languages=("English", "Spanish", "French", "German", "Hindi"),
    pricing="Per-minute billing, volume discounts",
    schema=ProviderSchema.of(
        "twilio",
        [
            FieldDescriptor(
                key="account_sid",
                label="Account SID",
                required=True,
                placeholder="ACxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxx",
            ),
            FieldDescriptor(
                key="auth_token",
                label="Auth Token",
                type=FieldType.PASSWORD,
                required=True,
                help="Console → Account → API keys & tokens",
            ),
            FieldDescriptor(
                key="phone_number",
                label="Twilio Phone Number",
                required=True,
                placeholder="+1XXXXXXXXXX",
            ),
            FieldDescriptor(
                key="region",
                label="Region",
                type=FieldType.SELECT,
                options=(
                    FieldOption("us1", "United States"),
                    FieldOption("ie1", "Ireland"),
                    FieldOption("au1", "Australia"),
                ),
            ),
            FieldDescriptor(
                key="timeout_seconds",
                label="Ring Timeout (seconds)",
                type=FieldType.NUMBER,
                min=5,
                max=120,
                step=5,
                placeholder="30",
            ),
        ],
    ),
)

_VOICEBASE = SupportedProvider(
    name="voicebase",
    label="VoiceBase",
    description="Speech analytics and call transcription",
    features=("Transcription", "Keyword spotting", "Sentiment analysis", "PCI redaction"),
    languages=("English (US)", "English (India)", "Hindi"),
    pricing="Per-minute of processed audio",
    schema=ProviderSchema.of(
        "voicebase",
        [
            FieldDescriptor(
                key="api_token",
                label="Bearer Token",
                type=FieldType.PASSWORD,
                required=True,
            ),
            FieldDescriptor(
                key="language",
                label="Transcription Language",
                type=FieldType.SELECT,
                required=True,
                options=(
                    FieldOption("en-US", "English (US)"),
                    FieldOption("en-IN", "English (India)"),
                    FieldOption("hi-IN", "Hindi"),
                ),
            ),
            FieldDescriptor(
                key="callback_url",
                label="Callback URL",
                placeholder="https://example.com/voicebase/callback",
                help="Receives transcripts once processing finishes",
            ),
        ],
    ),
)

_CUSTOM = SupportedProvider(
    name="custom",
    label="Custom Provider",
    description="Any HTTP-reachable telephony backend exposing a health endpoint",
    features=("Bring your own SIP/VoIP stack", "Bearer-token auth"),
    languages=("Depends on backend",),
    pricing="N/A",
    schema=ProviderSchema.of(
        "custom",
        [
            FieldDescriptor(
                key="base_url",
                label="Base URL",
                required=True,
                placeholder="https://voip.example.com/api",
            ),
            FieldDescriptor(
                key="api_key",
                label="API Key",
                type=FieldType.PASSWORD,
                required=True,
            ),
            FieldDescriptor(
                key="auth_header",
                label="Auth Header",
                placeholder="Authorization",
                help="Header carrying the bearer token",
            ),
            FieldDescriptor(
                key="extra_headers",
                label="Extra Headers",
                type=FieldType.TEXTAREA,
                rows=4,
                placeholder="X-Tenant: acme",
                help="One 'Name: value' pair per line",
            ),
            FieldDescriptor(
                key="timeout_seconds",
                label="Timeout (seconds)",
                type=FieldType.NUMBER,
                min=1,
                max=120,
                step=1,
            ),
        ],
    ),
)


@dataclass(frozen=True)
class ProviderCatalog:
    """Lookup over the supported providers, in display order."""

    providers: tuple[SupportedProvider, ...] = field(
        default=(_EXOTEL, _TWILIO, _VOICEBASE, _CUSTOM)
    )

    def entries(self) -> list[SupportedProvider]:
        return list(self.providers)

    def names(self) -> list[str]:
        return [p.name for p in self.providers]

    def get(self, name: str) -> SupportedProvider:
        for provider in self.providers:
            if provider.name == name:
                return provider
        raise UnknownProviderError(name)

    def schema(self, name: str) -> ProviderSchema:
        return self.get(name).schema

    def __contains__(self, name: object) -> bool:
        return any(p.name == name for p in self.providers)


DEFAULT_CATALOG = ProviderCatalog()
