from typing import Annotated

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from respwire.bootstrap.config.loader import get_configfile
from respwire.core.models.config import CodecConfig, FloatPolicy


class LimitSettings(BaseModel):
    max_bulk_length: Annotated[
        int,
        Field(
            description=(
                "Largest accepted bulk string payload, in bytes.\n"
                "A longer length prefix is rejected before anything is allocated."
            ),
            default=512 * 1024 * 1024
        )
    ]

    max_array_length: Annotated[
        int,
        Field(
            description="Largest accepted element count in an array header.",
            default=(1 << 32) - 1
        )
    ]

    max_line_length: Annotated[
        int,
        Field(
            description=(
                "Longest accepted line field (simple string, error, integer,\n"
                "length prefix), terminator excluded."
            ),
            default=64 * 1024
        )
    ]

    max_depth: Annotated[
        int,
        Field(
            description="Deepest accepted array nesting; a top-level array has depth 1.",
            default=128
        )
    ]

    max_buffer_size: Annotated[
        int,
        Field(
            description="Maximum amount of received but unparsed bytes kept per stream.",
            default=512 * 1024 * 1024 + 64 * 1024
        )
    ]

    @field_validator(
        "max_bulk_length",
        "max_array_length",
        "max_line_length",
        "max_depth",
        "max_buffer_size",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"limit must be positive, got {v}")
        return v


class BridgeSettings(BaseModel):
    float_policy: Annotated[
        FloatPolicy,
        Field(
            description=(
                "What to do with non-integral floats, since the protocol has no float kind.\n"
                "  reject   → raise UnsupportedFloat (default).\n"
                "  truncate → send the integer part."
            ),
            default=FloatPolicy.reject
        )
    ]


class RespwireSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RESPWIRE_",
        env_nested_delimiter="__",
        extra="ignore"
    )

    limits: Annotated[
        LimitSettings,
        Field(
            description=(
                "Resource limits applied by the parser.\n"
                "They bound what an untrusted peer can make the process allocate."
            ),
            default_factory=LimitSettings
        )
    ]

    bridge: Annotated[
        BridgeSettings,
        Field(
            description="Mapping policy of the generic serializer bridge.",
            default_factory=BridgeSettings
        )
    ]

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Priority: init kwargs > environment > YAML file
        sources: tuple[PydanticBaseSettingsSource, ...] = (init_settings, env_settings)
        configfile = get_configfile()
        if configfile is not None:
            sources += (YamlConfigSettingsSource(settings_cls, yaml_file=configfile),)
        return sources

    def to_codec_config(self) -> CodecConfig:
        return CodecConfig(
            max_bulk_length=self.limits.max_bulk_length,
            max_array_length=self.limits.max_array_length,
            max_line_length=self.limits.max_line_length,
            max_depth=self.limits.max_depth,
            max_buffer_size=self.limits.max_buffer_size,
            float_policy=self.bridge.float_policy,
        )
