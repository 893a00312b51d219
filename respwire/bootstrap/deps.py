import json
from functools import lru_cache

from pydantic import ValidationError

from respwire.bootstrap.config.settings import RespwireSettings
from respwire.core.models.config import CodecConfig
from respwire.infra.resp_serializer import RespSerializer


@lru_cache
def get_settings() -> RespwireSettings:
    try:
        return RespwireSettings()
    except FileNotFoundError as ex:
        raise SystemExit(f"Provide a correct configuration file path: {ex}")
    except ValidationError as ex:
        msg = ["Configuration validation failed:"]
        errs = json.loads(ex.json())
        for err in errs:
            msg.append(f"  {'.'.join(str(part) for part in err['loc'])}: {err['msg']}")
        raise SystemExit("\n".join(msg))


@lru_cache
def get_codec_config() -> CodecConfig:
    return get_settings().to_codec_config()


@lru_cache
def get_serializer() -> RespSerializer:
    return RespSerializer(get_codec_config())
