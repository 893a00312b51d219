import os
from pathlib import Path

CONFIG_ENV = "RESPWIRE_CONFIG"


def get_configfile() -> Path | None:
    """
    Optional YAML file holding codec settings, named by the RESPWIRE_CONFIG
    environment variable. Returns None when the variable is unset.
    """
    raw = os.getenv(CONFIG_ENV)
    if not raw:
        return None

    file = Path(raw)
    if not file.is_file():
        raise FileNotFoundError(
            f"[config] Configuration file not found: '{file}'.\n"
            f"  - Fix or unset the {CONFIG_ENV} environment variable."
        )

    return file
