"""Loading of the TPP's RSA private key from settings."""
import re
from pathlib import Path
from typing import Optional
from urllib.parse import unquote

from tpp_simulator.config import Settings
from tpp_simulator.errors import ConfigError
from tpp_simulator.logging import get_logger

logger = get_logger(__name__)

# Relative OB_PRIVATE_KEY_PATH values are resolved against the repository root
APP_BASE_DIR = Path(__file__).resolve().parents[2]

PEM_LINE_LENGTH = 64

_BEGIN_MARKER = re.compile(r"-----BEGIN [A-Z ]+? KEY-----")
_END_MARKER = re.compile(r"-----END [A-Z ]+? KEY-----")


def load_private_key(settings: Settings, base_dir: Optional[Path] = None) -> str:
    """
    Resolve the PEM-encoded private key used to sign JWTs.

    The inline OB_PRIVATE_KEY value wins over OB_PRIVATE_KEY_PATH.

    Args:
        settings: Application settings
        base_dir: Directory relative key paths are resolved against

    Returns:
        PEM string

    Raises:
        ConfigError: If neither source yields key material
    """
    key_value = settings.ob_private_key
    if key_value and "BEGIN" in key_value:
        pem = normalize_pem(key_value)
        logger.info("private_key_loaded", source="environment")
        return pem

    key_path = settings.ob_private_key_path
    if key_path:
        path = Path(key_path)
        if not path.is_absolute():
            path = (base_dir or APP_BASE_DIR) / path

        if path.is_file():
            logger.info("private_key_loaded", source="file", path=str(path))
            return path.read_text(encoding="utf-8")

        logger.warning("private_key_file_missing", path=str(path))

    raise ConfigError(
        "Private key not configured. Set OB_PRIVATE_KEY or OB_PRIVATE_KEY_PATH"
    )


def normalize_pem(value: str) -> str:
    """
    Turn an inline key value into standard multi-line PEM.

    Handles URL-encoded values, literal "\\n" escapes and single-line exports
    (Key Vault replaces newlines with spaces).
    """
    pem = value

    if "%" in pem:
        pem = unquote(pem)

    if "\\n" in pem:
        pem = pem.replace("\\n", "\n")

    if "-----BEGIN" in pem and "-----END" in pem and "\n" not in pem:
        pem = _rewrap_single_line(pem)

    return pem


def _rewrap_single_line(pem: str) -> str:
    begin = _BEGIN_MARKER.search(pem)
    end = _END_MARKER.search(pem)
    if not begin or not end:
        return pem

    body = re.sub(r"\s+", "", pem[begin.end():end.start()])
    lines = [begin.group(0)]
    lines.extend(
        body[i:i + PEM_LINE_LENGTH] for i in range(0, len(body), PEM_LINE_LENGTH)
    )
    lines.append(end.group(0))

    logger.info("private_key_reformatted", line_count=len(lines))
    return "\n".join(lines)
