"""Nameserver and domain list sources (bundled provider lists, custom files)."""
from __future__ import annotations

from importlib import resources
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from nsrip.config import ConfigError
from nsrip.logging_config import get_logger

logger = get_logger("sources")

PROVIDERS: Dict[str, Sequence[str]] = {
    "aws": ("aws.txt",),
    "azure": ("azure.txt",),
    "gcp": ("gcp.txt",),
    "cloud": ("aws.txt", "azure.txt", "gcp.txt"),
}


def parse_lines(text: str) -> List[str]:
    """Non-blank lines of `text`, stripped of surrounding whitespace."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def read_list(path: str) -> List[str]:
    """Read a newline-delimited list file, raising ConfigError when unreadable."""
    list_path = Path(path)
    try:
        text = list_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Error opening file {path}: {exc}") from exc
    entries = parse_lines(text)
    logger.debug("List loaded", extra={"path": str(list_path), "total": len(entries)})
    return entries


def _read_bundled(filename: str) -> List[str]:
    data = resources.files("nsrip").joinpath("nslists").joinpath(filename)
    return parse_lines(data.read_text(encoding="utf-8"))


def load_nameservers(selector: str) -> List[str]:
    """
    Nameserver hostnames for a provider name or a custom list file path.

    Args:
        selector: One of PROVIDERS, or a path to a newline-delimited file

    Returns:
        Hostnames in file order; duplicates are kept

    Raises:
        ConfigError: If a custom file cannot be read or no hostname is found
    """
    bundle = PROVIDERS.get(selector)
    if bundle is None:
        nameservers = read_list(selector)
    else:
        nameservers = []
        for filename in bundle:
            nameservers.extend(_read_bundled(filename))

    if not nameservers:
        raise ConfigError(f"No nameservers found in {selector}")

    logger.info(
        "Nameservers loaded",
        extra={"provider": selector if bundle else None, "path": None if bundle else selector,
               "nameservers": len(nameservers)},
    )
    return nameservers


def load_domains(domain: Optional[str] = None, domains_file: Optional[str] = None) -> List[str]:
    """Domains from a list file, falling back to the single `domain`.

    The file wins when both are given.
    """
    if domains_file:
        domains = read_list(domains_file)
    elif domain and domain.strip():
        domains = [domain.strip()]
    else:
        raise ConfigError("You must provide either a domain (-d) or a list of domains (-l)")

    if not domains:
        raise ConfigError(f"No domains found in {domains_file}")
    return domains
