"""Run configuration: flags and environment, config file, defaults.

Precedence, highest first:

1. command-line flags and their ``PREBUILT_*`` environment variables
   (collected by the CLI into ``Arguments``)
2. ``$XDG_CONFIG_HOME/cargo-prebuilt/config.toml`` (``~/.config/...`` by default),
   skipped in CI mode
3. built-in defaults

Config file format::

    [prebuilt]
    index = "https://github.com/cargo-prebuilt/index"
    path = "/opt/bin"
    reports = ["license_dl", "deps_out"]
    safe = true

    [key.my-index]
    index = "cuhttp+https://prebuilt.example.com/index"
    pub_key = "RWT..."

Everything that can make a run unusable is checked here, before any
package is processed: bad index URLs, unknown report or hash names and
missing trust keys all raise a ConfigError subclass.
"""

from __future__ import annotations

import os
import platform
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from prebuilt.crypto.keys import load_bundled_key, load_public_key_from_base64
from prebuilt.crypto.policy import VerificationPolicy
from prebuilt.crypto.trust import TrustStore
from prebuilt.errors import ConfigError, MissingTrustKeysError
from prebuilt.index.layout import IndexLocation
from prebuilt.models.constants import DEFAULT_INDEX, TARGET_PATTERN
from prebuilt.models.enums import ExistingBinaryPolicy, ReportType
from prebuilt.observability import get_logger, sanitize_for_logging

logger = get_logger(__name__)

CONFIG_DIR_NAME = "cargo-prebuilt"
CONFIG_FILE_NAME = "config.toml"
REPORT_DIR_NAME = ".prebuilt"

_TARGET_RE = re.compile(TARGET_PATTERN)


class KeyEntry(BaseModel):
    """``[key.<name>]`` table: one public key trusted for one index."""

    model_config = ConfigDict(extra="forbid")

    index: str
    pub_key: str


class PrebuiltSection(BaseModel):
    """``[prebuilt]`` table. Every field is optional."""

    model_config = ConfigDict(extra="forbid")

    target: str | None = None
    index: str | None = None
    auth: str | None = None
    path: Path | None = None
    report_path: Path | None = None
    reports: list[str] | str | None = None
    hashes: list[str] | str | None = None
    sig: str | None = None
    no_create_path: bool | None = None
    no_verify: bool | None = None
    safe: bool | None = None
    out: bool | None = None
    color: bool | None = None


class ConfigFileV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    prebuilt: PrebuiltSection | None = None
    key: dict[str, KeyEntry] = Field(default_factory=dict)


class Arguments(BaseModel):
    """Raw values from flags and environment. None means "not given"."""

    target: str | None = None
    index: str | None = None
    auth: str | None = None
    path: Path | None = None
    report_path: Path | None = None
    ci: bool = False
    no_create_path: bool = False
    reports: str | None = None
    hashes: str | None = None
    sig: str | None = None
    pub_key: str | None = None
    no_verify: bool = False
    safe: bool = False
    out: bool = False
    color: bool = False
    no_color: bool = False
    packages: list[str] = Field(default_factory=list)


@dataclass(frozen=True)
class Config:
    """Fully merged, validated configuration for one run."""

    target: str
    index: IndexLocation
    path: Path
    report_path: Path
    policy: VerificationPolicy
    trust_store: TrustStore
    packages: tuple[str, ...]
    auth: str | None = field(default=None, repr=False)
    ci: bool = False
    no_create_path: bool = False
    reports: tuple[ReportType, ...] = ReportType.defaults()
    safe: bool = False
    out: bool = False
    color: bool | None = None

    @property
    def existing_binary_policy(self) -> ExistingBinaryPolicy:
        return ExistingBinaryPolicy.SAFE if self.safe else ExistingBinaryPolicy.OVERWRITE

    @property
    def no_verify(self) -> bool:
        return not self.policy.enabled


def default_target() -> str:
    """Best guess at the target triple of the running machine."""
    machine = platform.machine().lower()
    arch = {"amd64": "x86_64", "x64": "x86_64", "arm64": "aarch64"}.get(machine, machine)
    system = platform.system()
    if system == "Darwin":
        return f"{arch}-apple-darwin"
    if system == "Windows":
        return f"{arch}-pc-windows-msvc"
    if system == "FreeBSD":
        return f"{arch}-unknown-freebsd"
    libc, _ = platform.libc_ver()
    abi = "gnu" if libc == "glibc" else "musl"
    if arch.startswith("arm") and arch != "aarch64":
        abi = f"{abi}eabihf"
    return f"{arch}-unknown-linux-{abi}"


def default_install_path() -> Path:
    """``$CARGO_HOME/bin``, falling back to ``~/.cargo/bin``."""
    cargo_home = os.environ.get("CARGO_HOME")
    base = Path(cargo_home) if cargo_home else Path.home() / ".cargo"
    return base if base.name == "bin" else base / "bin"


def default_report_path() -> Path:
    return Path.home() / REPORT_DIR_NAME


def config_file_path() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def read_config_file(path: Path) -> ConfigFileV1 | None:
    """Load the config file. A missing or malformed file is logged and ignored."""
    if not path.is_file():
        return None
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
        parsed = ConfigFileV1.model_validate(data)
    except (OSError, tomllib.TOMLDecodeError, ValidationError) as e:
        logger.error("prebuilt.config.file_invalid", path=str(path), error=str(e))
        return None
    logger.debug(
        "prebuilt.config.file_loaded",
        path=str(path),
        prebuilt=sanitize_for_logging(parsed.prebuilt.model_dump() if parsed.prebuilt else {}),
        keys=sorted(parsed.key),
    )
    return parsed


def _split_csv(value: list[str] | str | None) -> list[str]:
    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else value
    return [item.strip() for item in items if item.strip()]


def parse_reports(value: list[str] | str | None) -> tuple[ReportType, ...]:
    """Parse report names; ``None`` gives the defaults, ``""`` gives none.

    Short names (``license``) mean the download variant.
    """
    if value is None:
        return ReportType.defaults()
    reports: list[ReportType] = []
    for name in _split_csv(value):
        normalized = name.lower()
        if normalized in ("license", "deps", "audit"):
            normalized = f"{normalized}_dl"
        try:
            report = ReportType(normalized)
        except ValueError as e:
            raise ConfigError(
                f"{name} is not a report type. Try "
                + ", ".join(r.value for r in ReportType),
                details={"report": name},
            ) from e
        if report not in reports:
            reports.append(report)
    return tuple(reports)


def parse_packages(values: list[str]) -> tuple[str, ...]:
    """Flatten CSV package tokens, keeping first-seen order."""
    tokens: list[str] = []
    for value in values:
        tokens.extend(_split_csv(value))
    return tuple(dict.fromkeys(tokens))


def _check_key(encoded: str, source: str) -> None:
    try:
        load_public_key_from_base64(encoded)
    except ValueError as e:
        raise ConfigError(
            f"Invalid public key from {source}: {e}", details={"source": source}
        ) from e


def build_trust_store(
    index: IndexLocation,
    pub_key: str | None,
    file_keys: dict[str, KeyEntry],
) -> TrustStore:
    """Union of the bundled key, ``--pub-key`` and config-file keys."""
    default_identity = IndexLocation.parse(DEFAULT_INDEX).identity
    seeds: list[tuple[str, str]] = [(default_identity, load_bundled_key())]
    if pub_key:
        _check_key(pub_key, "--pub-key")
        seeds.append((index.identity, pub_key))
    for name, entry in file_keys.items():
        _check_key(entry.pub_key, f"config key {name!r}")
        seeds.append((IndexLocation.parse(entry.index).identity, entry.pub_key))
    return TrustStore.from_seeds(seeds)


def load_config(arguments: Arguments, config_file: Path | None = None) -> Config:
    """Merge ``arguments`` with the config file and defaults.

    Raises:
        ConfigError: On any invalid value.
        MissingTrustKeysError: Verification is mandatory but no key is
            trusted for the selected index.
    """
    if arguments.pub_key and not arguments.index:
        raise ConfigError("pub_key must be used with index.")

    file_config: ConfigFileV1 | None = None
    if not arguments.ci:
        file_config = read_config_file(config_file or config_file_path())
    section = (file_config.prebuilt if file_config else None) or PrebuiltSection()
    file_keys = file_config.key if file_config else {}

    def pick(name: str) -> object:
        value = getattr(arguments, name)
        return value if value is not None else getattr(section, name)

    def switch(name: str) -> bool:
        return bool(getattr(arguments, name) or getattr(section, name))

    target = str(pick("target") or default_target())
    if not _TARGET_RE.match(target):
        raise ConfigError(f"Invalid target {target!r}", details={"target": target})

    index = IndexLocation.parse(str(pick("index") or DEFAULT_INDEX))

    try:
        policy = VerificationPolicy.from_names(
            hashes=_split_csv(pick("hashes")),  # type: ignore[arg-type]
            signature=pick("sig"),  # type: ignore[arg-type]
            no_verify=switch("no_verify"),
        )
    except ValueError as e:
        raise ConfigError(f"Invalid verification policy: {e}") from e

    trust_store = build_trust_store(index, arguments.pub_key, file_keys)
    if policy.requires_signatures and not trust_store.has_keys(index.identity):
        raise MissingTrustKeysError(index.identity)

    reports = parse_reports(pick("reports"))  # type: ignore[arg-type]
    safe = switch("safe")
    if arguments.ci:
        reports = ()
        safe = False

    if arguments.no_color:
        color: bool | None = False
    elif arguments.color:
        color = True
    else:
        color = section.color

    packages = parse_packages(arguments.packages)
    if not packages:
        raise ConfigError("No packages requested.")

    path = pick("path") or default_install_path()
    report_path = pick("report_path") or default_report_path()

    config = Config(
        target=target,
        index=index,
        path=Path(str(path)).expanduser().absolute(),
        report_path=Path(str(report_path)).expanduser().absolute(),
        policy=policy,
        trust_store=trust_store,
        packages=packages,
        auth=pick("auth"),  # type: ignore[arg-type]
        ci=arguments.ci,
        no_create_path=switch("no_create_path"),
        reports=reports,
        safe=safe,
        out=switch("out"),
        color=color,
    )
    logger.debug(
        "prebuilt.config.loaded",
        target=config.target,
        index=config.index.base_url,
        identity=config.index.identity,
        path=str(config.path),
        hashes=[a.value for a in config.policy.hashes],
        verify=config.policy.enabled,
        packages=list(config.packages),
    )
    return config
