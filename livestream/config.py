"""Server configuration from defaults, a config file, the environment and flags."""

from __future__ import annotations

import argparse
import copy
import dataclasses
import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

log = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "livego.yaml"

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


@dataclass
class Application:
    """One application served under an RTMP app name."""

    appname: str = ""
    live: bool = False
    hls: bool = False
    flv: bool = False
    api: bool = False
    static_push: list[str] = field(default_factory=list)


@dataclass
class JwtConfig:
    secret: str = ""
    algorithm: str = ""


def _default_apps() -> list[Application]:
    return [Application(appname="live", live=True, hls=True, flv=True, api=True)]


@dataclass
class ServerConfig:
    """Complete server settings."""

    level: str = "info"
    config_file: str = DEFAULT_CONFIG_FILE
    flv_archive: bool = False
    flv_dir: str = "tmp"
    rtmp_noauth: bool = False
    rtmp_addr: str = ":11935"
    httpflv_addr: str = ":17001"
    hls_addr: str = ":17002"
    hls_keep_after_end: bool = False
    api_addr: str = ":18090"
    redis_addr: str = ""
    redis_pwd: str = ""
    read_timeout: int = 10
    write_timeout: int = 10
    enable_tls_verify: bool = True
    gop_num: int = 1
    enable_rtmps: bool = False
    rtmps_cert: str = "server.crt"
    rtmps_key: str = "server.key"
    jwt: JwtConfig = field(default_factory=JwtConfig)
    server: list[Application] = field(default_factory=_default_apps)

    def check_app_name(self, appname: str) -> bool:
        """Whether the first application named ``appname`` is live."""
        for app in self.server:
            if app.appname == appname:
                return app.live
        return False

    def static_push_urls(self, appname: str) -> list[str]:
        """Static push URLs of the first live application named ``appname``."""
        for app in self.server:
            if app.appname == appname and app.live:
                return list(app.static_push)
        return []


_DEFAULTS = ServerConfig()
_SCALAR_KINDS = {
    f.name: type(getattr(_DEFAULTS, f.name))
    for f in dataclasses.fields(ServerConfig)
    if type(getattr(_DEFAULTS, f.name)) in (str, bool, int)
}


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    text = str(value).strip()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"invalid boolean {value!r}")


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return int(str(value).strip())


def _coerce(kind: type, value: Any) -> Any:
    if kind is bool:
        return _to_bool(value)
    if kind is int:
        return _to_int(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


def _coerce_lenient(kind: type, value: Any) -> Any:
    try:
        return _coerce(kind, value)
    except ValueError:
        return kind()


def _lower_keys(data: Mapping) -> dict[str, Any]:
    return {str(k).lower(): v for k, v in data.items()}


def _application(data: Any) -> Application:
    if not isinstance(data, Mapping):
        raise ValueError("server entries must be mappings")
    data = _lower_keys(data)
    return Application(
        appname=_coerce(str, data.get("appname", "")),
        live=_coerce(bool, data.get("live", False)),
        hls=_coerce(bool, data.get("hls", False)),
        flv=_coerce(bool, data.get("flv", False)),
        api=_coerce(bool, data.get("api", False)),
        static_push=[str(url) for url in data.get("static_push") or []],
    )


def _read_config_file(path: str) -> dict[str, Any]:
    ext = Path(path).suffix.lower().lstrip(".")
    with open(path, encoding="utf-8") as fh:
        if ext in ("yaml", "yml"):
            data = yaml.safe_load(fh)
        elif ext == "json":
            data = json.load(fh)
        else:
            raise ValueError(f"Unsupported Config Type {ext!r}")
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError(f"config file {path} does not hold a mapping")
    return _lower_keys(data)


def _merge_file(settings: dict[str, Any], data: dict[str, Any]) -> None:
    for key, value in data.items():
        if key in _SCALAR_KINDS:
            settings[key] = _coerce(_SCALAR_KINDS[key], value)
        elif key == "jwt" and isinstance(value, Mapping):
            jwt = _lower_keys(value)
            settings["jwt"] = JwtConfig(
                secret=_coerce(str, jwt.get("secret", "")),
                algorithm=_coerce(str, jwt.get("algorithm", "")),
            )
        elif key == "server" and isinstance(value, list):
            settings["server"] = [_application(item) for item in value]


def _merge_env(settings: dict[str, Any], environ: Mapping[str, str]) -> None:
    for key, kind in _SCALAR_KINDS.items():
        name = key.upper()
        if name in environ:
            settings[key] = _coerce_lenient(kind, environ[name])
    jwt_updates = {
        attr: environ[f"JWT_{attr.upper()}"]
        for attr in ("secret", "algorithm")
        if f"JWT_{attr.upper()}" in environ
    }
    if jwt_updates:
        settings["jwt"] = dataclasses.replace(settings["jwt"], **jwt_updates)


def _flag_bool(text: str) -> bool:
    try:
        return _to_bool(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _flag_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="livestream", argument_default=argparse.SUPPRESS)

    def text(name: str, help_text: str) -> None:
        parser.add_argument(f"--{name}", type=str, help=help_text)

    def number(name: str, help_text: str) -> None:
        parser.add_argument(f"--{name}", type=int, help=help_text)

    def flag(name: str, help_text: str) -> None:
        parser.add_argument(f"--{name}", type=_flag_bool, nargs="?", const=True, help=help_text)

    text("rtmp_addr", "RTMP server listen address")
    flag("enable_rtmps", "enable server session RTMPS")
    text("rtmps_cert", "cert file path required for RTMPS")
    text("rtmps_key", "key file path required for RTMPS")
    text("httpflv_addr", "HTTP-FLV server listen address")
    text("hls_addr", "HLS server listen address")
    text("api_addr", "HTTP manage interface server listen address")
    text("config_file", "configure filename")
    text("level", "Log level")
    flag("hls_keep_after_end", "Maintains the HLS after the stream ends")
    text("flv_dir", "output flv file at flvDir/APP/KEY_TIME.flv")
    number("read_timeout", "read time out")
    number("write_timeout", "write time out")
    number("gop_num", "gop num")
    flag("enable_tls_verify", "Use system root CA to verify RTMPS connection")
    return parser


def load_config(argv: list[str] | None = None, environ: Mapping[str, str] | None = None) -> ServerConfig:
    """Build the configuration: defaults, then the config file, environment and flags."""
    flags = vars(_flag_parser().parse_args(argv))
    environ = os.environ if environ is None else environ

    settings = {f.name: copy.deepcopy(getattr(_DEFAULTS, f.name)) for f in dataclasses.fields(ServerConfig)}
    config_file = flags.get("config_file", DEFAULT_CONFIG_FILE)
    try:
        data = _read_config_file(config_file)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        log.warning("%s", exc)
        log.info("Using default config")
    else:
        _merge_file(settings, data)

    _merge_env(settings, environ)
    settings.update(flags)

    config = ServerConfig(**settings)
    log.debug("Current configurations: \n%r", config)
    return config