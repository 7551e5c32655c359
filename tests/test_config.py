import json

import pytest

from livestream.config import Application, ServerConfig, load_config


def _load(tmp_path, argv=(), environ=None, name="missing.yaml"):
    args = ["--config_file", str(tmp_path / name), *argv]
    return load_config(args, environ or {})


def test_defaults_without_file(tmp_path):
    cfg = _load(tmp_path)
    assert cfg.rtmp_addr == ":11935"
    assert cfg.httpflv_addr == ":17001"
    assert cfg.api_addr == ":18090"
    assert cfg.read_timeout == 10
    assert cfg.enable_tls_verify is True
    assert cfg.rtmps_cert == "server.crt"
    assert [app.appname for app in cfg.server] == ["live"]


def test_yaml_file_overrides_defaults(tmp_path):
    (tmp_path / "conf.yaml").write_text(
        "rtmp_addr: ':2935'\n"
        "gop_num: 3\n"
        "jwt:\n  algorithm: HS256\n"
        "server:\n"
        "  - appname: show\n    live: true\n    static_push: ['rtmp://localhost/a']\n"
        "  - appname: off\n    live: false\n"
    )
    cfg = _load(tmp_path, name="conf.yaml")
    assert cfg.rtmp_addr == ":2935"
    assert cfg.gop_num == 3
    assert cfg.jwt.algorithm == "HS256"
    assert cfg.server[0] == Application(appname="show", live=True, static_push=["rtmp://localhost/a"])
    assert cfg.hls_addr == ":17002"


def test_json_file(tmp_path):
    (tmp_path / "conf.json").write_text(json.dumps({"level": "debug", "flv_archive": True}))
    cfg = _load(tmp_path, name="conf.json")
    assert cfg.level == "debug"
    assert cfg.flv_archive is True


def test_unsupported_file_type_falls_back(tmp_path):
    (tmp_path / "conf.ini").write_text("rtmp_addr=:1\n")
    cfg = _load(tmp_path, name="conf.ini")
    assert cfg.rtmp_addr == ServerConfig().rtmp_addr


def test_env_overrides_file(tmp_path):
    (tmp_path / "conf.yaml").write_text("rtmp_addr: ':2935'\n")
    cfg = _load(tmp_path, name="conf.yaml", environ={"RTMP_ADDR": ":3935", "READ_TIMEOUT": "30"})
    assert cfg.rtmp_addr == ":3935"
    assert cfg.read_timeout == 30


def test_flags_override_env(tmp_path):
    cfg = _load(
        tmp_path,
        argv=["--rtmp_addr", ":4935", "--enable_rtmps", "--gop_num=2", "--enable_tls_verify=false"],
        environ={"RTMP_ADDR": ":3935"},
    )
    assert cfg.rtmp_addr == ":4935"
    assert cfg.enable_rtmps is True
    assert cfg.gop_num == 2
    assert cfg.enable_tls_verify is False


def test_bad_flag_value_exits(tmp_path):
    with pytest.raises(SystemExit):
        _load(tmp_path, argv=["--gop_num", "many"])


def test_check_app_name():
    cfg = ServerConfig(server=[Application(appname="a", live=True), Application(appname="b", live=False)])
    assert cfg.check_app_name("a") is True
    assert cfg.check_app_name("b") is False
    assert cfg.check_app_name("c") is False


def test_static_push_urls():
    cfg = ServerConfig(
        server=[
            Application(appname="a", live=True, static_push=["rtmp://localhost/x"]),
            Application(appname="b", live=True),
            Application(appname="c", live=False, static_push=["rtmp://localhost/y"]),
        ]
    )
    assert cfg.static_push_urls("a") == ["rtmp://localhost/x"]
    assert cfg.static_push_urls("b") == []
    assert cfg.static_push_urls("c") == []