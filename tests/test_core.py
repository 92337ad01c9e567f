"""核心设施测试：访问令牌、日志配置与请求 ID 过滤器。"""

import logging
from datetime import timedelta

from jose import jwt

from hcloud.core.config import get_settings
from hcloud.core.logger import ColorFormatter, RequestIdFilter, build_logging_config, set_request_id
from hcloud.core.security import create_access_token, user_id_from_token


def test_access_token_round_trip():
    assert user_id_from_token(create_access_token(42)) == 42


def test_expired_or_forged_tokens_are_rejected():
    assert user_id_from_token(create_access_token(1, expires_delta=timedelta(seconds=-5))) is None
    assert user_id_from_token("garbage") is None

    settings = get_settings()
    forged = jwt.encode({"user_id": 1}, "other-secret", algorithm=settings.jwt_algorithm)
    assert user_id_from_token(forged) is None
    no_claim = jwt.encode({"sub": "x"}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    assert user_id_from_token(no_claim) is None


def test_logging_config_switches_to_json():
    settings = get_settings().model_copy(update={"log_json": True})
    config = build_logging_config(settings)
    assert config["handlers"]["console"]["formatter"] == "json"
    assert config["handlers"]["file"]["formatter"] == "json"
    assert config["loggers"]["hcloud"]["propagate"] is False

    plain = build_logging_config(get_settings().model_copy(update={"log_json": False}))
    assert plain["handlers"]["console"]["formatter"] == "color"
    assert plain["handlers"]["file"]["formatter"] == "text"


def test_request_id_filter_and_color_formatter():
    record = logging.LogRecord("hcloud", logging.WARNING, __file__, 1, "disk low", None, None)
    set_request_id("abc")
    try:
        RequestIdFilter().filter(record)
    finally:
        set_request_id(None)
    assert record.request_id == "abc"

    line = ColorFormatter(use_colors=True).format(record)
    assert "[abc]" in line and "\033[33mWARNING" in line
    assert record.levelname == "WARNING"

    other = logging.LogRecord("hcloud", logging.INFO, __file__, 1, "idle", None, None)
    RequestIdFilter().filter(other)
    assert other.request_id == "-"
