"""
Structlog 日志配置

API 进程与结算进程共用同一处理链，通过 service 字段区分来源；
request_id（HTTP）与 corr_id（消息头）经 contextvars 合并到每条日志。
"""
import json
import logging
from typing import Any, List, Optional

import structlog
from structlog.contextvars import merge_contextvars
from structlog.stdlib import ProcessorFormatter

# 只在 DEBUG 下放开的第三方 logger
NOISY_LOGGERS = ("aiokafka", "sqlalchemy.engine", "httpx")


def _json_dumps(obj, default=None, **kwargs):
    # structlog 会传入 default/sort_keys 等参数
    return json.dumps(obj, ensure_ascii=False, default=default, **kwargs)


def _service_adder(service: Optional[str]):
    def add_service(logger, method_name, event_dict):
        if service:
            event_dict.setdefault("service", service)
        return event_dict
    return add_service


def configure_logging(
    debug: bool = False,
    *,
    service: Optional[str] = None,
    level: Optional[str] = None,
) -> None:
    """配置 structlog 并桥接标准库 logging（uvicorn/aiokafka/sqlalchemy 同样输出为结构化日志）。

    由各进程入口显式调用；DEBUG 下彩色控制台输出，否则每行一个 JSON。
    """
    pre_chain: List[Any] = [
        merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _service_adder(service),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    renderer = (
        structlog.dev.ConsoleRenderer(colors=True)
        if debug
        else structlog.processors.JSONRenderer(serializer=_json_dumps)
    )
    handler = logging.StreamHandler()
    handler.setFormatter(ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[ProcessorFormatter.remove_processors_meta, renderer],
    ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel((level or ("DEBUG" if debug else "INFO")).upper())
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if debug else logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
