from __future__ import annotations

import ssl
from typing import Any, Dict

from ...config import KafkaConfig


def connection_kwargs(cfg: KafkaConfig) -> Dict[str, Any]:
    """TLS/SASL 连接参数，生产者与消费者共用"""
    use_tls = cfg.tls.enable
    use_sasl = bool(cfg.sasl.mechanism)
    if use_tls:
        security_protocol = "SASL_SSL" if use_sasl else "SSL"
    else:
        security_protocol = "SASL_PLAINTEXT" if use_sasl else "PLAINTEXT"

    ssl_context = None
    if use_tls:
        ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        if cfg.tls.verify:
            ctx.verify_mode = ssl.CERT_REQUIRED
            if cfg.tls.ca_location:
                ctx.load_verify_locations(cafile=cfg.tls.ca_location)
            else:
                ctx.load_default_certs()
        else:
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
        if cfg.tls.certificate and cfg.tls.key:
            ctx.load_cert_chain(certfile=cfg.tls.certificate, keyfile=cfg.tls.key)
        ssl_context = ctx

    kwargs: Dict[str, Any] = {
        "bootstrap_servers": cfg.bootstrap_servers,
        "security_protocol": security_protocol,
        "ssl_context": ssl_context,
    }
    if use_sasl:
        kwargs.update(
            sasl_mechanism=cfg.sasl.mechanism,
            sasl_plain_username=cfg.sasl.username,
            sasl_plain_password=cfg.sasl.password,
        )
    return kwargs
