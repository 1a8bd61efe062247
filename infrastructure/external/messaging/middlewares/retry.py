from __future__ import annotations

from dataclasses import dataclass

from ..config import RetryConfig


@dataclass(slots=True)
class RetryDecision:
    retry: bool
    delay_ms: int
    dlq_topic: str


class RetryPolicy:
    """原地有界重试：同一条消息在当前分区内重试，保持按键顺序；耗尽后进入死信主题"""

    def __init__(self, cfg: RetryConfig) -> None:
        self.cfg = cfg

    def dlq_topic(self, topic: str) -> str:
        suffix = "." + self.cfg.dlq_suffix
        if topic.endswith(suffix):
            return topic
        return topic + suffix

    def backoff_ms(self, attempt: int) -> int:
        """第 attempt 次失败后的等待时间（指数退避，封顶 max_backoff_ms）"""
        delay = self.cfg.initial_backoff_ms * (2 ** max(0, attempt - 1))
        return min(delay, self.cfg.max_backoff_ms)

    def decide(self, topic: str, attempt: int) -> RetryDecision:
        if attempt < self.cfg.max_attempts:
            return RetryDecision(retry=True, delay_ms=self.backoff_ms(attempt), dlq_topic=self.dlq_topic(topic))
        return RetryDecision(retry=False, delay_ms=0, dlq_topic=self.dlq_topic(topic))
