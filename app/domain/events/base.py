"""
Domain Event Base Class
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict
import json


@dataclass
class DomainEvent:
    """Domain Event 기본 클래스

    하위 클래스는 ``channel`` 과 ``payload()`` 를 구현합니다.
    브로드캐스터는 ``to_dict()`` 결과를 구독자에게 그대로 전달합니다.
    """
    timestamp: datetime

    @property
    def event_name(self) -> str:
        return self.__class__.__name__

    @property
    def channel(self) -> str:
        raise NotImplementedError

    def payload(self) -> Dict[str, Any]:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        """Event를 전송 프레임 dict로 변환"""
        return {
            "event": self.event_name,
            "channel": self.channel,
            "data": self.payload(),
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        """Event를 JSON으로 변환"""
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)
